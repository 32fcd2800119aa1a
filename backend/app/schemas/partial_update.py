"""部分更新Schema基类"""
from typing import ClassVar, Tuple
from pydantic import BaseModel, model_validator


class PartialUpdate(BaseModel):
    """
    部分更新请求

    Omitted fields stay unchanged. Fields listed in ``non_nullable`` back
    NOT NULL columns, so sending them as an explicit null is rejected.
    """
    non_nullable: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        nulls = [
            name for name in self.non_nullable
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self
