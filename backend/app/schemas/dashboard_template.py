"""Dashboard模板 Schema定义"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from app.schemas.dashboard import Widget
from app.schemas.partial_update import PartialUpdate


class DashboardTemplateBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="模板名称")
    description: Optional[str] = Field(None, max_length=2000)
    category: str = Field("custom", max_length=100, description="分类")
    widgets: List[Widget] = Field(default_factory=list)
    tags: Optional[List[str]] = None


class DashboardTemplateCreate(DashboardTemplateBase):
    pass


class DashboardTemplateUpdate(PartialUpdate):
    non_nullable = ("name", "category", "widgets")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    widgets: Optional[List[Widget]] = None
    tags: Optional[List[str]] = None


class DashboardTemplate(DashboardTemplateBase):
    """模板响应"""
    id: int
    is_built_in: bool
    usage_count: int
    owner_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CreateFromTemplateRequest(BaseModel):
    """从模板创建Dashboard"""
    name: Optional[str] = Field(None, min_length=1, max_length=255, description="默认沿用模板名称")
    description: Optional[str] = None
