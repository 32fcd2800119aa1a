"""Custom metric CRUD操作"""
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_

from app.crud.base import CRUDBase
from app.models.custom_metric import CustomMetric
from app.schemas.custom_metric import CustomMetricCreate, CustomMetricUpdate


class CRUDCustomMetric(CRUDBase[CustomMetric, CustomMetricCreate, CustomMetricUpdate]):

    def get_accessible(
        self,
        db: Session,
        *,
        owner_id: int,
        scope: str = "all",
        data_source: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[CustomMetric]:
        """
        Args:
            scope: mine (自己的) / public (公开的) / all (自己的 + 公开的)
        """
        query = db.query(CustomMetric)
        if scope == "mine":
            query = query.filter(CustomMetric.owner_id == owner_id)
        elif scope == "public":
            query = query.filter(CustomMetric.is_public == True)
        else:
            query = query.filter(or_(CustomMetric.owner_id == owner_id, CustomMetric.is_public == True))

        if data_source:
            query = query.filter(CustomMetric.data_source == data_source)

        return query.order_by(CustomMetric.created_at.desc(), CustomMetric.id.desc()).offset(skip).limit(limit).all()

    def get_many(self, db: Session, *, ids: List[int]) -> List[CustomMetric]:
        if not ids:
            return []
        return db.query(CustomMetric).filter(CustomMetric.id.in_(ids)).all()


crud_custom_metric = CRUDCustomMetric(CustomMetric)
