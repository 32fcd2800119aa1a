"""Saved report CRUD操作"""
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_

from app.crud.base import CRUDBase
from app.models.saved_report import SavedReport
from app.schemas.saved_report import SavedReportCreate, SavedReportUpdate


class CRUDSavedReport(CRUDBase[SavedReport, SavedReportCreate, SavedReportUpdate]):

    def get_accessible(self, db: Session, *, owner_id: int) -> List[SavedReport]:
        """自己的 + 公开的；默认报表在前，其余按创建时间倒序"""
        return db.query(SavedReport).filter(
            or_(SavedReport.owner_id == owner_id, SavedReport.is_public == True)
        ).order_by(
            SavedReport.is_default.desc(),
            SavedReport.created_at.desc(),
            SavedReport.id.desc(),
        ).all()

    def get_default(self, db: Session, *, owner_id: int) -> Optional[SavedReport]:
        return db.query(SavedReport).filter(
            SavedReport.owner_id == owner_id,
            SavedReport.is_default == True
        ).first()

    def clear_default(self, db: Session, *, owner_id: int, exclude_id: Optional[int] = None) -> int:
        """不提交，由调用方统一commit"""
        query = db.query(SavedReport).filter(
            SavedReport.owner_id == owner_id,
            SavedReport.is_default == True
        )
        if exclude_id is not None:
            query = query.filter(SavedReport.id != exclude_id)
        return query.update({SavedReport.is_default: False}, synchronize_session="fetch")


crud_saved_report = CRUDSavedReport(SavedReport)
