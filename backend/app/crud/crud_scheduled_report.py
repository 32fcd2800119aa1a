"""Scheduled report CRUD操作"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from app.crud.base import CRUDBase
from app.models.scheduled_report import ScheduledReport
from app.schemas.scheduled_report import ScheduledReportCreate, ScheduledReportUpdate


class CRUDScheduledReport(CRUDBase[ScheduledReport, ScheduledReportCreate, ScheduledReportUpdate]):

    def get_by_owner(
        self,
        db: Session,
        *,
        owner_id: int,
        dashboard_id: Optional[int] = None
    ) -> List[ScheduledReport]:
        query = db.query(ScheduledReport).filter(ScheduledReport.owner_id == owner_id)
        if dashboard_id is not None:
            query = query.filter(ScheduledReport.dashboard_id == dashboard_id)
        return query.order_by(ScheduledReport.next_send_at.asc(), ScheduledReport.id.asc()).all()

    def get_due(self, db: Session, *, now: datetime, limit: int = 100) -> List[ScheduledReport]:
        """
        到期的定时报表: is_active 且 next_send_at <= now

        Args:
            now: naive UTC
        """
        return db.query(ScheduledReport).filter(
            ScheduledReport.is_active == True,
            ScheduledReport.next_send_at <= now
        ).order_by(ScheduledReport.next_send_at.asc(), ScheduledReport.id.asc()).limit(limit).all()


crud_scheduled_report = CRUDScheduledReport(ScheduledReport)
