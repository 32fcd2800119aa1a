"""定时报表服务"""
from typing import Callable, List, Optional
from datetime import datetime, timezone
from sqlalchemy.orm import Session
import logging

from app import crud
from app.core.config import settings
from app.core.exceptions import NotFoundError, PermissionDeniedError
from app.db.session import SessionLocal, get_db_session
from app.models.scheduled_report import ScheduledReport
from app.schemas.scheduled_report import (
    Recipient, ScheduledReportCreate, ScheduledReportUpdate, SweepSummary
)
from app.services.dashboard_refresh_service import dashboard_refresh_service
from app.services.dashboard_service import dashboard_service
from app.services.report_dispatch import ReportDispatcher, default_dispatcher
from app.services.schedule_calculator import compute_next, to_naive_utc

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_send_after(schedule, now: datetime) -> datetime:
    """naive UTC, as stored in next_send_at"""
    return to_naive_utc(compute_next(schedule, now))


class ScheduledReportService:
    """定时报表服务类"""

    def list_reports(
        self,
        db: Session,
        *,
        owner_id: int,
        dashboard_id: Optional[int] = None
    ) -> List[ScheduledReport]:
        return crud.crud_scheduled_report.get_by_owner(db, owner_id=owner_id, dashboard_id=dashboard_id)

    def get_report(self, db: Session, *, report_id: int, owner_id: int) -> ScheduledReport:
        report = crud.crud_scheduled_report.get(db, id=report_id)
        if report is None:
            raise NotFoundError(f"Scheduled report {report_id} not found")
        if report.owner_id != owner_id:
            raise PermissionDeniedError("No access to this scheduled report")
        return report

    def create_report(
        self,
        db: Session,
        *,
        obj_in: ScheduledReportCreate,
        owner_id: int,
        now: Optional[datetime] = None
    ) -> ScheduledReport:
        """创建定时报表，立即计算 next_send_at"""
        dashboard_service.get_dashboard(db, dashboard_id=obj_in.dashboard_id, user_id=owner_id)
        report = crud.crud_scheduled_report.create(
            db,
            obj_in=obj_in,
            owner_id=owner_id,
            next_send_at=next_send_after(obj_in.schedule, now or utcnow()),
            error_count=0,
        )
        logger.info(f"Created scheduled report {report.id}, next send at {report.next_send_at}")
        return report

    def update_report(
        self,
        db: Session,
        *,
        report_id: int,
        obj_in: ScheduledReportUpdate,
        owner_id: int,
        now: Optional[datetime] = None
    ) -> ScheduledReport:
        """修改计划时重新计算 next_send_at"""
        report = self.get_report(db, report_id=report_id, owner_id=owner_id)
        if obj_in.dashboard_id is not None and obj_in.dashboard_id != report.dashboard_id:
            dashboard_service.get_dashboard(db, dashboard_id=obj_in.dashboard_id, user_id=owner_id)

        update_data = obj_in.model_dump(exclude_unset=True)
        if obj_in.schedule is not None:
            update_data["next_send_at"] = next_send_after(obj_in.schedule, now or utcnow())
        return crud.crud_scheduled_report.update(db, db_obj=report, obj_in=update_data)

    def delete_report(self, db: Session, *, report_id: int, owner_id: int) -> None:
        self.get_report(db, report_id=report_id, owner_id=owner_id)
        crud.crud_scheduled_report.remove(db, id=report_id)

    def toggle_active(
        self,
        db: Session,
        *,
        report_id: int,
        owner_id: int,
        now: Optional[datetime] = None
    ) -> ScheduledReport:
        """
        启用 / 停用

        停用时 next_send_at 保持不变；重新启用时清空错误计数并从当前时刻重新计算。
        """
        report = self.get_report(db, report_id=report_id, owner_id=owner_id)
        if report.is_active:
            report.is_active = False
        else:
            report.is_active = True
            report.error_count = 0
            report.last_error = None
            report.next_send_at = next_send_after(report.schedule, now or utcnow())
        db.commit()
        db.refresh(report)
        logger.info(f"Scheduled report {report_id} is_active={report.is_active}")
        return report

    def mark_dispatched(
        self,
        db: Session,
        report: ScheduledReport,
        *,
        success: bool,
        error: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ScheduledReport:
        """
        记录一次投递结果

        成功: error_count 清零, last_sent_at = now
        失败: error_count + 1, last_error = 错误信息
        两种情况都从 now 重新计算 next_send_at (不会自动停用)
        """
        now = now or utcnow()
        if success:
            report.error_count = 0
            report.last_error = None
            report.last_sent_at = to_naive_utc(now)
        else:
            report.error_count = (report.error_count or 0) + 1
            report.last_error = error or "Unknown error"
        report.next_send_at = next_send_after(report.schedule, now)
        db.commit()
        db.refresh(report)
        return report

    async def dispatch_report(
        self,
        db: Session,
        report: ScheduledReport,
        *,
        dispatcher: Optional[ReportDispatcher] = None,
        registry=None,
        now: Optional[datetime] = None
    ) -> bool:
        """
        计算Dashboard快照并投递，记录结果

        Returns:
            是否投递成功
        """
        now = now or utcnow()
        dispatcher = dispatcher or default_dispatcher
        try:
            dashboard = report.dashboard
            if dashboard is None:
                raise NotFoundError(f"Dashboard {report.dashboard_id} not found")
            snapshot = await dashboard_refresh_service.compute_dashboard(
                dashboard.id,
                dashboard.name,
                dashboard_service.get_widgets(dashboard),
                registry=registry,
                now=now
            )
            recipients = [Recipient.model_validate(r) for r in report.recipients or []]
            dispatcher.dispatch(snapshot, report.format, recipients)
        except Exception as e:
            logger.error(f"Scheduled report {report.id} dispatch failed: {e}")
            self.mark_dispatched(db, report, success=False, error=str(e) or e.__class__.__name__, now=now)
            return False

        self.mark_dispatched(db, report, success=True, now=now)
        logger.info(f"Scheduled report {report.id} sent, next send at {report.next_send_at}")
        return True

    async def run_due_reports(
        self,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        dispatcher: Optional[ReportDispatcher] = None,
        registry=None,
        now: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> SweepSummary:
        """
        扫描并投递到期的定时报表

        每个报表独立处理，单个失败不影响其他报表。
        """
        now = now or utcnow()
        summary = SweepSummary()
        with get_db_session(session_factory) as db:
            due = crud.crud_scheduled_report.get_due(
                db,
                now=to_naive_utc(now),
                limit=limit or settings.SCHEDULED_REPORT_BATCH_SIZE
            )
            for report in due:
                report_id = report.id
                summary.processed += 1
                try:
                    ok = await self.dispatch_report(
                        db, report, dispatcher=dispatcher, registry=registry, now=now
                    )
                except Exception as e:
                    # Recording the outcome itself failed
                    db.rollback()
                    logger.error(f"Scheduled report {report_id} could not be processed: {e}")
                    ok = False
                if ok:
                    summary.succeeded += 1
                else:
                    summary.failed += 1

        if summary.processed:
            logger.info(
                f"Scheduled report sweep: processed={summary.processed}, "
                f"succeeded={summary.succeeded}, failed={summary.failed}"
            )
        return summary


# 创建全局实例
scheduled_report_service = ScheduledReportService()
