"""
定时报表投递

Rendering (pdf / excel / csv) and email transport belong to an external
delivery service; this module only defines the hand-off point.
"""
import logging
from typing import List, Protocol

from app.schemas.dashboard import DashboardResults
from app.schemas.scheduled_report import Recipient

logger = logging.getLogger(__name__)


class ReportDispatchError(Exception):
    """Raised by a dispatcher when delivery failed"""
    pass


class ReportDispatcher(Protocol):
    def dispatch(self, snapshot: DashboardResults, format: str, recipients: List[Recipient]) -> None:
        ...


class LoggingReportDispatcher:
    """默认投递器：只记录日志"""

    def dispatch(self, snapshot: DashboardResults, format: str, recipients: List[Recipient]) -> None:
        emails = ", ".join(r.email for r in recipients)
        logger.info(
            f"Dispatching {format} report for dashboard {snapshot.dashboard_id} "
            f"({snapshot.success_count} ok / {snapshot.failed_count} failed widgets) to {emails}"
        )


default_dispatcher = LoggingReportDispatcher()
