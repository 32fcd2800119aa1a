"""保存的报表服务"""
from typing import List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
import logging

from app import crud
from app.core.exceptions import NotFoundError, PermissionDeniedError
from app.models.saved_report import SavedReport
from app.schemas.analytics import FilterPredicate, WidgetResult
from app.schemas.saved_report import (
    ReportConfiguration, ReportFilters, ReportMetricResult,
    SavedReportCreate, SavedReportRun, SavedReportUpdate
)
from app.services.analytics.date_ranges import validate_date_range
from app.services.analytics.engine import compute_metric
from app.services.custom_metric_service import metric_config_of
from app.services.data_source_service import data_source_registry

logger = logging.getLogger(__name__)

# report filter -> (data source, field) it narrows
REPORT_FILTER_FIELDS = {
    "project_status": ("projects", "status"),
    "task_status": ("tasks", "status"),
    "priority": ("tasks", "priority"),
}


def report_predicates(filters: ReportFilters, data_source: str) -> List[FilterPredicate]:
    """报表级过滤条件中适用于该数据源的部分"""
    predicates = []
    for name, (source, field) in REPORT_FILTER_FIELDS.items():
        value = getattr(filters, name)
        if value and source == data_source:
            predicates.append(FilterPredicate(field=field, operator="equals", value=value))
    return predicates


class SavedReportService:
    """保存的报表服务类"""

    def list_reports(self, db: Session, *, owner_id: int) -> List[SavedReport]:
        return crud.crud_saved_report.get_accessible(db, owner_id=owner_id)

    def get_report(self, db: Session, *, report_id: int, user_id: int) -> SavedReport:
        report = crud.crud_saved_report.get(db, id=report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        if report.owner_id != user_id and not report.is_public:
            raise PermissionDeniedError("No access to this report")
        return report

    def get_default(self, db: Session, *, owner_id: int) -> Optional[SavedReport]:
        return crud.crud_saved_report.get_default(db, owner_id=owner_id)

    def _get_owned(self, db: Session, *, report_id: int, owner_id: int) -> SavedReport:
        report = crud.crud_saved_report.get(db, id=report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        if report.owner_id != owner_id:
            raise PermissionDeniedError("Only the owner can modify this report")
        return report

    def create_report(self, db: Session, *, obj_in: SavedReportCreate, owner_id: int) -> SavedReport:
        validate_date_range(obj_in.configuration.date_range)
        if obj_in.is_default:
            crud.crud_saved_report.clear_default(db, owner_id=owner_id)
        return crud.crud_saved_report.create(db, obj_in=obj_in, owner_id=owner_id)

    def update_report(
        self,
        db: Session,
        *,
        report_id: int,
        obj_in: SavedReportUpdate,
        owner_id: int
    ) -> SavedReport:
        report = self._get_owned(db, report_id=report_id, owner_id=owner_id)
        if obj_in.configuration is not None:
            validate_date_range(obj_in.configuration.date_range)
        if obj_in.is_default:
            crud.crud_saved_report.clear_default(db, owner_id=owner_id, exclude_id=report.id)
        return crud.crud_saved_report.update(db, db_obj=report, obj_in=obj_in)

    def delete_report(self, db: Session, *, report_id: int, owner_id: int) -> None:
        self._get_owned(db, report_id=report_id, owner_id=owner_id)
        crud.crud_saved_report.remove(db, id=report_id)

    def set_default(self, db: Session, *, report_id: int, owner_id: int) -> SavedReport:
        """设为默认报表 (每个用户只有一个)"""
        report = self._get_owned(db, report_id=report_id, owner_id=owner_id)
        crud.crud_saved_report.clear_default(db, owner_id=owner_id, exclude_id=report.id)
        report.is_default = True
        db.commit()
        db.refresh(report)
        return report

    def run_report(
        self,
        db: Session,
        *,
        report_id: int,
        user_id: int,
        registry=None,
        now: Optional[datetime] = None
    ) -> SavedReportRun:
        """
        运行报表：逐个计算引用的自定义指标

        缺失或无权访问的指标、计算失败的指标都只记录在该指标的结果里，
        不会中断整个报表。
        """
        report = self.get_report(db, report_id=report_id, user_id=user_id)
        configuration = ReportConfiguration.model_validate(report.configuration or {})
        registry = registry or data_source_registry

        metrics = {m.id: m for m in crud.crud_custom_metric.get_many(db, ids=configuration.metric_ids)}
        results = []
        for metric_id in configuration.metric_ids:
            metric = metrics.get(metric_id)
            if metric is None or (metric.owner_id != user_id and not metric.is_public):
                results.append(ReportMetricResult(
                    metric_id=metric_id,
                    result=WidgetResult.failed(f"Metric {metric_id} not found", widget_id=str(metric_id))
                ))
                continue

            config = metric_config_of(metric)
            extra = report_predicates(configuration.filters, config.data_source)
            if extra:
                config = config.model_copy(update={"filters": list(config.filters) + extra})

            results.append(ReportMetricResult(
                metric_id=metric_id,
                name=metric.name,
                result=compute_metric(
                    config,
                    registry,
                    widget_id=str(metric_id),
                    now=now,
                    date_range_override=configuration.date_range
                )
            ))

        failed = sum(1 for r in results if r.result.status == "error")
        logger.info(f"Ran saved report {report_id}: {len(results)} metrics, {failed} failed")
        return SavedReportRun(
            report_id=report.id,
            date_range=configuration.date_range,
            results=results,
            computed_at=datetime.utcnow()
        )


# 创建全局实例
saved_report_service = SavedReportService()
