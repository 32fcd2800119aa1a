"""自定义指标服务"""
from typing import List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
import logging

from app import crud
from app.core.exceptions import NotFoundError, PermissionDeniedError
from app.models.custom_metric import CustomMetric
from app.schemas.analytics import MetricConfig, WidgetResult
from app.schemas.custom_metric import CustomMetricCreate, CustomMetricUpdate
from app.services.analytics.engine import compute_metric, validate_metric_config
from app.services.analytics.date_ranges import validate_date_range
from app.services.data_source_service import data_source_registry

logger = logging.getLogger(__name__)


def metric_config_of(metric: CustomMetric) -> MetricConfig:
    """ORM行 -> 可计算的指标配置"""
    return MetricConfig(
        data_source=metric.data_source,
        filters=metric.filters or [],
        aggregation=metric.aggregation or {},
        date_range=metric.date_range,
    )


class CustomMetricService:
    """自定义指标服务类"""

    def list_metrics(
        self,
        db: Session,
        *,
        owner_id: int,
        scope: str = "all",
        data_source: Optional[str] = None
    ) -> List[CustomMetric]:
        """
        获取指标列表

        Args:
            scope: mine / public / all (自己的 + 公开的)
        """
        return crud.crud_custom_metric.get_accessible(
            db, owner_id=owner_id, scope=scope, data_source=data_source
        )

    def get_metric(self, db: Session, *, metric_id: int, user_id: int) -> CustomMetric:
        """所有者或公开指标可读"""
        metric = crud.crud_custom_metric.get(db, id=metric_id)
        if metric is None:
            raise NotFoundError(f"Metric {metric_id} not found")
        if metric.owner_id != user_id and not metric.is_public:
            raise PermissionDeniedError("No access to this metric")
        return metric

    def _get_owned(self, db: Session, *, metric_id: int, owner_id: int) -> CustomMetric:
        metric = crud.crud_custom_metric.get(db, id=metric_id)
        if metric is None:
            raise NotFoundError(f"Metric {metric_id} not found")
        if metric.owner_id != owner_id:
            raise PermissionDeniedError("Only the owner can modify this metric")
        return metric

    def create_metric(self, db: Session, *, obj_in: CustomMetricCreate, owner_id: int) -> CustomMetric:
        validate_metric_config(obj_in.to_metric_config())
        metric = crud.crud_custom_metric.create(db, obj_in=obj_in, owner_id=owner_id)
        logger.info(f"Created custom metric {metric.id} ({metric.data_source}) for owner {owner_id}")
        return metric

    def update_metric(
        self,
        db: Session,
        *,
        metric_id: int,
        obj_in: CustomMetricUpdate,
        owner_id: int
    ) -> CustomMetric:
        metric = self._get_owned(db, metric_id=metric_id, owner_id=owner_id)
        update_data = obj_in.model_dump(exclude_unset=True)

        # Validate the merged definition, not just the changed fields
        merged = metric_config_of(metric).model_dump()
        for key in ("data_source", "filters", "aggregation", "date_range"):
            if key in update_data:
                merged[key] = update_data[key]
        validate_metric_config(MetricConfig.model_validate(merged))

        return crud.crud_custom_metric.update(db, db_obj=metric, obj_in=update_data)

    def delete_metric(self, db: Session, *, metric_id: int, owner_id: int) -> None:
        """删除指标；已复制到widget中的配置不受影响"""
        self._get_owned(db, metric_id=metric_id, owner_id=owner_id)
        crud.crud_custom_metric.remove(db, id=metric_id)
        logger.info(f"Deleted custom metric {metric_id}")

    def calculate(
        self,
        db: Session,
        *,
        metric_id: int,
        user_id: int,
        date_range: Optional[str] = None,
        registry=None,
        now: Optional[datetime] = None
    ) -> WidgetResult:
        """
        计算指标

        Args:
            date_range: 覆盖指标自身的时间范围
            registry: 数据源注册表，默认使用全局实例

        Returns:
            WidgetResult (计算错误体现在 status="error")
        """
        metric = self.get_metric(db, metric_id=metric_id, user_id=user_id)
        validate_date_range(date_range)
        return compute_metric(
            metric_config_of(metric),
            registry or data_source_registry,
            widget_id=str(metric.id),
            now=now,
            date_range_override=date_range
        )


# 创建全局实例
custom_metric_service = CustomMetricService()
