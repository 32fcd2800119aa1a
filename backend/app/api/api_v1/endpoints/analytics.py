"""分析引擎 API端点: 数据源描述、临时计算、记录变更通知"""
from typing import Any, List
from fastapi import APIRouter, Depends

from app.api import deps
from app.schemas.analytics import (
    ChangeNotification, ChangeNotificationResponse, DataSourceInfo, EvaluateRequest, WidgetResult
)
from app.services.analytics import field_registry
from app.services.analytics.date_ranges import available_ranges
from app.services.analytics.engine import compute_metric, validate_metric_config
from app.services.data_source_service import DataSourceRegistry
from app.services.widget_refresh_service import change_bus

router = APIRouter()


@router.get("/data-sources", response_model=List[DataSourceInfo])
def list_data_sources(
    current_user_id: int = Depends(deps.get_current_user_id),
) -> Any:
    """每个数据源的字段及类型"""
    return field_registry.list_data_sources()


@router.get("/date-ranges", response_model=List[str])
def list_date_ranges(
    current_user_id: int = Depends(deps.get_current_user_id),
) -> Any:
    return available_ranges()


@router.post("/evaluate", response_model=WidgetResult)
def evaluate_metric(
    *,
    current_user_id: int = Depends(deps.get_current_user_id),
    registry: DataSourceRegistry = Depends(deps.get_data_source_registry),
    request_in: EvaluateRequest,
) -> Any:
    """计算未保存的指标配置 (定义无效返回422)"""
    validate_metric_config(request_in)
    return compute_metric(request_in, registry)


@router.post("/changes", response_model=ChangeNotificationResponse)
def notify_change(
    *,
    current_user_id: int = Depends(deps.get_current_user_id),
    notification: ChangeNotification,
) -> Any:
    """记录变更通知 (由记录服务调用)，触发相关Widget刷新"""
    notified = change_bus.publish(notification.data_source, notification.record)
    return ChangeNotificationResponse(notified=notified)
