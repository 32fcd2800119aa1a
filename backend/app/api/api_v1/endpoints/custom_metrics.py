"""自定义指标 API端点"""
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.analytics import DataSourceId
from app.schemas.custom_metric import (
    CustomMetric, CustomMetricCreate, CustomMetricUpdate, MetricCalculationResponse
)
from app.services.custom_metric_service import custom_metric_service
from app.services.data_source_service import DataSourceRegistry

router = APIRouter()


@router.get("/", response_model=List[CustomMetric])
def list_metrics(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    scope: str = Query("all", pattern="^(mine|public|all)$", description="范围: mine/public/all"),
    data_source: Optional[DataSourceId] = Query(None),
) -> Any:
    """获取自定义指标列表"""
    return custom_metric_service.list_metrics(
        db, owner_id=current_user_id, scope=scope, data_source=data_source
    )


@router.post("/", response_model=CustomMetric, status_code=status.HTTP_201_CREATED)
def create_metric(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    metric_in: CustomMetricCreate,
) -> Any:
    """创建自定义指标 (定义无效返回422)"""
    return custom_metric_service.create_metric(db, obj_in=metric_in, owner_id=current_user_id)


@router.get("/{metric_id}", response_model=CustomMetric)
def get_metric(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    metric_id: int,
) -> Any:
    return custom_metric_service.get_metric(db, metric_id=metric_id, user_id=current_user_id)


@router.put("/{metric_id}", response_model=CustomMetric)
def update_metric(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    metric_id: int,
    metric_in: CustomMetricUpdate,
) -> Any:
    """更新自定义指标 (仅所有者)"""
    return custom_metric_service.update_metric(
        db, metric_id=metric_id, obj_in=metric_in, owner_id=current_user_id
    )


@router.delete("/{metric_id}")
def delete_metric(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    metric_id: int,
) -> Any:
    """删除自定义指标 (仅所有者，不影响已复制到Dashboard的Widget)"""
    custom_metric_service.delete_metric(db, metric_id=metric_id, owner_id=current_user_id)
    return {"message": "Metric deleted successfully"}


@router.get("/{metric_id}/calculate", response_model=MetricCalculationResponse)
def calculate_metric(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    registry: DataSourceRegistry = Depends(deps.get_data_source_registry),
    metric_id: int,
    date_range: Optional[str] = Query(None, description="覆盖指标的时间范围"),
) -> Any:
    """计算自定义指标"""
    result = custom_metric_service.calculate(
        db,
        metric_id=metric_id,
        user_id=current_user_id,
        date_range=date_range,
        registry=registry
    )
    return MetricCalculationResponse(metric_id=metric_id, date_range=date_range, result=result)
