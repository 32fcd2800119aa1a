"""Dashboard Widget API端点

Every call edits the dashboard's widget list in an edit session and saves it
back as a whole.
"""
from typing import Any
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.analytics import WidgetResult
from app.schemas.dashboard import Widget, WidgetCreate, WidgetUpdate
from app.services.dashboard_service import dashboard_service
from app.services.dashboard_refresh_service import dashboard_refresh_service
from app.services.data_source_service import DataSourceRegistry

router = APIRouter()


@router.post("/dashboards/{dashboard_id}/widgets", response_model=Widget, status_code=status.HTTP_201_CREATED)
def create_widget(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: int,
    widget_in: WidgetCreate,
) -> Any:
    """添加Widget到Dashboard"""
    return dashboard_service.edit_widgets(
        db,
        dashboard_id=dashboard_id,
        owner_id=current_user_id,
        edit=lambda session: session.add_widget(widget_in)
    )


@router.put("/dashboards/{dashboard_id}/widgets/{widget_id}", response_model=Widget)
def update_widget(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: int,
    widget_id: str,
    widget_in: WidgetUpdate,
) -> Any:
    """更新Widget配置"""
    return dashboard_service.edit_widgets(
        db,
        dashboard_id=dashboard_id,
        owner_id=current_user_id,
        edit=lambda session: session.update_widget(widget_id, widget_in)
    )


@router.delete("/dashboards/{dashboard_id}/widgets/{widget_id}")
def delete_widget(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: int,
    widget_id: str,
) -> Any:
    """删除Widget"""
    dashboard_service.edit_widgets(
        db,
        dashboard_id=dashboard_id,
        owner_id=current_user_id,
        edit=lambda session: session.remove_widget(widget_id)
    )
    return {"message": "Widget deleted successfully"}


@router.post(
    "/dashboards/{dashboard_id}/widgets/{widget_id}/duplicate",
    response_model=Widget,
    status_code=status.HTTP_201_CREATED
)
def duplicate_widget(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: int,
    widget_id: str,
) -> Any:
    """复制Widget (新ID，标题加 " (Copy)"，位置偏移)"""
    return dashboard_service.edit_widgets(
        db,
        dashboard_id=dashboard_id,
        owner_id=current_user_id,
        edit=lambda session: session.duplicate_widget(widget_id)
    )


@router.get("/dashboards/{dashboard_id}/widgets/{widget_id}/result", response_model=WidgetResult)
async def get_widget_result(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    registry: DataSourceRegistry = Depends(deps.get_data_source_registry),
    dashboard_id: int,
    widget_id: str,
) -> Any:
    """计算单个Widget"""
    dashboard = dashboard_service.get_dashboard(db, dashboard_id=dashboard_id, user_id=current_user_id)
    widget = dashboard_service.find_widget(dashboard, widget_id)
    results = await dashboard_refresh_service.compute_widgets([widget], registry=registry)
    return results[0]
