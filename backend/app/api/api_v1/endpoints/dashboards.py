"""Dashboard API端点"""
from typing import Any, Callable, List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session
import logging

from app.api import deps
from app.core.exceptions import AnalyticsError
from app.db.session import get_db_session
from app.schemas.dashboard import (
    DashboardCreate, DashboardUpdate, DashboardSave,
    DashboardListItem, DashboardDetail, DashboardResults,
    SaveAsTemplateRequest
)
from app.schemas.dashboard_template import DashboardTemplate
from app.services.dashboard_service import dashboard_service
from app.services.dashboard_refresh_service import dashboard_refresh_service
from app.services.data_source_service import DataSourceRegistry
from app.services.widget_refresh_service import DashboardLiveSession

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=List[DashboardListItem])
def get_dashboards(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    include_public: bool = Query(False, description="是否包含他人公开的Dashboard"),
    category: Optional[str] = Query(None, description="分类"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> Any:
    """获取Dashboard列表 (默认Dashboard在前，其次最近访问)"""
    return dashboard_service.list_dashboards(
        db,
        owner_id=current_user_id,
        include_public=include_public,
        category=category,
        skip=skip,
        limit=limit
    )


@router.get("/{dashboard_id}", response_model=DashboardDetail)
def get_dashboard(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    session_factory: Callable[[], Session] = Depends(deps.get_session_factory),
    background_tasks: BackgroundTasks,
    dashboard_id: int,
) -> Any:
    """获取Dashboard详情，并在后台记录一次访问"""
    detail = dashboard_service.get_dashboard_detail(
        db,
        dashboard_id=dashboard_id,
        user_id=current_user_id
    )
    background_tasks.add_task(dashboard_service.record_access, dashboard_id, session_factory)
    return detail


@router.post("/", response_model=DashboardDetail, status_code=status.HTTP_201_CREATED)
def create_dashboard(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_in: DashboardCreate,
) -> Any:
    """创建Dashboard"""
    dashboard = dashboard_service.create_dashboard(db, obj_in=dashboard_in, owner_id=current_user_id)
    return dashboard_service.to_detail(dashboard)


@router.put("/{dashboard_id}", response_model=DashboardDetail)
def update_dashboard(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: int,
    dashboard_in: DashboardUpdate,
) -> Any:
    """更新Dashboard元数据"""
    dashboard = dashboard_service.update_dashboard(
        db,
        dashboard_id=dashboard_id,
        obj_in=dashboard_in,
        owner_id=current_user_id
    )
    return dashboard_service.to_detail(dashboard)


@router.delete("/{dashboard_id}")
def delete_dashboard(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: int,
) -> Any:
    """删除Dashboard"""
    dashboard_service.delete_dashboard(db, dashboard_id=dashboard_id, owner_id=current_user_id)
    return {"message": "Dashboard deleted successfully"}


@router.post("/{dashboard_id}/default", response_model=DashboardDetail)
def set_default_dashboard(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: int,
) -> Any:
    """设为默认Dashboard"""
    dashboard = dashboard_service.set_default(db, dashboard_id=dashboard_id, owner_id=current_user_id)
    return dashboard_service.to_detail(dashboard)


@router.put("/{dashboard_id}/widgets", response_model=DashboardDetail)
def save_dashboard_widgets(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: int,
    save_in: DashboardSave,
) -> Any:
    """整体保存widgets列表 (提供 expected_version 时版本不一致返回409)"""
    dashboard = dashboard_service.save_dashboard(
        db,
        dashboard_id=dashboard_id,
        owner_id=current_user_id,
        widgets=save_in.widgets,
        expected_version=save_in.expected_version
    )
    return dashboard_service.to_detail(dashboard)


@router.get("/{dashboard_id}/results", response_model=DashboardResults)
async def get_dashboard_results(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    registry: DataSourceRegistry = Depends(deps.get_data_source_registry),
    dashboard_id: int,
) -> Any:
    """计算Dashboard所有Widget (单个失败不影响其他)"""
    dashboard = dashboard_service.get_dashboard(db, dashboard_id=dashboard_id, user_id=current_user_id)
    return await dashboard_refresh_service.compute_dashboard(
        dashboard.id,
        dashboard.name,
        dashboard_service.get_widgets(dashboard),
        registry=registry
    )


@router.post("/{dashboard_id}/save-as-template", response_model=DashboardTemplate, status_code=status.HTTP_201_CREATED)
def save_dashboard_as_template(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: int,
    template_in: SaveAsTemplateRequest,
) -> Any:
    """另存为模板"""
    return dashboard_service.save_as_template(
        db,
        dashboard_id=dashboard_id,
        owner_id=current_user_id,
        obj_in=template_in
    )


@router.websocket("/{dashboard_id}/live")
async def dashboard_live(
    websocket: WebSocket,
    dashboard_id: int,
    token: Optional[str] = Query(None),
    registry: DataSourceRegistry = Depends(deps.get_data_source_registry),
    session_factory: Callable[[], Session] = Depends(deps.get_session_factory),
):
    """
    实时Dashboard

    Pushes one message per widget result (initial computation, record
    changes, interval timers). Sending "refresh" recomputes every widget.
    Widget list saves made elsewhere are applied to the open session.
    """
    user_id = deps.user_id_from_token(token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        with get_db_session(session_factory) as db:
            dashboard = dashboard_service.get_dashboard(db, dashboard_id=dashboard_id, user_id=user_id)
            widgets = dashboard_service.get_widgets(dashboard)
    except AnalyticsError as e:
        logger.warning(f"Live dashboard {dashboard_id} rejected: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    async def send_result(result):
        await websocket.send_json(result.model_dump(mode="json"))

    session = DashboardLiveSession(dashboard_id, widgets, on_result=send_result, registry=registry)
    try:
        await session.mount()
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "refresh":
                await session.refresh_all()
    except WebSocketDisconnect:
        logger.info(f"Live dashboard {dashboard_id} disconnected")
    finally:
        await session.unmount()
