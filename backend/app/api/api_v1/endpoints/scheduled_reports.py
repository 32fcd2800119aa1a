"""定时报表 API端点"""
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.scheduled_report import ScheduledReport, ScheduledReportCreate, ScheduledReportUpdate
from app.services.data_source_service import DataSourceRegistry
from app.services.scheduled_report_service import scheduled_report_service

router = APIRouter()


@router.get("/", response_model=List[ScheduledReport])
def list_scheduled_reports(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    dashboard_id: Optional[int] = Query(None),
) -> Any:
    return scheduled_report_service.list_reports(db, owner_id=current_user_id, dashboard_id=dashboard_id)


@router.post("/", response_model=ScheduledReport, status_code=status.HTTP_201_CREATED)
def create_scheduled_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_in: ScheduledReportCreate,
) -> Any:
    """创建定时报表 (立即计算下一次发送时间)"""
    return scheduled_report_service.create_report(db, obj_in=report_in, owner_id=current_user_id)


@router.get("/{report_id}", response_model=ScheduledReport)
def get_scheduled_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_id: int,
) -> Any:
    return scheduled_report_service.get_report(db, report_id=report_id, owner_id=current_user_id)


@router.put("/{report_id}", response_model=ScheduledReport)
def update_scheduled_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_id: int,
    report_in: ScheduledReportUpdate,
) -> Any:
    return scheduled_report_service.update_report(
        db, report_id=report_id, obj_in=report_in, owner_id=current_user_id
    )


@router.delete("/{report_id}")
def delete_scheduled_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_id: int,
) -> Any:
    scheduled_report_service.delete_report(db, report_id=report_id, owner_id=current_user_id)
    return {"message": "Scheduled report deleted successfully"}


@router.post("/{report_id}/toggle", response_model=ScheduledReport)
def toggle_scheduled_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_id: int,
) -> Any:
    """启用 / 停用"""
    return scheduled_report_service.toggle_active(db, report_id=report_id, owner_id=current_user_id)


@router.post("/{report_id}/send", response_model=ScheduledReport)
async def send_scheduled_report_now(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    registry: DataSourceRegistry = Depends(deps.get_data_source_registry),
    report_id: int,
) -> Any:
    """立即投递一次 (结果记录在 error_count / last_error)"""
    report = scheduled_report_service.get_report(db, report_id=report_id, owner_id=current_user_id)
    await scheduled_report_service.dispatch_report(db, report, registry=registry)
    return report
