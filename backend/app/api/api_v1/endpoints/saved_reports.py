"""保存的报表 API端点"""
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.saved_report import SavedReport, SavedReportCreate, SavedReportRun, SavedReportUpdate
from app.services.data_source_service import DataSourceRegistry
from app.services.saved_report_service import saved_report_service

router = APIRouter()


@router.get("/", response_model=List[SavedReport])
def list_reports(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
) -> Any:
    return saved_report_service.list_reports(db, owner_id=current_user_id)


@router.get("/default", response_model=Optional[SavedReport])
def get_default_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
) -> Any:
    return saved_report_service.get_default(db, owner_id=current_user_id)


@router.get("/{report_id}", response_model=SavedReport)
def get_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_id: int,
) -> Any:
    return saved_report_service.get_report(db, report_id=report_id, user_id=current_user_id)


@router.post("/", response_model=SavedReport, status_code=status.HTTP_201_CREATED)
def create_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_in: SavedReportCreate,
) -> Any:
    return saved_report_service.create_report(db, obj_in=report_in, owner_id=current_user_id)


@router.put("/{report_id}", response_model=SavedReport)
def update_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_id: int,
    report_in: SavedReportUpdate,
) -> Any:
    return saved_report_service.update_report(
        db, report_id=report_id, obj_in=report_in, owner_id=current_user_id
    )


@router.delete("/{report_id}")
def delete_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_id: int,
) -> Any:
    saved_report_service.delete_report(db, report_id=report_id, owner_id=current_user_id)
    return {"message": "Report deleted successfully"}


@router.post("/{report_id}/default", response_model=SavedReport)
def set_default_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    report_id: int,
) -> Any:
    return saved_report_service.set_default(db, report_id=report_id, owner_id=current_user_id)


@router.post("/{report_id}/run", response_model=SavedReportRun)
def run_report(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    registry: DataSourceRegistry = Depends(deps.get_data_source_registry),
    report_id: int,
) -> Any:
    """运行报表 (每个指标独立成败)"""
    return saved_report_service.run_report(
        db, report_id=report_id, user_id=current_user_id, registry=registry
    )
