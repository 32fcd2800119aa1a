"""Dashboard模板 API端点"""
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.dashboard import DashboardDetail
from app.schemas.dashboard_template import (
    CreateFromTemplateRequest, DashboardTemplate, DashboardTemplateCreate, DashboardTemplateUpdate
)
from app.services.dashboard_service import dashboard_service
from app.services.dashboard_template_service import dashboard_template_service

router = APIRouter()


@router.get("/", response_model=List[DashboardTemplate])
def list_templates(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    category: Optional[str] = Query(None),
    include_built_in: bool = Query(True),
) -> Any:
    """模板列表 (内置在前，其次按使用次数)"""
    return dashboard_template_service.list_templates(
        db, owner_id=current_user_id, category=category, include_built_in=include_built_in
    )


@router.get("/categories", response_model=List[str])
def list_template_categories(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
) -> Any:
    return dashboard_template_service.get_categories(db, owner_id=current_user_id)


@router.get("/{template_id}", response_model=DashboardTemplate)
def get_template(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    template_id: int,
) -> Any:
    return dashboard_template_service.get_template(db, template_id=template_id, owner_id=current_user_id)


@router.post("/", response_model=DashboardTemplate, status_code=status.HTTP_201_CREATED)
def create_template(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    template_in: DashboardTemplateCreate,
) -> Any:
    return dashboard_template_service.create_template(db, obj_in=template_in, owner_id=current_user_id)


@router.put("/{template_id}", response_model=DashboardTemplate)
def update_template(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    template_id: int,
    template_in: DashboardTemplateUpdate,
) -> Any:
    return dashboard_template_service.update_template(
        db, template_id=template_id, obj_in=template_in, owner_id=current_user_id
    )


@router.delete("/{template_id}")
def delete_template(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    template_id: int,
) -> Any:
    dashboard_template_service.delete_template(db, template_id=template_id, owner_id=current_user_id)
    return {"message": "Template deleted successfully"}


@router.post("/{template_id}/dashboards", response_model=DashboardDetail, status_code=status.HTTP_201_CREATED)
def create_dashboard_from_template(
    *,
    db: Session = Depends(deps.get_db),
    current_user_id: int = Depends(deps.get_current_user_id),
    template_id: int,
    request_in: CreateFromTemplateRequest,
) -> Any:
    """从模板创建Dashboard"""
    dashboard = dashboard_template_service.create_dashboard_from_template(
        db, template_id=template_id, owner_id=current_user_id, obj_in=request_in
    )
    return dashboard_service.to_detail(dashboard)
