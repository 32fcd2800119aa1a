"""Dashboard模板 CRUD操作"""
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_

from app.crud.base import CRUDBase
from app.models.dashboard_template import DashboardTemplate
from app.schemas.dashboard_template import DashboardTemplateCreate, DashboardTemplateUpdate


class CRUDDashboardTemplate(CRUDBase[DashboardTemplate, DashboardTemplateCreate, DashboardTemplateUpdate]):

    def get_visible(
        self,
        db: Session,
        *,
        owner_id: int,
        category: Optional[str] = None,
        include_built_in: bool = True
    ) -> List[DashboardTemplate]:
        """内置模板在前，其次按使用次数倒序、名称升序"""
        query = db.query(DashboardTemplate)
        if include_built_in:
            query = query.filter(or_(DashboardTemplate.owner_id == owner_id, DashboardTemplate.is_built_in == True))
        else:
            query = query.filter(
                DashboardTemplate.owner_id == owner_id,
                DashboardTemplate.is_built_in == False
            )
        if category:
            query = query.filter(DashboardTemplate.category == category)

        return query.order_by(
            DashboardTemplate.is_built_in.desc(),
            DashboardTemplate.usage_count.desc(),
            DashboardTemplate.name.asc(),
        ).all()

    def get_built_in_by_name(self, db: Session, *, name: str) -> Optional[DashboardTemplate]:
        return db.query(DashboardTemplate).filter(
            DashboardTemplate.is_built_in == True,
            DashboardTemplate.name == name
        ).first()

    def get_categories(self, db: Session, *, owner_id: int) -> List[str]:
        rows = db.query(DashboardTemplate.category).filter(
            or_(DashboardTemplate.owner_id == owner_id, DashboardTemplate.is_built_in == True)
        ).distinct().all()
        return sorted(row[0] for row in rows if row[0])

    def increment_usage(self, db: Session, *, template_id: int) -> None:
        db.query(DashboardTemplate).filter(DashboardTemplate.id == template_id).update(
            {DashboardTemplate.usage_count: DashboardTemplate.usage_count + 1},
            synchronize_session=False
        )


crud_dashboard_template = CRUDDashboardTemplate(DashboardTemplate)
