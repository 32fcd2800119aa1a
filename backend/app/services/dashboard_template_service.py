"""Dashboard模板服务"""
from typing import List, Optional
from sqlalchemy.orm import Session
import logging

from app import crud
from app.core.exceptions import NotFoundError, PermissionDeniedError
from app.models.dashboard import Dashboard
from app.models.dashboard_template import DashboardTemplate
from app.schemas.dashboard import DashboardCreate, Widget, new_widget_id
from app.schemas.dashboard_template import (
    CreateFromTemplateRequest, DashboardTemplateCreate, DashboardTemplateUpdate
)
from app.services.dashboard_service import dashboard_service, validate_widgets, widgets_payload

logger = logging.getLogger(__name__)


def _metric_card(title, data_source, position, function="count", field=None, filters=None, date_range=None):
    return {
        "type": "metric_card",
        "position": position,
        "config": {
            "title": title,
            "data_source": data_source,
            "filters": filters or [],
            "aggregation": {"function": function, "field": field},
            "date_range": date_range,
        },
    }


def _chart(widget_type, title, data_source, position, group_by, function="count", field=None, date_range=None):
    return {
        "type": widget_type,
        "position": position,
        "config": {
            "title": title,
            "data_source": data_source,
            "filters": [],
            "aggregation": {"function": function, "field": field, "group_by": group_by},
            "date_range": date_range,
        },
    }


def _status(value):
    return [{"field": "status", "operator": "equals", "value": value}]


# 内置模板
BUILT_IN_TEMPLATES = [
    {
        "name": "Executive Dashboard",
        "description": "High-level overview of business metrics for executives",
        "category": "Executive",
        "tags": ["executive", "overview", "kpi"],
        "widgets": [
            _metric_card("Total Revenue", "projects", {"x": 0, "y": 0, "w": 3, "h": 2},
                         function="sum", field="expected_revenue", date_range="month"),
            _metric_card("Active Projects", "projects", {"x": 3, "y": 0, "w": 3, "h": 2},
                         filters=_status("open")),
            _metric_card("Total Contacts", "contacts", {"x": 6, "y": 0, "w": 3, "h": 2},
                         date_range="month"),
            _metric_card("Completed Tasks", "tasks", {"x": 9, "y": 0, "w": 3, "h": 2},
                         filters=_status("done"), date_range="month"),
            _chart("bar_chart", "Revenue by Company", "projects", {"x": 0, "y": 2, "w": 6, "h": 4},
                   group_by="company", function="sum", field="expected_revenue", date_range="year"),
            _chart("pie_chart", "Project Status Distribution", "projects", {"x": 6, "y": 2, "w": 6, "h": 4},
                   group_by="status"),
        ],
    },
    {
        "name": "Project Management Dashboard",
        "description": "Detailed project tracking and task management metrics",
        "category": "Project Management",
        "tags": ["project", "management", "tasks"],
        "widgets": [
            _metric_card("Active Projects", "projects", {"x": 0, "y": 0, "w": 3, "h": 2},
                         filters=_status("open")),
            _metric_card("Pending Tasks", "tasks", {"x": 3, "y": 0, "w": 3, "h": 2},
                         filters=_status("todo")),
            _metric_card("In Progress", "tasks", {"x": 6, "y": 0, "w": 3, "h": 2},
                         filters=_status("in_progress")),
            _metric_card("Completed", "tasks", {"x": 9, "y": 0, "w": 3, "h": 2},
                         filters=_status("done")),
            _chart("bar_chart", "Tasks by Project", "tasks", {"x": 0, "y": 2, "w": 6, "h": 4},
                   group_by="project_id"),
            _chart("donut_chart", "Task Priority Distribution", "tasks", {"x": 6, "y": 2, "w": 6, "h": 4},
                   group_by="priority"),
        ],
    },
    {
        "name": "Sales Dashboard",
        "description": "Track sales performance and revenue metrics",
        "category": "Sales",
        "tags": ["sales", "revenue", "contacts"],
        "widgets": [
            _metric_card("Total Revenue", "projects", {"x": 0, "y": 0, "w": 4, "h": 2},
                         function="sum", field="expected_revenue", date_range="month"),
            _metric_card("Average Deal Size", "projects", {"x": 4, "y": 0, "w": 4, "h": 2},
                         function="average", field="expected_revenue", date_range="month"),
            _metric_card("New Contacts", "contacts", {"x": 8, "y": 0, "w": 4, "h": 2},
                         date_range="month"),
            _chart("bar_chart", "Payments by Method", "payments", {"x": 0, "y": 2, "w": 8, "h": 4},
                   group_by="method", function="sum", field="amount", date_range="year"),
            _chart("pie_chart", "Contacts by Company", "contacts", {"x": 8, "y": 2, "w": 4, "h": 4},
                   group_by="company", date_range="year"),
        ],
    },
]


class DashboardTemplateService:
    """Dashboard模板服务类"""

    def list_templates(
        self,
        db: Session,
        *,
        owner_id: int,
        category: Optional[str] = None,
        include_built_in: bool = True
    ) -> List[DashboardTemplate]:
        return crud.crud_dashboard_template.get_visible(
            db, owner_id=owner_id, category=category, include_built_in=include_built_in
        )

    def get_template(self, db: Session, *, template_id: int, owner_id: int) -> DashboardTemplate:
        template = crud.crud_dashboard_template.get(db, id=template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")
        if not template.is_built_in and template.owner_id != owner_id:
            raise PermissionDeniedError("No access to this template")
        return template

    def get_categories(self, db: Session, *, owner_id: int) -> List[str]:
        return crud.crud_dashboard_template.get_categories(db, owner_id=owner_id)

    def create_template(
        self,
        db: Session,
        *,
        obj_in: DashboardTemplateCreate,
        owner_id: int
    ) -> DashboardTemplate:
        validate_widgets(obj_in.widgets)
        data = obj_in.model_dump(exclude={"widgets"})
        return crud.crud_dashboard_template.create(
            db,
            obj_in=data,
            widgets=widgets_payload(obj_in.widgets),
            owner_id=owner_id,
            is_built_in=False,
            usage_count=0,
        )

    def update_template(
        self,
        db: Session,
        *,
        template_id: int,
        obj_in: DashboardTemplateUpdate,
        owner_id: int
    ) -> DashboardTemplate:
        """只有模板所有者可以修改 (内置模板属于系统用户)"""
        template = crud.crud_dashboard_template.get(db, id=template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")
        if template.owner_id != owner_id:
            if template.is_built_in:
                raise PermissionDeniedError("You cannot edit built-in templates")
            raise PermissionDeniedError("Only the owner can edit this template")

        update_data = obj_in.model_dump(exclude_unset=True, exclude={"widgets"})
        if obj_in.widgets is not None:
            validate_widgets(obj_in.widgets)
            update_data["widgets"] = widgets_payload(obj_in.widgets)
        return crud.crud_dashboard_template.update(db, db_obj=template, obj_in=update_data)

    def delete_template(self, db: Session, *, template_id: int, owner_id: int) -> None:
        """只能删除自己的自定义模板"""
        template = crud.crud_dashboard_template.get(db, id=template_id)
        if template is None:
            raise NotFoundError(f"Template {template_id} not found")
        if template.owner_id != owner_id or template.is_built_in:
            raise PermissionDeniedError("You can only delete your own custom templates")
        crud.crud_dashboard_template.remove(db, id=template_id)

    def create_dashboard_from_template(
        self,
        db: Session,
        *,
        template_id: int,
        owner_id: int,
        obj_in: CreateFromTemplateRequest
    ) -> Dashboard:
        """
        从模板创建Dashboard

        Widgets are copied with fresh ids; later edits to the template never
        reach dashboards created from it.
        """
        template = self.get_template(db, template_id=template_id, owner_id=owner_id)
        widgets = [
            Widget.model_validate({**widget, "id": new_widget_id()})
            for widget in template.widgets or []
        ]
        crud.crud_dashboard_template.increment_usage(db, template_id=template.id)
        dashboard = dashboard_service.create_dashboard(
            db,
            obj_in=DashboardCreate(
                name=obj_in.name or template.name,
                description=obj_in.description if obj_in.description is not None else template.description,
                tags=list(template.tags or []),
                category=template.category,
                widgets=widgets,
            ),
            owner_id=owner_id
        )
        logger.info(f"Created dashboard {dashboard.id} from template {template.id}")
        return dashboard

    def seed_built_in_templates(self, db: Session, *, owner_id: int) -> int:
        """
        写入内置模板 (按名称幂等)

        Returns:
            新写入的模板数量
        """
        created = 0
        for spec in BUILT_IN_TEMPLATES:
            if crud.crud_dashboard_template.get_built_in_by_name(db, name=spec["name"]):
                continue
            template_in = DashboardTemplateCreate.model_validate(spec)
            crud.crud_dashboard_template.create(
                db,
                obj_in=template_in.model_dump(exclude={"widgets"}),
                widgets=widgets_payload(template_in.widgets),
                owner_id=owner_id,
                is_built_in=True,
                usage_count=0,
            )
            created += 1
        if created:
            logger.info(f"Seeded {created} built-in dashboard templates")
        return created


# 创建全局实例
dashboard_template_service = DashboardTemplateService()
