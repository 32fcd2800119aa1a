"""Dashboard业务服务"""
from typing import Callable, List, Optional, Sequence, TypeVar
from datetime import datetime
from sqlalchemy.orm import Session
import logging

from app import crud
from app.core.exceptions import ConflictError, DefinitionError, NotFoundError, PermissionDeniedError
from app.db.session import SessionLocal
from app.models.dashboard import Dashboard
from app.models.scheduled_report import ScheduledReport
from app.schemas.dashboard import (
    DashboardCreate, DashboardUpdate,
    DashboardListItem, DashboardDetail,
    SaveAsTemplateRequest, Widget
)
from app.models.dashboard_template import DashboardTemplate
from app.services.analytics.engine import validate_metric_config
from app.services.dashboard_editor import DashboardEditSession
from app.services.widget_refresh_service import dashboard_events

logger = logging.getLogger(__name__)

T = TypeVar("T")


def validate_widgets(widgets: Sequence[Widget]) -> None:
    """每个widget的配置必须可计算，且ID在dashboard内唯一"""
    seen = set()
    for widget in widgets:
        if widget.id in seen:
            raise DefinitionError(f"Duplicate widget id {widget.id}")
        seen.add(widget.id)
        validate_metric_config(widget.config)


def widgets_payload(widgets: Sequence[Widget]) -> List[dict]:
    return [w.model_dump(mode="json") for w in widgets]


class DashboardService:
    """Dashboard业务服务类"""

    # ===== 查询 =====

    def list_dashboards(
        self,
        db: Session,
        *,
        owner_id: int,
        include_public: bool = False,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[DashboardListItem]:
        """获取用户的Dashboard列表 (默认Dashboard在前，其次最近访问)"""
        dashboards = crud.crud_dashboard.get_by_owner(
            db,
            owner_id=owner_id,
            include_public=include_public,
            category=category,
            skip=skip,
            limit=limit
        )
        return [self.to_list_item(d) for d in dashboards]

    def get_dashboard(self, db: Session, *, dashboard_id: int, user_id: int) -> Dashboard:
        """读取Dashboard (所有者或公开)"""
        dashboard = crud.crud_dashboard.get(db, id=dashboard_id)
        if dashboard is None:
            raise NotFoundError(f"Dashboard {dashboard_id} not found")
        if dashboard.owner_id != user_id and not dashboard.is_public:
            raise PermissionDeniedError("No access to this dashboard")
        return dashboard

    def get_owned_dashboard(self, db: Session, *, dashboard_id: int, owner_id: int) -> Dashboard:
        """读取Dashboard，仅所有者可修改"""
        dashboard = crud.crud_dashboard.get(db, id=dashboard_id)
        if dashboard is None:
            raise NotFoundError(f"Dashboard {dashboard_id} not found")
        if dashboard.owner_id != owner_id:
            raise PermissionDeniedError("Only the owner can modify this dashboard")
        return dashboard

    def get_dashboard_detail(self, db: Session, *, dashboard_id: int, user_id: int) -> DashboardDetail:
        return self.to_detail(self.get_dashboard(db, dashboard_id=dashboard_id, user_id=user_id))

    # ===== 创建 / 元数据 =====

    def create_dashboard(
        self,
        db: Session,
        *,
        obj_in: DashboardCreate,
        owner_id: int
    ) -> Dashboard:
        """创建Dashboard"""
        validate_widgets(obj_in.widgets)

        if obj_in.is_default:
            crud.crud_dashboard.clear_default(db, owner_id=owner_id)

        data = obj_in.model_dump(exclude={"widgets"})
        dashboard = crud.crud_dashboard.create(
            db,
            obj_in=data,
            owner_id=owner_id,
            widgets=widgets_payload(obj_in.widgets),
            version=1,
        )
        logger.info(f"Created dashboard {dashboard.id} for owner {owner_id} with {len(obj_in.widgets)} widgets")
        return dashboard

    def update_dashboard(
        self,
        db: Session,
        *,
        dashboard_id: int,
        obj_in: DashboardUpdate,
        owner_id: int
    ) -> Dashboard:
        """更新Dashboard元数据"""
        dashboard = self.get_owned_dashboard(db, dashboard_id=dashboard_id, owner_id=owner_id)
        return crud.crud_dashboard.update(db, db_obj=dashboard, obj_in=obj_in)

    def delete_dashboard(self, db: Session, *, dashboard_id: int, owner_id: int) -> None:
        """删除Dashboard及引用它的定时报表"""
        dashboard = self.get_owned_dashboard(db, dashboard_id=dashboard_id, owner_id=owner_id)
        removed = db.query(ScheduledReport).filter(
            ScheduledReport.dashboard_id == dashboard.id
        ).delete(synchronize_session=False)
        db.delete(dashboard)
        db.commit()
        logger.info(f"Deleted dashboard {dashboard_id} ({removed} scheduled reports removed)")
        dashboard_events.publish(dashboard_id, [])

    def set_default(self, db: Session, *, dashboard_id: int, owner_id: int) -> Dashboard:
        """设为默认Dashboard (每个用户只有一个)"""
        dashboard = self.get_owned_dashboard(db, dashboard_id=dashboard_id, owner_id=owner_id)
        crud.crud_dashboard.clear_default(db, owner_id=owner_id, exclude_id=dashboard.id)
        dashboard.is_default = True
        db.commit()
        db.refresh(dashboard)
        return dashboard

    # ===== Widget编辑 =====

    def open_edit_session(self, db: Session, *, dashboard_id: int, owner_id: int) -> DashboardEditSession:
        dashboard = self.get_owned_dashboard(db, dashboard_id=dashboard_id, owner_id=owner_id)
        return DashboardEditSession(dashboard.widgets or [], version=dashboard.version)

    def save_dashboard(
        self,
        db: Session,
        *,
        dashboard_id: int,
        owner_id: int,
        widgets: Sequence[Widget],
        expected_version: Optional[int] = None
    ) -> Dashboard:
        """
        整体替换widgets列表

        Args:
            widgets: 新的widget列表 (有序)
            expected_version: 提供时，仅当存储的版本一致才写入，否则 ConflictError

        Returns:
            更新后的Dashboard
        """
        dashboard = self.get_owned_dashboard(db, dashboard_id=dashboard_id, owner_id=owner_id)
        validate_widgets(widgets)

        query = db.query(Dashboard).filter(Dashboard.id == dashboard.id)
        if expected_version is not None:
            query = query.filter(Dashboard.version == expected_version)

        updated = query.update(
            {
                Dashboard.widgets: widgets_payload(widgets),
                Dashboard.version: Dashboard.version + 1,
                Dashboard.updated_at: datetime.utcnow(),
            },
            synchronize_session=False
        )
        if not updated:
            db.rollback()
            raise ConflictError(
                f"Dashboard {dashboard_id} was modified by someone else (expected version {expected_version})"
            )
        db.commit()
        db.refresh(dashboard)
        logger.info(f"Saved dashboard {dashboard_id}: {len(widgets)} widgets, version {dashboard.version}")
        dashboard_events.publish(dashboard.id, widgets)
        return dashboard

    def edit_widgets(
        self,
        db: Session,
        *,
        dashboard_id: int,
        owner_id: int,
        edit: Callable[[DashboardEditSession], T]
    ) -> T:
        """打开编辑会话，执行单个编辑操作并保存"""
        session = self.open_edit_session(db, dashboard_id=dashboard_id, owner_id=owner_id)
        result = edit(session)
        if session.dirty:
            self.save_dashboard(
                db,
                dashboard_id=dashboard_id,
                owner_id=owner_id,
                widgets=session.widgets
            )
        return result

    # ===== 访问统计 =====

    def record_access(
        self,
        dashboard_id: int,
        session_factory: Callable[[], Session] = SessionLocal
    ) -> None:
        """
        记录一次访问 (access_count + 1, last_accessed_at)

        在 BackgroundTasks 中执行，使用独立会话；失败只记录日志。
        """
        db = session_factory()
        try:
            crud.crud_dashboard.increment_access(
                db,
                dashboard_id=dashboard_id,
                accessed_at=datetime.utcnow()
            )
        except Exception as e:
            db.rollback()
            logger.warning(f"Failed to record access for dashboard {dashboard_id}: {e}")
        finally:
            db.close()

    # ===== 模板 =====

    def save_as_template(
        self,
        db: Session,
        *,
        dashboard_id: int,
        owner_id: int,
        obj_in: SaveAsTemplateRequest
    ) -> DashboardTemplate:
        """将Dashboard的widgets另存为自定义模板"""
        dashboard = self.get_dashboard(db, dashboard_id=dashboard_id, user_id=owner_id)
        template = crud.crud_dashboard_template.create(
            db,
            obj_in={
                "name": obj_in.name or dashboard.name,
                "description": obj_in.description if obj_in.description is not None else dashboard.description,
                "category": obj_in.category,
                "widgets": list(dashboard.widgets or []),
                "tags": list(dashboard.tags or []),
            },
            owner_id=owner_id,
            is_built_in=False,
            usage_count=0,
        )
        logger.info(f"Saved dashboard {dashboard_id} as template {template.id}")
        return template

    # ===== 转换 =====

    def to_list_item(self, dashboard: Dashboard) -> DashboardListItem:
        return DashboardListItem(
            id=dashboard.id,
            name=dashboard.name,
            description=dashboard.description,
            is_public=dashboard.is_public,
            tags=dashboard.tags or [],
            category=dashboard.category,
            owner_id=dashboard.owner_id,
            widget_count=len(dashboard.widgets or []),
            is_template=dashboard.is_template,
            is_default=dashboard.is_default,
            access_count=dashboard.access_count,
            last_accessed_at=dashboard.last_accessed_at,
            version=dashboard.version,
            created_at=dashboard.created_at,
            updated_at=dashboard.updated_at
        )

    def to_detail(self, dashboard: Dashboard) -> DashboardDetail:
        return DashboardDetail.model_validate(dashboard)

    def get_widgets(self, dashboard: Dashboard) -> List[Widget]:
        return [Widget.model_validate(w) for w in dashboard.widgets or []]

    def find_widget(self, dashboard: Dashboard, widget_id: str) -> Widget:
        for widget in self.get_widgets(dashboard):
            if widget.id == widget_id:
                return widget
        raise NotFoundError(f"Widget {widget_id} not found")


# 创建全局实例
dashboard_service = DashboardService()
