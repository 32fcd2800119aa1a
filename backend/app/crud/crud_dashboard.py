"""Dashboard CRUD操作"""
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_, func
import logging

from app.crud.base import CRUDBase
from app.models.dashboard import Dashboard
from app.schemas.dashboard import DashboardCreate, DashboardUpdate

logger = logging.getLogger(__name__)


class CRUDDashboard(CRUDBase[Dashboard, DashboardCreate, DashboardUpdate]):
    """Dashboard CRUD操作类"""

    def get_by_owner(
        self,
        db: Session,
        *,
        owner_id: int,
        include_public: bool = False,
        category: Optional[str] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Dashboard]:
        """获取用户的Dashboard列表

        排序：默认Dashboard在前，其次按最近访问时间 (从未访问的按创建时间) 倒序。

        Args:
            owner_id: 用户ID
            include_public: 是否包含他人公开的Dashboard
            category: 分类过滤

        Returns:
            Dashboard列表
        """
        query = db.query(Dashboard).filter(Dashboard.is_template == False)
        if include_public:
            query = query.filter(or_(Dashboard.owner_id == owner_id, Dashboard.is_public == True))
        else:
            query = query.filter(Dashboard.owner_id == owner_id)

        if category:
            query = query.filter(Dashboard.category == category)

        return (
            query.order_by(
                Dashboard.is_default.desc(),
                func.coalesce(Dashboard.last_accessed_at, Dashboard.created_at).desc(),
                Dashboard.id.desc(),
            )
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_default(self, db: Session, *, owner_id: int) -> Optional[Dashboard]:
        return db.query(Dashboard).filter(
            Dashboard.owner_id == owner_id,
            Dashboard.is_default == True
        ).first()

    def clear_default(self, db: Session, *, owner_id: int, exclude_id: Optional[int] = None) -> int:
        """取消该用户其他Dashboard的默认标记 (不提交)"""
        query = db.query(Dashboard).filter(
            Dashboard.owner_id == owner_id,
            Dashboard.is_default == True
        )
        if exclude_id is not None:
            query = query.filter(Dashboard.id != exclude_id)
        return query.update({Dashboard.is_default: False}, synchronize_session="fetch")

    def increment_access(self, db: Session, *, dashboard_id: int, accessed_at) -> int:
        """access_count + 1 in a single UPDATE so concurrent views are not lost"""
        updated = db.query(Dashboard).filter(Dashboard.id == dashboard_id).update(
            {
                Dashboard.access_count: Dashboard.access_count + 1,
                Dashboard.last_accessed_at: accessed_at,
            },
            synchronize_session=False
        )
        db.commit()
        return updated


crud_dashboard = CRUDDashboard(Dashboard)
