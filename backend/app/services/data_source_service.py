"""
数据源服务

Maps each data source id onto a fetcher returning plain record dicts. The
default fetchers read the SQLAlchemy record tables; callers (tests, other
backends) can register their own fetcher per source.
"""
import logging
from datetime import timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from app.core.exceptions import DefinitionError
from app.db.session import SessionLocal
from app.models.records import Contact, Invoice, Project, ProjectPayment, Task
from app.schemas.analytics import FilterPredicate
from app.services.analytics import field_registry
from app.services.analytics.date_ranges import DateRange

logger = logging.getLogger(__name__)

# (filters, date_range) -> records; filters/date_range are hints a fetcher may push down
Fetcher = Callable[[Sequence[FilterPredicate], Optional[DateRange]], List[Dict[str, Any]]]

SOURCE_MODELS = {
    "projects": Project,
    "tasks": Task,
    "contacts": Contact,
    "payments": ProjectPayment,
    "invoices": Invoice,
}


def model_to_record(obj: Any) -> Dict[str, Any]:
    """ORM row -> dict keyed by column attribute name"""
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


class SQLAlchemyFetcher:
    """Reads one record table; the date range lower bound is pushed into SQL."""

    def __init__(self, source_id: str, model, session_factory: Callable[[], Session]):
        self.source_id = source_id
        self.model = model
        self.session_factory = session_factory

    def __call__(
        self,
        filters: Sequence[FilterPredicate],
        date_range: Optional[DateRange] = None
    ) -> List[Dict[str, Any]]:
        db = self.session_factory()
        try:
            query = db.query(self.model)
            if date_range is not None:
                column = getattr(self.model, field_registry.timestamp_field(self.source_id))
                # Columns hold naive UTC
                start = date_range.start.astimezone(timezone.utc).replace(tzinfo=None)
                query = query.filter(column >= start)
            rows = query.all()
            return [model_to_record(row) for row in rows]
        finally:
            db.close()


class DataSourceRegistry:
    """data source id -> fetcher"""

    def __init__(self):
        self._fetchers: Dict[str, Fetcher] = {}

    def register(self, source_id: str, fetcher: Fetcher) -> None:
        field_registry.get_schema(source_id)
        self._fetchers[source_id] = fetcher
        logger.debug(f"Registered fetcher for data source {source_id}")

    def unregister(self, source_id: str) -> None:
        self._fetchers.pop(source_id, None)

    def has(self, source_id: str) -> bool:
        return source_id in self._fetchers

    def fetch(
        self,
        source_id: str,
        filters: Sequence[FilterPredicate] = (),
        date_range: Optional[DateRange] = None
    ) -> List[Dict[str, Any]]:
        """
        获取数据源记录

        Args:
            source_id: 数据源ID
            filters: 过滤条件 (fetcher 可选择下推)
            date_range: 已解析的时间范围 (fetcher 可选择下推)

        Returns:
            记录列表 (dict)
        """
        fetcher = self._fetchers.get(source_id)
        if fetcher is None:
            raise DefinitionError(f"No fetcher registered for data source '{source_id}'")
        return list(fetcher(filters, date_range))


def build_default_registry(session_factory: Callable[[], Session] = SessionLocal) -> DataSourceRegistry:
    registry = DataSourceRegistry()
    for source_id, model in SOURCE_MODELS.items():
        registry.register(source_id, SQLAlchemyFetcher(source_id, model, session_factory))
    return registry


# 创建全局实例
data_source_registry = build_default_registry()
