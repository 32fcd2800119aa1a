"""
Dashboard编辑会话

Widget edits happen on an in-memory copy of a dashboard's widget list; the
result is persisted as a whole through ``DashboardService.save_dashboard``.
"""
import logging
from typing import Iterable, List, Optional, Tuple, Union

from app.core.config import settings
from app.core.exceptions import NotFoundError
from app.schemas.dashboard import Position, Widget, WidgetCreate, WidgetUpdate, new_widget_id
from app.services.analytics.engine import validate_metric_config

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


class DashboardEditSession:
    """Ordered widget list of one dashboard under edit"""

    def __init__(
        self,
        widgets: Iterable[Union[Widget, dict]] = (),
        version: int = 1,
        duplicate_offset: Optional[Tuple[int, int]] = None
    ):
        self._widgets: List[Widget] = [
            w.model_copy(deep=True) if isinstance(w, Widget) else Widget.model_validate(w)
            for w in widgets
        ]
        self.version = version
        self.duplicate_offset = duplicate_offset or (settings.DUPLICATE_OFFSET_X, settings.DUPLICATE_OFFSET_Y)
        self.dirty = False

    @property
    def widgets(self) -> List[Widget]:
        return list(self._widgets)

    def _index_of(self, widget_id: str) -> int:
        for i, widget in enumerate(self._widgets):
            if widget.id == widget_id:
                return i
        raise NotFoundError(f"Widget {widget_id} not found")

    def get_widget(self, widget_id: str) -> Widget:
        return self._widgets[self._index_of(widget_id)]

    def add_widget(self, widget: Union[WidgetCreate, Widget]) -> Widget:
        """追加Widget，总是分配新的ID"""
        validate_metric_config(widget.config)
        data = widget.model_dump(exclude={"id"})
        new_widget = Widget.model_validate({**data, "id": new_widget_id()})
        self._widgets.append(new_widget)
        self.dirty = True
        return new_widget

    def update_widget(self, widget_id: str, changes: WidgetUpdate) -> Widget:
        index = self._index_of(widget_id)
        update_data = {
            field: getattr(changes, field)
            for field in changes.model_fields_set
            if getattr(changes, field) is not None
        }
        if "config" in update_data:
            validate_metric_config(update_data["config"])
        updated = self._widgets[index].model_copy(update=update_data, deep=True)
        self._widgets[index] = updated
        self.dirty = True
        return updated

    def remove_widget(self, widget_id: str) -> Widget:
        removed = self._widgets.pop(self._index_of(widget_id))
        self.dirty = True
        return removed

    def duplicate_widget(self, widget_id: str) -> Widget:
        """Clone with a new id, title suffixed " (Copy)" and position shifted by the grid offset"""
        source = self.get_widget(widget_id)
        dx, dy = self.duplicate_offset
        config = source.config.model_copy(update={"title": source.config.title + COPY_SUFFIX}, deep=True)
        position = Position(
            x=source.position.x + dx,
            y=source.position.y + dy,
            w=source.position.w,
            h=source.position.h,
        )
        clone = source.model_copy(
            update={"id": new_widget_id(), "config": config, "position": position},
            deep=True
        )
        self._widgets.append(clone)
        self.dirty = True
        return clone

    def to_payload(self) -> List[dict]:
        """JSON-ready widget list for the dashboards.widgets column"""
        return [w.model_dump(mode="json") for w in self._widgets]
