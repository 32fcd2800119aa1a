import pytest

from app.core.exceptions import DefinitionError, NotFoundError
from app.schemas.dashboard import Position, Widget, WidgetCreate, WidgetUpdate
from app.services.dashboard_editor import COPY_SUFFIX, DashboardEditSession


def make_widget(title="Completed Tasks", x=0, y=0, **config):
    return Widget(
        type="metric_card",
        position=Position(x=x, y=y, w=3, h=2),
        config={
            "title": title,
            "data_source": "tasks",
            "filters": [{"field": "status", "operator": "equals", "value": "done"}],
            "aggregation": {"function": "count"},
            **config,
        },
    )


class TestDuplicate:

    def test_clone_gets_new_id_same_config_and_shifted_position(self):
        source = make_widget(x=2, y=1)
        session = DashboardEditSession([source], duplicate_offset=(1, 1))

        clone = session.duplicate_widget(source.id)

        assert clone.id != source.id
        assert clone.config.model_dump(exclude={"title"}) == source.config.model_dump(exclude={"title"})
        assert clone.config.title == source.config.title + COPY_SUFFIX
        assert (clone.position.x, clone.position.y) != (source.position.x, source.position.y)
        assert (clone.position.w, clone.position.h) == (source.position.w, source.position.h)
        assert [w.id for w in session.widgets] == [source.id, clone.id]
        assert session.dirty

    def test_clone_is_independent_of_source(self):
        source = make_widget()
        session = DashboardEditSession([source])
        clone = session.duplicate_widget(source.id)

        session.update_widget(clone.id, WidgetUpdate(position=Position(x=8, y=8, w=3, h=2)))

        assert session.get_widget(source.id).position.x == 0

    def test_unknown_widget(self):
        session = DashboardEditSession([make_widget()])
        with pytest.raises(NotFoundError):
            session.duplicate_widget("missing")


class TestEdits:

    def test_add_assigns_fresh_id(self):
        existing = make_widget()
        session = DashboardEditSession([existing])
        added = session.add_widget(Widget(**existing.model_dump()))
        assert added.id != existing.id
        assert len(session.widgets) == 2

    def test_add_rejects_invalid_config_without_touching_the_list(self):
        session = DashboardEditSession([])
        bad = WidgetCreate(
            type="metric_card",
            config={
                "title": "Bad",
                "data_source": "tasks",
                "aggregation": {"function": "sum", "field": "status"},
            },
        )
        with pytest.raises(DefinitionError):
            session.add_widget(bad)
        assert session.widgets == []
        assert not session.dirty

    def test_partial_update_keeps_other_parts(self):
        widget = make_widget()
        session = DashboardEditSession([widget])
        updated = session.update_widget(widget.id, WidgetUpdate(position=Position(x=4, y=0, w=6, h=4)))
        assert updated.position.w == 6
        assert updated.config == widget.config
        assert updated.type == widget.type

    def test_remove(self):
        first, second = make_widget("A"), make_widget("B")
        session = DashboardEditSession([first, second])
        session.remove_widget(first.id)
        assert [w.id for w in session.widgets] == [second.id]
        with pytest.raises(NotFoundError):
            session.remove_widget(first.id)

    def test_session_works_on_a_copy(self):
        widget = make_widget()
        session = DashboardEditSession([widget])
        session.update_widget(widget.id, WidgetUpdate(position=Position(x=9, y=9, w=1, h=1)))
        assert widget.position.x == 0

    def test_payload_is_json_ready(self):
        widget = make_widget()
        session = DashboardEditSession([widget.model_dump(mode="json")])
        payload = session.to_payload()
        assert payload[0]["id"] == widget.id
        assert payload[0]["config"]["filters"][0]["value"] == "done"
