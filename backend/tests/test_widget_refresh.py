"""
Widget实时刷新 测试 (ChangeBus / WidgetRefresher / DashboardLiveSession)
"""
import asyncio

import pytest

from app.schemas.analytics import FilterPredicate, WidgetResult
from app.schemas.dashboard import DashboardCreate, Position, Widget
from app.services.dashboard_service import dashboard_service
from app.services.widget_refresh_service import (
    ChangeBus, DashboardEvents, DashboardLiveSession, WidgetRefresher, fingerprint
)

DONE = {"field": "status", "operator": "equals", "value": "done"}


def make_widget(filters=(DONE,), refresh_interval=None):
    return Widget(
        type="metric_card",
        config={
            "title": "Done",
            "data_source": "tasks",
            "filters": list(filters),
            "refresh_interval": refresh_interval,
        },
    )


def counting_compute():
    calls = []

    async def compute(widget):
        calls.append(widget.id)
        return WidgetResult(widget_id=widget.id, status="ready", value=len(calls))

    return compute, calls


class TestChangeBus:

    def test_fingerprint_ignores_predicate_order(self):
        a = FilterPredicate(field="status", operator="equals", value="done")
        b = FilterPredicate(field="priority", operator="in", value="high,urgent")
        assert fingerprint("tasks", [a, b]) == fingerprint("tasks", [b, a])
        assert fingerprint("tasks", [a]) != fingerprint("projects", [a])

    def test_publish_notifies_matching_subscribers(self):
        bus = ChangeBus()
        hits = []
        bus.subscribe("tasks", [FilterPredicate(**DONE)], lambda: hits.append("done"))
        bus.subscribe("tasks", [], lambda: hits.append("all"))

        assert bus.publish("tasks", {"status": "todo"}) == 1
        assert bus.publish("tasks", {"status": "done"}) == 2
        assert bus.publish("tasks") == 2
        assert bus.publish("projects") == 0
        assert hits.count("all") == 3
        assert hits.count("done") == 2

    def test_unsubscribe_and_counts(self):
        bus = ChangeBus()
        first = bus.subscribe("tasks", [], lambda: None)
        bus.subscribe("tasks", [], lambda: None)
        bus.subscribe("contacts", [], lambda: None)
        assert bus.subscriber_count() == 3
        assert bus.subscriber_count("tasks") == 2

        bus.unsubscribe(first)
        bus.unsubscribe(first)
        assert bus.subscriber_count("tasks") == 1

    def test_failing_callback_does_not_block_others(self):
        bus = ChangeBus()
        hits = []

        def broken():
            raise RuntimeError("listener gone")

        bus.subscribe("tasks", [], broken)
        bus.subscribe("tasks", [], lambda: hits.append(1))
        assert bus.publish("tasks") == 1
        assert hits == [1]


class TestWidgetRefresher:

    @pytest.mark.asyncio
    async def test_triggers_during_a_computation_collapse_into_one(self):
        gate = asyncio.Event()
        calls = []

        async def compute(widget):
            calls.append(widget.id)
            await gate.wait()
            return WidgetResult(widget_id=widget.id, status="ready", value=len(calls))

        refresher = WidgetRefresher(make_widget(), compute, debounce_seconds=0)
        await refresher.start()
        await asyncio.sleep(0)
        for _ in range(5):
            refresher.trigger()
        gate.set()

        result = await refresher.refresh()

        assert refresher.compute_count == 2
        assert len(calls) == 2
        assert result.value == 2
        await refresher.stop()

    @pytest.mark.asyncio
    async def test_change_burst_is_debounced(self):
        bus = ChangeBus()
        compute, calls = counting_compute()
        refresher = WidgetRefresher(make_widget(), compute, bus=bus, debounce_seconds=0.05)
        await refresher.start()
        await refresher.refresh()
        settled = refresher.compute_count

        for _ in range(3):
            bus.publish("tasks", {"status": "done"})
        await asyncio.sleep(0.2)

        assert refresher.compute_count == settled + 1
        await refresher.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_debounce_and_unsubscribes(self):
        bus = ChangeBus()
        compute, calls = counting_compute()
        refresher = WidgetRefresher(make_widget(), compute, bus=bus, debounce_seconds=0.05)
        await refresher.start()
        await refresher.refresh()
        settled = refresher.compute_count

        bus.publish("tasks")
        await asyncio.sleep(0)
        await refresher.stop()
        await asyncio.sleep(0.1)

        assert refresher.compute_count == settled
        assert bus.subscriber_count() == 0
        refresher.trigger()
        assert not refresher.is_running

    @pytest.mark.asyncio
    async def test_failed_computation_becomes_error_result(self):
        async def compute(widget):
            raise RuntimeError("records service unavailable")

        refresher = WidgetRefresher(make_widget(), compute, debounce_seconds=0)
        assert refresher.result.status == "loading"
        await refresher.start()
        result = await refresher.refresh()

        assert result.status == "error"
        assert result.error == "records service unavailable"
        await refresher.stop()

    @pytest.mark.asyncio
    async def test_async_result_callback(self):
        received = []

        async def on_result(result):
            received.append(result.value)

        compute, calls = counting_compute()
        refresher = WidgetRefresher(make_widget(), compute, on_result=on_result, debounce_seconds=0)
        await refresher.start()
        await refresher.refresh()
        await refresher.stop()

        assert received and received[-1] == refresher.compute_count


@pytest.mark.asyncio
async def test_live_session_recomputes_on_change(store):
    bus = ChangeBus()
    widget = make_widget()
    store.add("tasks", {"status": "done"}, {"status": "todo"})
    received = []

    session = DashboardLiveSession(
        1, [widget], on_result=received.append, bus=bus, registry=store.registry, debounce_seconds=0
    )
    async with session:
        assert bus.subscriber_count("tasks") == 1
        first = await session.refresh_all()
        assert first[0].status == "ready"
        assert first[0].value == 1

        store.add("tasks", {"status": "done"})
        assert bus.publish("tasks", {"status": "done"}) == 1
        for _ in range(100):
            if session.results[widget.id].value == 2:
                break
            await asyncio.sleep(0.01)
        assert session.results[widget.id].value == 2

    assert bus.subscriber_count() == 0
    assert not session.mounted
    assert all(r.widget_id == widget.id for r in received)


async def wait_until(condition, attempts=100):
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0.01)


class TestLiveSessionWidgetChanges:

    @pytest.mark.asyncio
    async def test_removed_widget_stops_refreshing(self):
        bus = ChangeBus()
        compute, calls = counting_compute()
        kept = make_widget()
        removed = make_widget(refresh_interval=1)
        session = DashboardLiveSession(
            1, [kept, removed], bus=bus, events=DashboardEvents(), compute=compute, debounce_seconds=0
        )
        async with session:
            await session.refresh_all()
            refresher = session.refreshers[removed.id]
            assert bus.subscriber_count() == 2

            assert await session.remove_widget(removed.id)

            assert removed.id not in session.refreshers
            assert bus.subscriber_count() == 1
            assert refresher._timer_task is None
            assert not refresher.is_running

            removed_calls = calls.count(removed.id)
            kept_calls = calls.count(kept.id)
            bus.publish("tasks", {"status": "done"})
            await wait_until(lambda: calls.count(kept.id) > kept_calls)
            refresher.trigger()
            await asyncio.sleep(0.05)

            assert calls.count(kept.id) > kept_calls
            assert calls.count(removed.id) == removed_calls
            assert not await session.remove_widget(removed.id)

    @pytest.mark.asyncio
    async def test_saved_widget_list_is_applied(self):
        bus = ChangeBus()
        events = DashboardEvents()
        compute, calls = counting_compute()
        first, second = make_widget(), make_widget(filters=())
        session = DashboardLiveSession(
            7, [first, second], bus=bus, events=events, compute=compute, debounce_seconds=0
        )
        async with session:
            assert events.listener_count(7) == 1
            running = session.refreshers[first.id]
            moved = first.model_copy(update={"position": Position(x=4, y=0, w=3, h=2)})
            added = make_widget(filters=({"field": "priority", "operator": "equals", "value": "high"},))

            assert events.publish(7, [moved, added]) == 1
            await wait_until(lambda: set(session.refreshers) == {first.id, added.id})

            assert set(session.refreshers) == {first.id, added.id}
            assert session.refreshers[first.id] is running
            assert running.widget.position.x == 4
            assert bus.subscriber_count() == 2
            await wait_until(lambda: added.id in calls)
            assert added.id in calls

        assert events.listener_count() == 0
        assert bus.subscriber_count() == 0


@pytest.mark.asyncio
async def test_widget_deleted_through_dashboard_service_leaves_live_session(db, store):
    store.add("tasks", {"status": "done"})
    dashboard = dashboard_service.create_dashboard(
        db, obj_in=DashboardCreate(name="Ops", widgets=[make_widget(), make_widget(filters=())]), owner_id=1
    )
    kept, removed = dashboard_service.get_widgets(dashboard)
    bus = ChangeBus()

    session = DashboardLiveSession(dashboard.id, [kept, removed], bus=bus, registry=store.registry, debounce_seconds=0)
    async with session:
        await session.refresh_all()
        dashboard_service.edit_widgets(
            db,
            dashboard_id=dashboard.id,
            owner_id=1,
            edit=lambda edit_session: edit_session.remove_widget(removed.id)
        )
        await wait_until(lambda: removed.id not in session.refreshers)

        assert list(session.refreshers) == [kept.id]
        assert bus.subscriber_count("tasks") == 1
        assert session.results[kept.id].value == 1
