"""
Widget实时刷新服务

ChangeBus: in-process publish/subscribe for record changes, keyed by a
fingerprint of ``data_source + filters``.
WidgetRefresher: single-flight recomputation of one widget. Change events are
debounced, and events arriving while a computation runs collapse into one
trailing recomputation.
DashboardEvents: notifies open sessions when a dashboard's widget list is saved.
DashboardLiveSession: the refreshers of one open dashboard. Removing a widget,
or closing the session, cancels in-flight work, pending debounces and
interval timers.
"""
import asyncio
import hashlib
import inspect
import itertools
import json
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Set

from app.core.config import settings
from app.schemas.analytics import FilterPredicate, WidgetResult
from app.schemas.dashboard import Widget
from app.services.analytics.filter_evaluator import evaluate
from app.services.dashboard_refresh_service import dashboard_refresh_service

logger = logging.getLogger(__name__)

ResultCallback = Callable[[WidgetResult], Any]
ComputeFn = Callable[[Widget], Awaitable[WidgetResult]]


def fingerprint(data_source: str, filters: Sequence[FilterPredicate]) -> str:
    """Stable key for a data source + filter set (predicate order does not matter)"""
    canonical = sorted(
        (json.dumps(p.model_dump(), sort_keys=True) for p in filters)
    )
    payload = json.dumps({"data_source": data_source, "filters": canonical}, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class Subscription:
    def __init__(self, sub_id: int, data_source: str, filters: Sequence[FilterPredicate], callback: Callable[[], None]):
        self.id = sub_id
        self.data_source = data_source
        self.filters = list(filters)
        self.callback = callback
        self.key = fingerprint(data_source, self.filters)

    def matches(self, record: Optional[Mapping[str, Any]]) -> bool:
        if record is None:
            return True
        try:
            return evaluate(record, self.filters, self.data_source)
        except Exception as e:
            # Can't tell, so refresh
            logger.debug(f"Subscription {self.id} could not evaluate changed record: {e}")
            return True


class ChangeBus:
    """记录变更通知总线 (线程安全)"""

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        # fingerprint -> {subscription id -> Subscription}
        self._subscriptions: Dict[str, Dict[int, Subscription]] = {}

    def subscribe(
        self,
        data_source: str,
        filters: Sequence[FilterPredicate],
        callback: Callable[[], None]
    ) -> Subscription:
        with self._lock:
            subscription = Subscription(next(self._ids), data_source, filters, callback)
            self._subscriptions.setdefault(subscription.key, {})[subscription.id] = subscription
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            group = self._subscriptions.get(subscription.key)
            if group is None:
                return
            group.pop(subscription.id, None)
            if not group:
                del self._subscriptions[subscription.key]

    def subscriber_count(self, data_source: Optional[str] = None) -> int:
        with self._lock:
            return sum(
                1
                for group in self._subscriptions.values()
                for sub in group.values()
                if data_source is None or sub.data_source == data_source
            )

    def publish(self, data_source: str, record: Optional[Mapping[str, Any]] = None) -> int:
        """
        通知数据源发生变更

        Args:
            data_source: 变更的数据源
            record: 变更后的记录；提供时只通知过滤条件匹配该记录的订阅者

        Returns:
            被通知的订阅者数量
        """
        with self._lock:
            candidates = [
                sub
                for group in self._subscriptions.values()
                for sub in group.values()
                if sub.data_source == data_source
            ]

        notified = 0
        for subscription in candidates:
            if not subscription.matches(record):
                continue
            try:
                subscription.callback()
                notified += 1
            except Exception as e:
                logger.error(f"Change callback for subscription {subscription.id} failed: {e}")
        logger.debug(f"Change on {data_source}: notified {notified}/{len(candidates)} subscribers")
        return notified


DashboardListener = Callable[[List[Widget]], None]


class DashboardEvents:
    """Dashboard widget列表变更通知 (线程安全)

    Saves publish the new widget list so open live sessions can mount new
    widgets and release removed ones. A deleted dashboard publishes an empty
    list.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        # dashboard id -> {listener id -> callback}
        self._listeners: Dict[int, Dict[int, DashboardListener]] = {}

    def subscribe(self, dashboard_id: int, callback: DashboardListener) -> int:
        with self._lock:
            listener_id = next(self._ids)
            self._listeners.setdefault(dashboard_id, {})[listener_id] = callback
        return listener_id

    def unsubscribe(self, dashboard_id: int, listener_id: int) -> None:
        with self._lock:
            listeners = self._listeners.get(dashboard_id)
            if listeners is None:
                return
            listeners.pop(listener_id, None)
            if not listeners:
                del self._listeners[dashboard_id]

    def listener_count(self, dashboard_id: Optional[int] = None) -> int:
        with self._lock:
            if dashboard_id is not None:
                return len(self._listeners.get(dashboard_id, {}))
            return sum(len(listeners) for listeners in self._listeners.values())

    def publish(self, dashboard_id: int, widgets: Sequence[Widget]) -> int:
        with self._lock:
            callbacks = list(self._listeners.get(dashboard_id, {}).values())

        notified = 0
        for callback in callbacks:
            try:
                callback(list(widgets))
                notified += 1
            except Exception as e:
                logger.error(f"Dashboard {dashboard_id} listener failed: {e}")
        return notified


class WidgetRefresher:
    """单个Widget的刷新控制器"""

    def __init__(
        self,
        widget: Widget,
        compute: ComputeFn,
        on_result: Optional[ResultCallback] = None,
        bus: Optional[ChangeBus] = None,
        debounce_seconds: Optional[float] = None
    ):
        self.widget = widget
        self.result = WidgetResult.loading(widget.id)
        self.compute_count = 0
        self._compute = compute
        self._on_result = on_result
        self._bus = bus
        self._debounce_seconds = (
            settings.WIDGET_REFRESH_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._subscription: Optional[Subscription] = None
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._pending = False
        self._closed = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """订阅变更、启动定时刷新，并立即计算一次"""
        self._loop = asyncio.get_running_loop()
        if self._bus is not None:
            self._subscription = self._bus.subscribe(
                self.widget.config.data_source, self.widget.config.filters, self.notify
            )
        interval = self.widget.config.refresh_interval
        if interval:
            self._timer_task = self._loop.create_task(self._interval_loop(interval * 60))
        self.trigger()

    def notify(self) -> None:
        """变更通知入口，可从任意线程调用"""
        if self._closed or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._debounce)

    def _debounce(self) -> None:
        if self._closed:
            return
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = self._loop.call_later(self._debounce_seconds, self._fire_debounced)

    def _fire_debounced(self) -> None:
        self._debounce_handle = None
        self.trigger()

    def trigger(self) -> None:
        """立即请求一次刷新；计算中则合并为一次尾随刷新"""
        if self._closed:
            return
        if self.is_running:
            self._pending = True
            return
        self._task = self._loop.create_task(self._run())

    async def refresh(self) -> WidgetResult:
        """请求刷新并等待直到没有待处理的刷新"""
        self.trigger()
        while self.is_running:
            await asyncio.shield(self._task)
        return self.result

    async def _run(self) -> None:
        while True:
            self._pending = False
            try:
                result = await self._compute(self.widget)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Widget {self.widget.id} refresh failed: {e}")
                result = WidgetResult.failed(str(e) or e.__class__.__name__, widget_id=self.widget.id)

            if self._closed:
                return
            self.result = result
            self.compute_count += 1
            await self._emit(result)
            if not self._pending:
                return

    async def _emit(self, result: WidgetResult) -> None:
        if self._on_result is None:
            return
        try:
            outcome = self._on_result(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Result callback for widget {self.widget.id} failed: {e}")

    async def _interval_loop(self, seconds: float) -> None:
        while not self._closed:
            await asyncio.sleep(seconds)
            self.trigger()

    async def stop(self) -> None:
        """取消进行中的计算、待触发的防抖和定时器，并退订"""
        self._closed = True
        if self._subscription is not None and self._bus is not None:
            self._bus.unsubscribe(self._subscription)
            self._subscription = None
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        for task in (self._task, self._timer_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = None
        self._timer_task = None


class DashboardLiveSession:
    """一个打开中的Dashboard的实时刷新会话"""

    def __init__(
        self,
        dashboard_id: int,
        widgets: Sequence[Widget],
        on_result: Optional[ResultCallback] = None,
        bus: Optional["ChangeBus"] = None,
        registry=None,
        compute: Optional[ComputeFn] = None,
        debounce_seconds: Optional[float] = None,
        events: Optional["DashboardEvents"] = None
    ):
        self.dashboard_id = dashboard_id
        self.widgets = list(widgets)
        self._on_result = on_result
        self._bus = bus if bus is not None else change_bus
        self._events = events if events is not None else dashboard_events
        self._registry = registry
        self._compute = compute or self._default_compute
        self._debounce_seconds = debounce_seconds
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._listener_id: Optional[int] = None
        self._sync_lock = asyncio.Lock()
        self._sync_tasks: Set[asyncio.Task] = set()
        self.refreshers: Dict[str, WidgetRefresher] = {}
        self.mounted = False

    async def _default_compute(self, widget: Widget) -> WidgetResult:
        try:
            return await asyncio.wait_for(
                dashboard_refresh_service.compute_widget(widget, self._registry),
                timeout=settings.REFRESH_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            return WidgetResult.failed(
                f"Refresh timed out (>{settings.REFRESH_TIMEOUT_SECONDS}s)", widget_id=widget.id
            )

    async def mount(self) -> None:
        if self.mounted:
            return
        self._loop = asyncio.get_running_loop()
        self.mounted = True
        for widget in self.widgets:
            await self.add_widget(widget)
        self._listener_id = self._events.subscribe(self.dashboard_id, self._on_dashboard_saved)
        logger.info(f"Live session for dashboard {self.dashboard_id} mounted {len(self.refreshers)} widgets")

    async def add_widget(self, widget: Widget) -> WidgetRefresher:
        """挂载一个widget (同ID已存在时先停止旧的)"""
        await self.remove_widget(widget.id)
        refresher = WidgetRefresher(
            widget,
            self._compute,
            on_result=self._on_result,
            bus=self._bus,
            debounce_seconds=self._debounce_seconds
        )
        self.refreshers[widget.id] = refresher
        await refresher.start()
        return refresher

    async def remove_widget(self, widget_id: str) -> bool:
        """停止并移除一个widget的计算、防抖、定时器和订阅"""
        refresher = self.refreshers.pop(widget_id, None)
        if refresher is None:
            return False
        await refresher.stop()
        logger.debug(f"Live session for dashboard {self.dashboard_id} released widget {widget_id}")
        return True

    async def sync_widgets(self, widgets: Sequence[Widget]) -> None:
        """
        对齐到保存后的widget列表

        Removed widgets are stopped, new ones mounted and widgets whose
        definition changed are restarted. A position-only change keeps the
        running refresher.
        """
        async with self._sync_lock:
            self.widgets = list(widgets)
            if not self.mounted:
                return
            wanted = {widget.id: widget for widget in self.widgets}
            for widget_id in [i for i in self.refreshers if i not in wanted]:
                await self.remove_widget(widget_id)
            for widget in self.widgets:
                current = self.refreshers.get(widget.id)
                if current is None or current.widget.config != widget.config:
                    await self.add_widget(widget)
                else:
                    current.widget = widget

    def _on_dashboard_saved(self, widgets: List[Widget]) -> None:
        # Called from the saving thread
        if self._loop is None or not self.mounted:
            return
        self._loop.call_soon_threadsafe(self._schedule_sync, widgets)

    def _schedule_sync(self, widgets: List[Widget]) -> None:
        if not self.mounted:
            return
        task = self._loop.create_task(self.sync_widgets(widgets))
        self._sync_tasks.add(task)
        task.add_done_callback(self._sync_tasks.discard)

    async def refresh_all(self) -> List[WidgetResult]:
        return list(await asyncio.gather(*(r.refresh() for r in list(self.refreshers.values()))))

    async def unmount(self) -> None:
        if self._listener_id is not None:
            self._events.unsubscribe(self.dashboard_id, self._listener_id)
            self._listener_id = None
        was_mounted = self.mounted
        self.mounted = False
        for task in list(self._sync_tasks):
            task.cancel()
        if self._sync_tasks:
            await asyncio.gather(*self._sync_tasks, return_exceptions=True)
        await asyncio.gather(*(r.stop() for r in self.refreshers.values()))
        self.refreshers.clear()
        if was_mounted:
            logger.info(f"Live session for dashboard {self.dashboard_id} closed")

    @property
    def results(self) -> Dict[str, WidgetResult]:
        return {widget_id: r.result for widget_id, r in self.refreshers.items()}

    async def __aenter__(self) -> "DashboardLiveSession":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.unmount()


# 创建全局实例
change_bus = ChangeBus()
dashboard_events = DashboardEvents()
