"""
Dashboard刷新服务
并发计算一个Dashboard的所有Widget，单个Widget失败或超时不影响其他Widget
增加并发限流，防止数据源压力过大
"""
import asyncio
import time
import logging
from typing import List, Optional, Sequence
from datetime import datetime

from app.core.config import settings
from app.schemas.analytics import WidgetResult
from app.schemas.dashboard import DashboardResults, Widget
from app.services.analytics.engine import compute_metric
from app.services.data_source_service import data_source_registry

logger = logging.getLogger(__name__)


class DashboardRefreshService:
    """Dashboard刷新服务"""

    def __init__(
        self,
        max_concurrent: Optional[int] = None,
        timeout_seconds: Optional[float] = None
    ):
        self.max_concurrent = max_concurrent or settings.MAX_CONCURRENT_REFRESHES
        self.timeout_seconds = timeout_seconds or settings.REFRESH_TIMEOUT_SECONDS

    async def compute_widget(
        self,
        widget: Widget,
        registry=None,
        now: Optional[datetime] = None
    ) -> WidgetResult:
        """
        计算单个Widget

        使用run_in_executor将同步的取数与聚合放到线程池，避免阻塞事件循环
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,  # 使用默认线程池
            compute_metric,
            widget.config,
            registry or data_source_registry,
            widget.id,
            now,
        )

    async def compute_widgets(
        self,
        widgets: Sequence[Widget],
        registry=None,
        now: Optional[datetime] = None
    ) -> List[WidgetResult]:
        """并发计算 (受信号量限制)，结果顺序与widgets一致"""
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def compute_with_limit(widget: Widget):
            async with semaphore:
                return await asyncio.wait_for(
                    self.compute_widget(widget, registry, now),
                    timeout=self.timeout_seconds
                )

        task_results = await asyncio.gather(
            *(compute_with_limit(widget) for widget in widgets),
            return_exceptions=True
        )

        results = []
        for widget, result in zip(widgets, task_results):
            if isinstance(result, asyncio.TimeoutError):
                logger.error(f"Widget {widget.id} timed out after {self.timeout_seconds}s")
                results.append(WidgetResult.failed(
                    f"Refresh timed out (>{self.timeout_seconds}s)", widget_id=widget.id
                ))
            elif isinstance(result, BaseException):
                logger.error(f"Widget {widget.id} refresh failed: {result}")
                results.append(WidgetResult.failed(str(result) or result.__class__.__name__, widget_id=widget.id))
            else:
                results.append(result)
        return results

    async def compute_dashboard(
        self,
        dashboard_id: int,
        name: str,
        widgets: Sequence[Widget],
        registry=None,
        now: Optional[datetime] = None
    ) -> DashboardResults:
        """
        计算整个Dashboard的快照

        Args:
            dashboard_id: Dashboard ID
            name: Dashboard名称
            widgets: Widget列表

        Returns:
            DashboardResults: 每个Widget一个结果 (ready 或 error)
        """
        start_time = time.time()
        logger.info(f"开始计算 Dashboard {dashboard_id}: {len(widgets)} 个 Widget，并发限制: {self.max_concurrent}")

        results = await self.compute_widgets(widgets, registry, now)

        failed_count = sum(1 for r in results if r.status == "error")
        success_count = len(results) - failed_count
        total_duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"Dashboard {dashboard_id} 计算完成: 成功={success_count}, 失败={failed_count}, 耗时={total_duration_ms}ms")

        return DashboardResults(
            dashboard_id=dashboard_id,
            name=name,
            results=results,
            success_count=success_count,
            failed_count=failed_count,
            total_duration_ms=total_duration_ms,
            computed_at=datetime.utcnow()
        )


# 创建全局实例
dashboard_refresh_service = DashboardRefreshService()
