"""
Widget / metric evaluation

fetch -> date scope -> filters -> aggregate. Definition problems are raised
by ``validate_metric_config``; ``compute_metric`` never raises, it folds any
failure into a ``WidgetResult`` with ``status="error"``.
"""
import logging
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from app.core.exceptions import AnalyticsError
from app.schemas.analytics import AggregationResult, MetricConfig, WidgetResult
from app.services.analytics import field_registry
from app.services.analytics.aggregation import aggregate, apply_date_scope, validate_aggregation
from app.services.analytics.date_ranges import DateRange, resolve_date_range, validate_date_range
from app.services.analytics.filter_evaluator import apply_filters, validate_filters

logger = logging.getLogger(__name__)


def validate_metric_config(config: MetricConfig) -> None:
    """Raise DefinitionError for anything that could never evaluate."""
    field_registry.get_schema(config.data_source)
    validate_filters(config.data_source, config.filters)
    validate_aggregation(config.data_source, config.aggregation)
    validate_date_range(config.date_range)


def evaluate_records(
    records: Iterable[Mapping[str, Any]],
    config: MetricConfig,
    date_range: Optional[DateRange] = None
) -> AggregationResult:
    """Pure evaluation of a metric over records already in memory."""
    rows = list(records)
    if date_range is not None:
        rows = apply_date_scope(rows, date_range, config.data_source)
    rows = apply_filters(rows, config.filters, config.data_source)
    return aggregate(rows, config.aggregation, data_source=config.data_source)


def compute_metric(
    config: MetricConfig,
    registry,
    widget_id: Optional[str] = None,
    now: Optional[datetime] = None,
    date_range_override: Optional[str] = None
) -> WidgetResult:
    """
    Evaluate one metric/widget config against a data source registry.

    Args:
        config: metric or widget config
        registry: DataSourceRegistry (anything with ``fetch``)
        widget_id: echoed back on the result
        now: reference instant for the date range
        date_range_override: replaces ``config.date_range`` when given

    Returns:
        WidgetResult, ready or error
    """
    try:
        validate_metric_config(config)
        range_name = date_range_override or config.date_range
        validate_date_range(range_name)
        date_range = resolve_date_range(range_name, now=now) if range_name else None

        records = registry.fetch(config.data_source, config.filters, date_range)
        result = evaluate_records(records, config, date_range)
    except AnalyticsError as e:
        logger.warning(f"Widget {widget_id} definition error: {e.message}")
        return WidgetResult.failed(e.message, widget_id=widget_id)
    except Exception as e:
        logger.error(f"Widget {widget_id} evaluation failed: {e}", exc_info=True)
        return WidgetResult.failed(str(e) or e.__class__.__name__, widget_id=widget_id)

    return WidgetResult.from_aggregation(result, widget_id=widget_id)
