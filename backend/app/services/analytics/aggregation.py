"""
Aggregation engine

Pure function over already-fetched records:
date scope -> partition by group_by -> reduce each partition.

Empty partitions: ``count`` and ``sum`` give 0, ``average`` gives 0,
``min`` / ``max`` give None ("no value", never 0). Grouped points without a
value are left out of the series.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import logging

from app.core.exceptions import DefinitionError
from app.schemas.analytics import AggregationResult, AggregationSpec, GroupedPoint, NONE_GROUP_KEY
from app.services.analytics import field_registry
from app.services.analytics.date_ranges import DateRange, resolve_date_range
from app.services.analytics.field_registry import NUMBER
from app.services.analytics.filter_evaluator import is_invalid, to_instant, to_number, to_text

logger = logging.getLogger(__name__)


def validate_aggregation(data_source: str, spec: AggregationSpec) -> None:
    """Definition-time checks against the source's field registry."""
    schema = field_registry.get_schema(data_source)

    if spec.function != "count":
        if not spec.field:
            raise DefinitionError(f"Aggregation '{spec.function}' requires a field")
        if schema.field_type(spec.field) != NUMBER:
            raise DefinitionError(
                f"Aggregation '{spec.function}' requires a numeric field, "
                f"'{spec.field}' is {schema.field_type(spec.field)}"
            )
    elif spec.field:
        schema.field_type(spec.field)

    if spec.group_by:
        schema.field_type(spec.group_by)


def group_key(value: Any) -> str:
    if value is None:
        return NONE_GROUP_KEY
    if isinstance(value, str) and not value.strip():
        return NONE_GROUP_KEY
    return to_text(value)


def numeric_values(records: Iterable[Mapping[str, Any]], field: str) -> List[float]:
    values = []
    for record in records:
        number = to_number(record.get(field))
        if not is_invalid(number):
            values.append(number)
    return values


def reduce_partition(records: List[Mapping[str, Any]], spec: AggregationSpec) -> Optional[float]:
    if spec.function == "count":
        return float(len(records))

    values = numeric_values(records, spec.field)
    if spec.function == "sum":
        return float(sum(values))
    if spec.function == "average":
        if not values:
            return 0.0
        return sum(values) / len(values)
    if not values:
        return None
    if spec.function == "min":
        return min(values)
    return max(values)


def apply_date_scope(
    records: Iterable[Mapping[str, Any]],
    date_range: DateRange,
    data_source: Optional[str] = None
) -> List[Mapping[str, Any]]:
    """Keep records whose scope timestamp falls inside the range."""
    ts_field = field_registry.timestamp_field(data_source)
    scoped = []
    for record in records:
        instant = to_instant(record.get(ts_field))
        if is_invalid(instant):
            continue
        if date_range.contains(instant):
            scoped.append(record)
    return scoped


def partition(records: Iterable[Mapping[str, Any]], group_by: str) -> Dict[str, List[Mapping[str, Any]]]:
    groups: Dict[str, List[Mapping[str, Any]]] = {}
    for record in records:
        groups.setdefault(group_key(record.get(group_by)), []).append(record)
    return groups


def aggregate(
    records: Iterable[Mapping[str, Any]],
    spec: AggregationSpec,
    date_range: Optional[Union[str, DateRange]] = None,
    data_source: Optional[str] = None,
    now: Optional[datetime] = None,
    tz: Optional[str] = None
) -> AggregationResult:
    """
    Aggregate records into a scalar or a grouped series.

    Args:
        records: record dicts, already filtered by the caller
        spec: aggregation function, field and optional group_by
        date_range: range name or resolved DateRange, applied first
        data_source: picks the scope timestamp field
        now: reference instant for named ranges

    Returns:
        AggregationResult; ``series`` is set when ``spec.group_by`` is
    """
    rows = list(records)

    if date_range:
        if isinstance(date_range, str):
            date_range = resolve_date_range(date_range, now=now, tz=tz)
        rows = apply_date_scope(rows, date_range, data_source)

    if not spec.group_by:
        return AggregationResult(value=reduce_partition(rows, spec), record_count=len(rows))

    series = []
    for key, members in partition(rows, spec.group_by).items():
        value = reduce_partition(members, spec)
        if value is None:
            continue
        series.append(GroupedPoint(key=key, value=value))

    series.sort(key=lambda point: (-point.value, point.key))
    return AggregationResult(series=series, record_count=len(rows))
