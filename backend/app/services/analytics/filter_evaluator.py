"""
Filter predicate evaluator

Evaluates ``(field, operator, value)`` predicates against plain record dicts.
The stored filter value is always a string; both sides are coerced to the
field's declared type before comparing. A filter set is the AND of its
predicates, and an empty set matches every record.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Sequence
import logging
import math

from dateutil import parser as date_parser

from app.core.exceptions import DefinitionError
from app.schemas.analytics import FilterPredicate
from app.services.analytics import field_registry
from app.services.analytics.field_registry import STRING, NUMBER, DATE, BOOLEAN

logger = logging.getLogger(__name__)

ORDERING_OPERATORS = {"greater_than", "less_than"}
TEXT_OPERATORS = {"contains", "not_contains", "starts_with", "ends_with"}
LIST_OPERATORS = {"in", "not_in"}
# Operators that hold for a record where the field is missing ("equals nothing")
MISSING_MATCH_OPERATORS = {"not_equals", "not_in"}

_INVALID = object()


# ===== Coercion =====

def to_number(value: Any) -> Any:
    """float, or the invalid sentinel"""
    if value is None or isinstance(value, bool):
        return _INVALID
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return _INVALID
        try:
            number = float(text)
        except ValueError:
            return _INVALID
    else:
        return _INVALID
    if math.isnan(number):
        return _INVALID
    return number


def to_instant(value: Any) -> Any:
    """Timezone-aware UTC datetime, or the invalid sentinel.

    Accepts datetimes (naive ones are taken as UTC), dates, epoch
    milliseconds and ISO-8601 / free-form date strings.
    """
    if value is None or isinstance(value, bool):
        return _INVALID
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float, Decimal)):
        return _from_epoch_ms(float(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return _INVALID
        number = to_number(text)
        if number is not _INVALID:
            return _from_epoch_ms(number)
        try:
            parsed = date_parser.parse(text)
        except (ValueError, OverflowError):
            return _INVALID
        return to_instant(parsed)
    return _INVALID


def _from_epoch_ms(millis: float) -> Any:
    try:
        return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return _INVALID


def to_boolean(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "true":
            return True
        if text == "false":
            return False
    return _INVALID


def to_text(value: Any) -> str:
    """String form of a raw record value (also used for group keys)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal):
        return to_text(float(value))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def coerce(value: Any, field_type: str) -> Any:
    if field_type == NUMBER:
        return to_number(value)
    if field_type == DATE:
        return to_instant(value)
    if field_type == BOOLEAN:
        return to_boolean(value)
    if value is None:
        return _INVALID
    return to_text(value)


def is_invalid(value: Any) -> bool:
    return value is _INVALID


def split_list_value(value: str) -> List[str]:
    """``in`` / ``not_in`` take a comma separated literal list."""
    return [item.strip() for item in value.split(",") if item.strip()]


def infer_field_type(value: Any) -> str:
    """Best guess for records evaluated without a bound data source."""
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, (int, float, Decimal)):
        return NUMBER
    if isinstance(value, (datetime, date)):
        return DATE
    return STRING


# ===== Definition-time validation =====

def validate_predicate(data_source: str, predicate: FilterPredicate) -> None:
    """Raise DefinitionError if the predicate can never be evaluated."""
    field_type = field_registry.get_field_type(data_source, predicate.field)
    operator = predicate.operator

    if operator in ORDERING_OPERATORS and field_type not in (NUMBER, DATE):
        raise DefinitionError(
            f"Operator '{operator}' requires a number or date field, "
            f"'{predicate.field}' is {field_type}"
        )

    if operator in TEXT_OPERATORS:
        return

    if operator in LIST_OPERATORS:
        literals = split_list_value(predicate.value)
    else:
        literals = [predicate.value]

    for literal in literals:
        if field_type != STRING and is_invalid(coerce(literal, field_type)):
            raise DefinitionError(
                f"Value '{literal}' is not a valid {field_type} for field '{predicate.field}'"
            )


def validate_filters(data_source: str, filters: Iterable[FilterPredicate]) -> None:
    for predicate in filters:
        validate_predicate(data_source, predicate)


# ===== Evaluation =====

def evaluate_predicate(
    record: Mapping[str, Any],
    predicate: FilterPredicate,
    field_type: Optional[str] = None
) -> bool:
    """Evaluate one predicate against one record."""
    operator = predicate.operator
    raw = record.get(predicate.field) if isinstance(record, Mapping) else None

    if raw is None:
        return operator in MISSING_MATCH_OPERATORS

    if field_type is None:
        field_type = infer_field_type(raw)

    if operator in TEXT_OPERATORS:
        haystack = to_text(raw).lower()
        needle = predicate.value.lower()
        if operator == "contains":
            return needle in haystack
        if operator == "not_contains":
            return needle not in haystack
        if operator == "starts_with":
            return haystack.startswith(needle)
        return haystack.endswith(needle)

    actual = coerce(raw, field_type)
    if is_invalid(actual):
        # A value of the wrong type behaves like a missing one
        return operator in MISSING_MATCH_OPERATORS

    if operator in LIST_OPERATORS:
        candidates = [_coerce_literal(item, field_type, predicate) for item in split_list_value(predicate.value)]
        found = any(actual == candidate for candidate in candidates)
        return found if operator == "in" else not found

    expected = _coerce_literal(predicate.value, field_type, predicate)

    if operator == "equals":
        return actual == expected
    if operator == "not_equals":
        return actual != expected

    if field_type not in (NUMBER, DATE):
        raise DefinitionError(
            f"Operator '{operator}' requires a number or date field, "
            f"'{predicate.field}' is {field_type}"
        )
    if operator == "greater_than":
        return actual > expected
    return actual < expected


def _coerce_literal(literal: str, field_type: str, predicate: FilterPredicate) -> Any:
    value = coerce(literal, field_type)
    if is_invalid(value):
        raise DefinitionError(
            f"Value '{literal}' is not a valid {field_type} for field '{predicate.field}'"
        )
    return value


def evaluate(
    record: Mapping[str, Any],
    filters: Sequence[FilterPredicate],
    data_source: Optional[str] = None
) -> bool:
    """AND of every predicate; an empty filter set is always true.

    With ``data_source`` the declared field types drive coercion, otherwise
    the type is inferred from the record value.
    """
    for predicate in filters:
        field_type = None
        if data_source is not None:
            field_type = field_registry.get_field_type(data_source, predicate.field)
        if not evaluate_predicate(record, predicate, field_type):
            return False
    return True


def apply_filters(
    records: Iterable[Mapping[str, Any]],
    filters: Sequence[FilterPredicate],
    data_source: Optional[str] = None
) -> List[Mapping[str, Any]]:
    if not filters:
        return list(records)
    return [record for record in records if evaluate(record, filters, data_source)]
