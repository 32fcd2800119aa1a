"""
过滤条件求值 单元测试
"""
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.core.exceptions import DefinitionError
from app.schemas.analytics import FilterPredicate
from app.services.analytics.filter_evaluator import (
    apply_filters, evaluate, is_invalid, split_list_value, to_instant, to_number,
    validate_filters, validate_predicate
)


def predicate(field, operator, value=""):
    return FilterPredicate(field=field, operator=operator, value=value)


def test_empty_filter_set_matches_every_record():
    assert evaluate({}, []) is True
    assert evaluate({"status": "done"}, []) is True
    assert evaluate({"status": None}, [], data_source="tasks") is True


def test_predicates_are_combined_with_and():
    filters = [predicate("status", "equals", "done"), predicate("priority", "equals", "high")]
    assert evaluate({"status": "done", "priority": "high"}, filters, "tasks")
    assert not evaluate({"status": "done", "priority": "low"}, filters, "tasks")


class TestStringOperators:

    def test_equals_and_not_equals(self):
        record = {"status": "done"}
        assert evaluate(record, [predicate("status", "equals", "done")], "tasks")
        assert not evaluate(record, [predicate("status", "equals", "todo")], "tasks")
        assert evaluate(record, [predicate("status", "not_equals", "todo")], "tasks")

    def test_text_operators_ignore_case(self):
        record = {"title": "Website Redesign"}
        assert evaluate(record, [predicate("title", "contains", "design")], "tasks")
        assert evaluate(record, [predicate("title", "starts_with", "WEB")], "tasks")
        assert evaluate(record, [predicate("title", "ends_with", "SIGN")], "tasks")
        assert evaluate(record, [predicate("title", "not_contains", "logo")], "tasks")
        assert not evaluate(record, [predicate("title", "not_contains", "site")], "tasks")

    def test_in_and_not_in_take_comma_separated_values(self):
        filters_in = [predicate("status", "in", "todo, in_progress")]
        filters_not_in = [predicate("status", "not_in", "todo,in_progress")]
        assert evaluate({"status": "todo"}, filters_in, "tasks")
        assert not evaluate({"status": "done"}, filters_in, "tasks")
        assert evaluate({"status": "done"}, filters_not_in, "tasks")

    def test_numeric_ids_declared_as_strings_compare_as_text(self):
        assert evaluate({"project_id": 5}, [predicate("project_id", "equals", "5")], "tasks")


class TestTypedOperators:

    def test_number_comparisons(self):
        record = {"amount": 100}
        assert evaluate(record, [predicate("amount", "greater_than", "50")], "payments")
        assert not evaluate(record, [predicate("amount", "less_than", "50")], "payments")
        assert evaluate(record, [predicate("amount", "equals", "100.0")], "payments")

    def test_date_comparisons_accept_iso_strings_and_datetimes(self):
        filters = [predicate("due_date", "greater_than", "2026-01-01")]
        assert evaluate({"due_date": "2026-01-10"}, filters, "tasks")
        assert evaluate({"due_date": datetime(2026, 1, 10, 8, 0)}, filters, "tasks")
        assert not evaluate({"due_date": datetime(2025, 12, 31)}, filters, "tasks")

    def test_date_literal_as_epoch_milliseconds(self):
        cutoff = int(datetime(2026, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
        filters = [predicate("due_date", "less_than", str(cutoff))]
        assert evaluate({"due_date": datetime(2025, 6, 1)}, filters, "tasks")

    def test_boolean_fields(self):
        filters = [predicate("is_archived", "equals", "true")]
        assert evaluate({"is_archived": True}, filters, "projects")
        assert not evaluate({"is_archived": False}, filters, "projects")

    def test_type_inferred_without_data_source(self):
        assert evaluate({"amount": 100}, [predicate("amount", "greater_than", "50")])
        assert not evaluate({"amount": 10}, [predicate("amount", "greater_than", "50")])


class TestMissingValues:

    def test_missing_field_matches_only_negative_operators(self):
        record = {"title": "x"}
        assert not evaluate(record, [predicate("status", "equals", "done")], "tasks")
        assert not evaluate(record, [predicate("status", "in", "done")], "tasks")
        assert evaluate(record, [predicate("status", "not_equals", "done")], "tasks")
        assert evaluate(record, [predicate("status", "not_in", "done")], "tasks")

    def test_unparseable_value_behaves_like_missing(self):
        record = {"amount": "not a number"}
        assert not evaluate(record, [predicate("amount", "greater_than", "0")], "payments")
        assert evaluate(record, [predicate("amount", "not_equals", "0")], "payments")


def test_apply_filters_keeps_matching_records():
    records = [{"status": "done"}, {"status": "done"}, {"status": "todo"}]
    matched = apply_filters(records, [predicate("status", "equals", "done")], "tasks")
    assert len(matched) == 2


class TestValidation:

    def test_unknown_field_is_rejected(self):
        with pytest.raises(DefinitionError):
            validate_predicate("tasks", predicate("colour", "equals", "red"))

    def test_ordering_operator_on_string_field_is_rejected(self):
        with pytest.raises(DefinitionError):
            validate_predicate("tasks", predicate("status", "greater_than", "a"))

    def test_literal_must_coerce_to_field_type(self):
        with pytest.raises(DefinitionError):
            validate_predicate("payments", predicate("amount", "greater_than", "lots"))
        with pytest.raises(DefinitionError):
            validate_predicate("projects", predicate("is_archived", "equals", "yes"))
        with pytest.raises(DefinitionError):
            validate_predicate("payments", predicate("amount", "in", "1,two,3"))

    def test_valid_filters_pass(self):
        validate_filters("payments", [
            predicate("amount", "greater_than", "10"),
            predicate("date", "less_than", "2026-01-01T00:00:00Z"),
            predicate("method", "in", "card,cash"),
        ])

    def test_unknown_operator_fails_schema_validation(self):
        with pytest.raises(ValidationError):
            FilterPredicate(field="status", operator="matches", value="x")


def test_predicate_values_are_stored_as_strings():
    assert predicate("amount", "equals", 5).value == "5"
    assert predicate("is_archived", "equals", True).value == "true"
    assert predicate("status", "in", ["todo", "done"]).value == "todo,done"
    assert predicate("status", "equals", None).value == ""


def test_coercion_helpers():
    assert to_number(" 42.5 ") == 42.5
    assert is_invalid(to_number("abc"))
    assert is_invalid(to_number(True))
    assert to_instant("2026-03-01T10:00:00+02:00") == datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
    assert to_instant(datetime(2026, 3, 1)) == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert is_invalid(to_instant("not a date"))
    assert split_list_value(" a, ,b ,c") == ["a", "b", "c"]
