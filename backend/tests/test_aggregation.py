"""
聚合引擎 / 指标计算 单元测试
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.core.exceptions import DefinitionError
from app.schemas.analytics import AggregationSpec, MetricConfig, NONE_GROUP_KEY
from app.services.analytics.aggregation import aggregate, apply_date_scope, partition, validate_aggregation
from app.services.analytics.date_ranges import DateRange
from app.services.analytics.engine import compute_metric, evaluate_records, validate_metric_config
from app.services.data_source_service import DataSourceRegistry

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def spec(function="count", field=None, group_by=None):
    return AggregationSpec(function=function, field=field, group_by=group_by)


class TestScenarios:

    def test_count_of_done_tasks(self):
        config = MetricConfig(
            data_source="tasks",
            filters=[{"field": "status", "operator": "equals", "value": "done"}],
            aggregation={"function": "count"},
        )
        records = [{"status": "done"}, {"status": "done"}, {"status": "todo"}]
        assert evaluate_records(records, config).value == 2

    def test_sum_of_payment_amounts(self):
        config = MetricConfig(data_source="payments", aggregation={"function": "sum", "field": "amount"})
        records = [{"amount": 100}, {"amount": 50}]
        result = evaluate_records(records, config)
        assert result.value == 150
        assert result.series is None


class TestEmptyPartitions:

    @pytest.mark.parametrize("function,expected", [
        ("count", 0),
        ("sum", 0),
        ("average", 0),
        ("min", None),
        ("max", None),
    ])
    def test_empty_input(self, function, expected):
        field = None if function == "count" else "amount"
        result = aggregate([], spec(function, field))
        assert result.value == expected
        assert result.record_count == 0

    def test_min_max_ignore_records_without_numeric_value(self):
        records = [{"amount": None}, {"amount": "n/a"}]
        assert aggregate(records, spec("max", "amount")).value is None
        assert aggregate(records, spec("sum", "amount")).value == 0


def test_average_min_max():
    records = [{"amount": 100}, {"amount": 50}, {"amount": "30"}]
    assert aggregate(records, spec("average", "amount")).value == pytest.approx(60.0)
    assert aggregate(records, spec("min", "amount")).value == 30
    assert aggregate(records, spec("max", "amount")).value == 100


class TestGrouping:

    def test_partition_is_complete(self):
        records = [
            {"status": "done"}, {"status": "todo"}, {"status": "done"},
            {"status": None}, {"status": "  "}, {},
        ]
        groups = partition(records, "status")
        assert sum(len(members) for members in groups.values()) == len(records)
        assert len(groups[NONE_GROUP_KEY]) == 3

        result = aggregate(records, spec(group_by="status"))
        assert sum(point.value for point in result.series) == len(records)
        assert result.record_count == len(records)

    def test_series_sorted_by_value_then_key(self):
        records = [
            {"method": "card", "amount": 10},
            {"method": "cash", "amount": 40},
            {"method": "bank_transfer", "amount": 10},
        ]
        result = aggregate(records, spec("sum", "amount", group_by="method"))
        assert [(p.key, p.value) for p in result.series] == [
            ("cash", 40), ("bank_transfer", 10), ("card", 10)
        ]

    def test_groups_without_value_are_left_out(self):
        records = [{"method": "card", "amount": 10}, {"method": "cash", "amount": None}]
        result = aggregate(records, spec("max", "amount", group_by="method"))
        assert [p.key for p in result.series] == ["card"]

    def test_boolean_group_keys(self):
        records = [{"is_archived": True}, {"is_archived": False}, {"is_archived": True}]
        result = aggregate(records, spec(group_by="is_archived"))
        assert {p.key: p.value for p in result.series} == {"true": 2, "false": 1}


class TestDateScope:

    def test_records_outside_range_or_without_timestamp_are_excluded(self):
        records = [
            {"created_at": NOW - timedelta(days=2)},
            {"created_at": NOW - timedelta(days=20)},
            {"created_at": None},
        ]
        window = DateRange(NOW - timedelta(days=7), NOW)
        assert len(apply_date_scope(records, window, "tasks")) == 1

    def test_named_range_resolved_against_now(self):
        records = [
            {"created_at": NOW - timedelta(days=2)},
            {"created_at": NOW - timedelta(days=20)},
        ]
        result = aggregate(records, spec(), date_range="last7days", data_source="tasks", now=NOW)
        assert result.value == 1

    def test_payments_are_scoped_on_payment_date(self):
        records = [
            {"amount": 100, "date": NOW - timedelta(days=1), "created_at": NOW - timedelta(days=400)},
            {"amount": 50, "date": NOW - timedelta(days=400), "created_at": NOW - timedelta(days=1)},
        ]
        result = aggregate(records, spec("sum", "amount"), date_range="month", data_source="payments", now=NOW)
        assert result.value == 100


class TestValidation:

    def test_field_required_for_non_count(self):
        with pytest.raises(ValidationError):
            AggregationSpec(function="sum")

    def test_numeric_field_required(self):
        with pytest.raises(DefinitionError):
            validate_aggregation("tasks", spec("sum", "status"))

    def test_unknown_group_by_field(self):
        with pytest.raises(DefinitionError):
            validate_aggregation("tasks", spec(group_by="owner"))

    def test_unknown_date_range(self):
        config = MetricConfig(data_source="tasks", date_range="fortnight")
        with pytest.raises(DefinitionError):
            validate_metric_config(config)


class TestComputeMetric:

    def make_registry(self, records):
        registry = DataSourceRegistry()
        registry.register("tasks", lambda filters, date_range=None: list(records))
        return registry

    def test_ready_result(self):
        registry = self.make_registry([{"status": "done"}, {"status": "todo"}])
        config = MetricConfig(
            data_source="tasks",
            filters=[{"field": "status", "operator": "equals", "value": "done"}],
        )
        result = compute_metric(config, registry, widget_id="w1")
        assert result.status == "ready"
        assert result.value == 1
        assert result.widget_id == "w1"
        assert result.error is None

    def test_zero_is_ready_not_error(self):
        result = compute_metric(MetricConfig(data_source="tasks"), self.make_registry([]))
        assert result.status == "ready"
        assert result.value == 0

    def test_fetch_failure_becomes_error_result(self):
        def broken(filters, date_range=None):
            raise RuntimeError("records service unavailable")

        registry = DataSourceRegistry()
        registry.register("tasks", broken)
        result = compute_metric(MetricConfig(data_source="tasks"), registry, widget_id="w1")
        assert result.status == "error"
        assert result.error == "records service unavailable"
        assert result.value is None

    def test_missing_fetcher_becomes_error_result(self):
        result = compute_metric(MetricConfig(data_source="contacts"), DataSourceRegistry())
        assert result.status == "error"
        assert "contacts" in result.error

    def test_date_range_is_resolved_and_passed_to_fetcher(self):
        seen = {}

        def fetch(filters, date_range=None):
            seen["range"] = date_range
            return [{"created_at": NOW - timedelta(days=1)}, {"created_at": NOW - timedelta(days=60)}]

        registry = DataSourceRegistry()
        registry.register("tasks", fetch)
        result = compute_metric(MetricConfig(data_source="tasks", date_range="month"), registry, now=NOW)
        assert result.value == 1
        assert seen["range"] == DateRange(NOW - timedelta(days=30), NOW)

    def test_override_replaces_config_range(self):
        registry = self.make_registry([{"created_at": NOW - timedelta(days=60)}])
        config = MetricConfig(data_source="tasks", date_range="week")
        assert compute_metric(config, registry, now=NOW).value == 0
        assert compute_metric(config, registry, now=NOW, date_range_override="year").value == 1
