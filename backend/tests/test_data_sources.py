"""
数据源注册表 / SQLAlchemy 默认取数 测试
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import DefinitionError
from app.models.records import ProjectPayment, Task
from app.schemas.analytics import MetricConfig
from app.services.analytics.engine import compute_metric
from app.services.data_source_service import DataSourceRegistry, build_default_registry

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def naive(value):
    return value.replace(tzinfo=None)


@pytest.fixture
def registry(db, session_factory):
    db.add_all([
        ProjectPayment(project_id=1, amount=100, date=naive(NOW - timedelta(days=2)), method="card"),
        ProjectPayment(project_id=1, amount=50, date=naive(NOW - timedelta(days=10)), method="cash"),
        ProjectPayment(project_id=2, amount=999, date=naive(NOW - timedelta(days=400)), method="card"),
        Task(title="Write report", status="done", project_id=7),
        Task(title="Review", status="todo", project_id=7),
    ])
    db.commit()
    return build_default_registry(session_factory)


def test_rows_are_returned_as_plain_dicts(registry):
    tasks = registry.fetch("tasks")
    assert len(tasks) == 2
    assert {"title", "status", "project_id", "created_at"} <= set(tasks[0])


def test_payments_scoped_on_payment_date(registry):
    config = MetricConfig(
        data_source="payments",
        aggregation={"function": "sum", "field": "amount", "group_by": "method"},
        date_range="month",
    )
    result = compute_metric(config, registry, now=NOW)
    assert result.status == "ready"
    assert [(p.key, p.value) for p in result.series] == [("card", 100), ("cash", 50)]


def test_numeric_id_compared_as_string(registry):
    config = MetricConfig(
        data_source="tasks",
        filters=[{"field": "project_id", "operator": "equals", "value": "7"}],
    )
    assert compute_metric(config, registry).value == 2


def test_registry_registration():
    registry = DataSourceRegistry()
    with pytest.raises(DefinitionError):
        registry.register("employees", lambda filters, date_range=None: [])

    registry.register("contacts", lambda filters, date_range=None: [{"name": "Ada"}])
    assert registry.has("contacts")
    assert registry.fetch("contacts") == [{"name": "Ada"}]

    registry.unregister("contacts")
    assert not registry.has("contacts")
    with pytest.raises(DefinitionError):
        registry.fetch("contacts")
