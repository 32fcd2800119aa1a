"""
自定义指标 / 保存的报表 服务测试
"""
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.core.exceptions import DefinitionError, NotFoundError, PermissionDeniedError
from app.schemas.custom_metric import CustomMetricCreate, CustomMetricUpdate
from app.schemas.saved_report import SavedReportCreate, SavedReportUpdate
from app.services.custom_metric_service import custom_metric_service
from app.services.saved_report_service import saved_report_service

OWNER_ID = 1
OTHER_USER_ID = 2
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def create_metric(db, owner_id=OWNER_ID, **overrides):
    data = {
        "name": "Done tasks",
        "data_source": "tasks",
        "filters": [{"field": "status", "operator": "equals", "value": "done"}],
        **overrides,
    }
    return custom_metric_service.create_metric(db, obj_in=CustomMetricCreate(**data), owner_id=owner_id)


class TestCustomMetrics:

    def test_invalid_definition_is_not_stored(self, db):
        with pytest.raises(DefinitionError):
            create_metric(db, aggregation={"function": "sum", "field": "title"})
        with pytest.raises(DefinitionError):
            create_metric(db, filters=[{"field": "story_points", "operator": "equals", "value": "1"}])
        assert custom_metric_service.list_metrics(db, owner_id=OWNER_ID) == []

    def test_update_validates_the_merged_definition(self, db):
        metric = create_metric(db, data_source="payments", filters=[],
                               aggregation={"function": "sum", "field": "amount"})
        # "amount" does not exist on tasks
        with pytest.raises(DefinitionError):
            custom_metric_service.update_metric(
                db, metric_id=metric.id, obj_in=CustomMetricUpdate(data_source="tasks"), owner_id=OWNER_ID
            )
        updated = custom_metric_service.update_metric(
            db, metric_id=metric.id, obj_in=CustomMetricUpdate(name="Revenue", color="green"), owner_id=OWNER_ID
        )
        assert updated.name == "Revenue"
        assert updated.aggregation["field"] == "amount"

    def test_required_fields_cannot_be_nulled(self, db):
        with pytest.raises(ValidationError):
            CustomMetricUpdate(data_source=None)
        with pytest.raises(ValidationError):
            CustomMetricUpdate(name="Revenue", aggregation=None)

        metric = create_metric(db, date_range="last30days")
        updated = custom_metric_service.update_metric(
            db, metric_id=metric.id, obj_in=CustomMetricUpdate(date_range=None), owner_id=OWNER_ID
        )
        assert updated.date_range is None
        assert updated.data_source == "tasks"

    def test_list_scopes(self, db):
        mine = create_metric(db)
        public = create_metric(db, owner_id=OTHER_USER_ID, name="Shared", is_public=True)
        create_metric(db, owner_id=OTHER_USER_ID, name="Hidden")

        ids = lambda scope: {m.id for m in custom_metric_service.list_metrics(db, owner_id=OWNER_ID, scope=scope)}
        assert ids("mine") == {mine.id}
        assert ids("public") == {public.id}
        assert ids("all") == {mine.id, public.id}

    def test_only_owner_can_modify(self, db):
        metric = create_metric(db, is_public=True)
        assert custom_metric_service.get_metric(db, metric_id=metric.id, user_id=OTHER_USER_ID)
        with pytest.raises(PermissionDeniedError):
            custom_metric_service.delete_metric(db, metric_id=metric.id, owner_id=OTHER_USER_ID)
        custom_metric_service.delete_metric(db, metric_id=metric.id, owner_id=OWNER_ID)
        with pytest.raises(NotFoundError):
            custom_metric_service.get_metric(db, metric_id=metric.id, user_id=OWNER_ID)

    def test_calculate_with_date_range_override(self, db, store):
        store.add(
            "tasks",
            {"status": "done", "created_at": NOW - timedelta(days=3)},
            {"status": "done", "created_at": NOW - timedelta(days=45)},
            {"status": "todo", "created_at": NOW - timedelta(days=1)},
        )
        metric = create_metric(db, date_range="last30days")

        result = custom_metric_service.calculate(
            db, metric_id=metric.id, user_id=OWNER_ID, registry=store.registry, now=NOW
        )
        assert result.status == "ready"
        assert result.value == 1

        result = custom_metric_service.calculate(
            db, metric_id=metric.id, user_id=OWNER_ID, date_range="last90days", registry=store.registry, now=NOW
        )
        assert result.value == 2

    def test_calculate_rejects_unknown_range(self, db, store):
        metric = create_metric(db)
        with pytest.raises(DefinitionError):
            custom_metric_service.calculate(
                db, metric_id=metric.id, user_id=OWNER_ID, date_range="fortnight", registry=store.registry
            )


class TestSavedReports:

    def create_report(self, db, metric_ids, owner_id=OWNER_ID, **configuration):
        return saved_report_service.create_report(
            db,
            obj_in=SavedReportCreate(
                name="Monthly",
                configuration={"metric_ids": metric_ids, **configuration},
            ),
            owner_id=owner_id
        )

    def test_missing_metric_fails_only_its_own_entry(self, db, store):
        store.add("tasks", {"status": "done"}, {"status": "todo"})
        metric = create_metric(db)
        report = self.create_report(db, [metric.id, 999])

        run = saved_report_service.run_report(db, report_id=report.id, user_id=OWNER_ID, registry=store.registry)

        assert [r.metric_id for r in run.results] == [metric.id, 999]
        assert run.results[0].result.status == "ready"
        assert run.results[0].result.value == 1
        assert run.results[0].name == "Done tasks"
        assert run.results[1].result.status == "error"

    def test_private_metric_of_another_user_is_not_computed(self, db, store):
        metric = create_metric(db, owner_id=OTHER_USER_ID)
        report = self.create_report(db, [metric.id])
        run = saved_report_service.run_report(db, report_id=report.id, user_id=OWNER_ID, registry=store.registry)
        assert run.results[0].result.status == "error"

    def test_report_filters_narrow_matching_sources_only(self, db, store):
        store.add("tasks", {"status": "done"}, {"status": "todo"}, {"status": "todo"})
        store.add("contacts", {"name": "A"}, {"name": "B"})
        all_tasks = create_metric(db, name="All tasks", filters=[])
        contacts = create_metric(db, name="Contacts", data_source="contacts", filters=[])
        report = self.create_report(db, [all_tasks.id, contacts.id], filters={"task_status": "todo"})

        run = saved_report_service.run_report(db, report_id=report.id, user_id=OWNER_ID, registry=store.registry)

        assert [r.result.value for r in run.results] == [2, 2]

    def test_report_date_range_overrides_metrics(self, db, store):
        store.add(
            "tasks",
            {"status": "done", "created_at": NOW - timedelta(days=2)},
            {"status": "done", "created_at": NOW - timedelta(days=200)},
        )
        metric = create_metric(db, date_range="year")
        report = self.create_report(db, [metric.id], date_range="week")

        run = saved_report_service.run_report(
            db, report_id=report.id, user_id=OWNER_ID, registry=store.registry, now=NOW
        )
        assert run.date_range == "week"
        assert run.results[0].result.value == 1

    def test_unknown_date_range_rejected(self, db):
        with pytest.raises(DefinitionError):
            self.create_report(db, [], date_range="fortnight")

    def test_single_default_per_owner(self, db):
        first = saved_report_service.create_report(
            db, obj_in=SavedReportCreate(name="First", is_default=True), owner_id=OWNER_ID
        )
        second = self.create_report(db, [])
        saved_report_service.set_default(db, report_id=second.id, owner_id=OWNER_ID)

        db.refresh(first)
        assert first.is_default is False
        assert saved_report_service.get_default(db, owner_id=OWNER_ID).id == second.id

        saved_report_service.update_report(
            db, report_id=first.id, obj_in=SavedReportUpdate(is_default=True), owner_id=OWNER_ID
        )
        db.refresh(second)
        assert second.is_default is False
