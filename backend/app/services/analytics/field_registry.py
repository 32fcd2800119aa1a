"""
Field schema registry

Static description of the fields each data source exposes and their types.
Both the filter evaluator and the aggregation engine resolve field
references through here, so an unknown field is rejected when a definition
is saved instead of silently matching nothing at evaluation time.
"""
from typing import Dict, List, Optional

from app.core.exceptions import DefinitionError
from app.schemas.analytics import DataSourceInfo, FieldDescriptor

STRING = "string"
NUMBER = "number"
DATE = "date"
BOOLEAN = "boolean"


class DataSourceSchema:
    """Fields of one data source plus the timestamp used for date ranges."""

    def __init__(self, source_id: str, fields: Dict[str, str], timestamp_field: str = "created_at"):
        if timestamp_field not in fields:
            raise ValueError(f"Timestamp field '{timestamp_field}' not declared for {source_id}")
        self.source_id = source_id
        self.fields = dict(fields)
        self.timestamp_field = timestamp_field

    def field_type(self, name: str) -> str:
        try:
            return self.fields[name]
        except KeyError:
            raise DefinitionError(
                f"Unknown field '{name}' for data source '{self.source_id}'"
            ) from None

    def describe(self) -> DataSourceInfo:
        return DataSourceInfo(
            id=self.source_id,
            timestamp_field=self.timestamp_field,
            fields=[FieldDescriptor(name=name, type=ftype) for name, ftype in self.fields.items()],
        )


DATA_SOURCE_SCHEMAS: Dict[str, DataSourceSchema] = {
    "projects": DataSourceSchema("projects", {
        "name": STRING,
        "company": STRING,
        "description": STRING,
        "status": STRING,
        "expected_revenue": NUMBER,
        "start_date": DATE,
        "end_date": DATE,
        "is_archived": BOOLEAN,
        "archived_at": DATE,
        "created_by": STRING,
        "created_at": DATE,
        "updated_at": DATE,
    }),
    "tasks": DataSourceSchema("tasks", {
        "title": STRING,
        "description": STRING,
        "status": STRING,
        "priority": STRING,
        "due_date": DATE,
        "project_id": STRING,
        "assigned_to": STRING,
        "is_recurring": BOOLEAN,
        "recurring_pattern": STRING,
        "created_by": STRING,
        "created_at": DATE,
        "updated_at": DATE,
    }),
    "contacts": DataSourceSchema("contacts", {
        "name": STRING,
        "email": STRING,
        "phone": STRING,
        "company": STRING,
        "notes": STRING,
        "created_by": STRING,
        "created_at": DATE,
        "updated_at": DATE,
    }),
    # Payments are scoped on the payment date rather than the row creation time
    "payments": DataSourceSchema("payments", {
        "project_id": STRING,
        "amount": NUMBER,
        "date": DATE,
        "method": STRING,
        "reference": STRING,
        "notes": STRING,
        "net_amount": NUMBER,
        "vat_amount": NUMBER,
        "gross_amount": NUMBER,
        "vat_rate": NUMBER,
        "is_vat_inclusive": BOOLEAN,
        "created_by": STRING,
        "created_at": DATE,
    }, timestamp_field="date"),
    "invoices": DataSourceSchema("invoices", {
        "invoice_number": STRING,
        "project_id": STRING,
        "contact_id": STRING,
        "issue_date": DATE,
        "due_date": DATE,
        "paid_date": DATE,
        "subtotal": NUMBER,
        "total_vat": NUMBER,
        "total_amount": NUMBER,
        "status": STRING,
        "payment_terms": STRING,
        "created_by": STRING,
        "created_at": DATE,
        "updated_at": DATE,
    }),
}


def get_schema(source_id: str) -> DataSourceSchema:
    schema = DATA_SOURCE_SCHEMAS.get(source_id)
    if schema is None:
        raise DefinitionError(f"Unknown data source '{source_id}'")
    return schema


def get_field_type(source_id: str, field: str) -> str:
    return get_schema(source_id).field_type(field)


def list_data_sources() -> List[DataSourceInfo]:
    return [schema.describe() for schema in DATA_SOURCE_SCHEMAS.values()]


def timestamp_field(source_id: Optional[str]) -> str:
    if source_id is None:
        return "created_at"
    return get_schema(source_id).timestamp_field
