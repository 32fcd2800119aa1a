"""
Analytics Schema 定义

Declarative building blocks shared by custom metrics, dashboard widgets,
templates and saved reports: filter predicates, aggregation specs, the
MetricDefinition-shaped widget config, and the per-widget evaluation result
handed to the rendering layer.
"""
from typing import Optional, List, Literal
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, model_validator


DataSourceId = Literal["projects", "tasks", "contacts", "payments", "invoices"]
FieldType = Literal["string", "number", "date", "boolean"]

FilterOperator = Literal[
    "equals", "not_equals", "greater_than", "less_than",
    "contains", "not_contains", "starts_with", "ends_with",
    "in", "not_in",
]

AggregationFunction = Literal["count", "sum", "average", "min", "max"]

ChartType = Literal["number", "line", "bar", "pie", "donut"]

WidgetType = Literal[
    "metric_card", "line_chart", "bar_chart", "pie_chart", "area_chart",
    "donut_chart", "table", "progress_bar", "gauge", "heatmap", "funnel",
    "scatter", "custom_metric",
]

ResultStatus = Literal["loading", "ready", "error"]

# Partition key for records whose group-by field is missing or null
NONE_GROUP_KEY = "(none)"


class FilterPredicate(BaseModel):
    """单个过滤条件 (field, operator, value)"""
    field: str = Field(..., min_length=1, description="字段名")
    operator: FilterOperator = Field(..., description="比较运算符")
    value: str = Field("", description="比较值，始终以字符串存储")

    @field_validator("value", mode="before")
    @classmethod
    def stringify_value(cls, v):
        if v is None:
            return ""
        if isinstance(v, bool):
            return "true" if v else "false"
        if isinstance(v, (list, tuple)):
            return ",".join(str(item) for item in v)
        return str(v)


class AggregationSpec(BaseModel):
    """聚合配置"""
    function: AggregationFunction = Field("count", description="聚合函数")
    field: Optional[str] = Field(None, description="聚合字段，count 以外必填")
    group_by: Optional[str] = Field(None, description="分组字段")

    @model_validator(mode="after")
    def check_field_required(self):
        if self.function != "count" and not self.field:
            raise ValueError(f"Aggregation '{self.function}' requires a field")
        return self


class MetricConfig(BaseModel):
    """Everything the engine needs to evaluate one metric or widget."""
    data_source: DataSourceId = Field(..., description="数据源")
    filters: List[FilterPredicate] = Field(default_factory=list, description="过滤条件 (AND)")
    aggregation: AggregationSpec = Field(default_factory=AggregationSpec, description="聚合配置")
    date_range: Optional[str] = Field(None, description="命名时间范围，如 last30days / this_quarter")


class WidgetConfig(MetricConfig):
    """Widget内嵌的指标配置 (copy, never a live reference)"""
    title: str = Field(..., min_length=1, max_length=255, description="组件标题")
    refresh_interval: Optional[int] = Field(None, ge=0, description="定时刷新间隔(分钟)")
    # Provenance only; deleting the metric never touches the widget
    metric_id: Optional[int] = Field(None, description="来源自定义指标ID")
    # Opaque pass-through for advanced users; stored, never executed
    custom_query: Optional[str] = Field(None, description="自定义查询")


class GroupedPoint(BaseModel):
    key: str
    value: float


class AggregationResult(BaseModel):
    """Scalar (``value``) or grouped (``series``) aggregate.

    ``value`` is None for min/max over an empty partition ("no value").
    """
    value: Optional[float] = None
    series: Optional[List[GroupedPoint]] = None
    record_count: int = 0


class WidgetResult(BaseModel):
    """单个Widget的计算结果 (rendering adapter contract)

    ``loading``, ``error`` and a ``ready`` zero are three distinct states.
    """
    widget_id: Optional[str] = None
    status: ResultStatus = "loading"
    value: Optional[float] = None
    series: Optional[List[GroupedPoint]] = None
    error: Optional[str] = None
    record_count: int = 0
    computed_at: Optional[datetime] = None

    @classmethod
    def loading(cls, widget_id: Optional[str] = None) -> "WidgetResult":
        return cls(widget_id=widget_id, status="loading")

    @classmethod
    def failed(cls, message: str, widget_id: Optional[str] = None) -> "WidgetResult":
        return cls(widget_id=widget_id, status="error", error=message, computed_at=datetime.utcnow())

    @classmethod
    def from_aggregation(cls, result: AggregationResult, widget_id: Optional[str] = None) -> "WidgetResult":
        return cls(
            widget_id=widget_id,
            status="ready",
            value=result.value,
            series=result.series,
            record_count=result.record_count,
            computed_at=datetime.utcnow(),
        )


class FieldDescriptor(BaseModel):
    name: str
    type: FieldType


class DataSourceInfo(BaseModel):
    """数据源字段描述 (schema registry 响应)"""
    id: DataSourceId
    timestamp_field: str
    fields: List[FieldDescriptor]


class EvaluateRequest(MetricConfig):
    """Ad-hoc evaluation of an unsaved metric config"""
    pass


class ChangeNotification(BaseModel):
    """Record-change notification posted by the records service"""
    data_source: DataSourceId
    record: Optional[dict] = Field(None, description="变更后的记录，提供时仅通知过滤条件匹配的订阅者")


class ChangeNotificationResponse(BaseModel):
    notified: int


