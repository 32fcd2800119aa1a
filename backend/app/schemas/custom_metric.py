"""Custom metric Schema定义"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from app.schemas.partial_update import PartialUpdate
from app.schemas.analytics import (
    AggregationSpec, ChartType, DataSourceId, FilterPredicate, MetricConfig, WidgetResult
)


class CustomMetricBase(BaseModel):
    """自定义指标基础Schema"""
    name: str = Field(..., min_length=1, max_length=255, description="指标名称")
    description: Optional[str] = Field(None, max_length=2000, description="指标描述")
    data_source: DataSourceId = Field(..., description="数据源")
    filters: List[FilterPredicate] = Field(default_factory=list, description="过滤条件")
    aggregation: AggregationSpec = Field(default_factory=AggregationSpec, description="聚合配置")
    date_range: Optional[str] = Field(None, description="默认时间范围")
    chart_type: ChartType = Field("number", description="图表类型")
    color: str = Field("blue", max_length=50, description="颜色")
    icon: str = Field("BarChart3", max_length=50, description="图标")
    is_public: bool = Field(False, description="是否公开")

    def to_metric_config(self) -> MetricConfig:
        return MetricConfig(
            data_source=self.data_source,
            filters=self.filters,
            aggregation=self.aggregation,
            date_range=self.date_range,
        )


class CustomMetricCreate(CustomMetricBase):
    """创建自定义指标"""
    pass


class CustomMetricUpdate(PartialUpdate):
    """更新自定义指标 (部分字段)"""
    non_nullable = ("name", "data_source", "filters", "aggregation", "chart_type", "color", "icon", "is_public")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    data_source: Optional[DataSourceId] = None
    filters: Optional[List[FilterPredicate]] = None
    aggregation: Optional[AggregationSpec] = None
    date_range: Optional[str] = None
    chart_type: Optional[ChartType] = None
    color: Optional[str] = Field(None, max_length=50)
    icon: Optional[str] = Field(None, max_length=50)
    is_public: Optional[bool] = None


class CustomMetric(CustomMetricBase):
    """自定义指标响应"""
    id: int
    owner_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MetricCalculationResponse(BaseModel):
    """指标计算结果"""
    metric_id: int
    date_range: Optional[str] = None
    result: WidgetResult
