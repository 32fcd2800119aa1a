"""Saved report Schema定义"""
from typing import Optional, List, Literal
from datetime import datetime
from pydantic import BaseModel, Field

from app.schemas.analytics import WidgetResult
from app.schemas.partial_update import PartialUpdate

ReportType = Literal["dashboard", "custom"]


class ReportFilters(BaseModel):
    """报表级过滤 (追加到对应数据源的指标上)"""
    project_status: Optional[str] = None
    task_status: Optional[str] = None
    priority: Optional[str] = None


class ReportConfiguration(BaseModel):
    date_range: Optional[str] = Field(None, description="报表时间范围，覆盖指标自身设置")
    metric_ids: List[int] = Field(default_factory=list, description="自定义指标ID列表")
    charts: List[str] = Field(default_factory=list)
    filters: ReportFilters = Field(default_factory=ReportFilters)
    layout: Optional[str] = None


class SavedReportBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="报表名称")
    description: Optional[str] = Field(None, max_length=2000)
    report_type: ReportType = "custom"
    configuration: ReportConfiguration = Field(default_factory=ReportConfiguration)
    is_public: bool = False


class SavedReportCreate(SavedReportBase):
    is_default: bool = False


class SavedReportUpdate(PartialUpdate):
    non_nullable = ("name", "report_type", "configuration", "is_public", "is_default")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    report_type: Optional[ReportType] = None
    configuration: Optional[ReportConfiguration] = None
    is_public: Optional[bool] = None
    is_default: Optional[bool] = None


class SavedReport(SavedReportBase):
    id: int
    is_default: bool
    owner_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReportMetricResult(BaseModel):
    metric_id: int
    name: Optional[str] = None
    result: WidgetResult


class SavedReportRun(BaseModel):
    """运行报表的结果 (每个指标独立成败)"""
    report_id: int
    date_range: Optional[str] = None
    results: List[ReportMetricResult]
    computed_at: datetime
