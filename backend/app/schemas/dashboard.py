"""Dashboard Schema定义"""
from typing import Optional, List
from datetime import datetime
import uuid

from pydantic import BaseModel, Field

from app.schemas.analytics import WidgetConfig, WidgetResult, WidgetType
from app.schemas.partial_update import PartialUpdate


def new_widget_id() -> str:
    return uuid.uuid4().hex


# ===== Widget =====

class Position(BaseModel):
    """网格位置"""
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    w: int = Field(4, ge=1)
    h: int = Field(3, ge=1)


class DisplayOptions(BaseModel):
    """展示选项 (由渲染层解释)"""
    custom_colors: Optional[List[str]] = None
    show_legend: bool = True
    show_grid: bool = True
    show_tooltip: bool = True
    animation_enabled: bool = True


class WidgetCreate(BaseModel):
    """添加Widget请求 (ID由服务端生成)"""
    type: WidgetType = Field(..., description="组件类型")
    position: Position = Field(default_factory=Position)
    config: WidgetConfig
    display_options: DisplayOptions = Field(default_factory=DisplayOptions)


class WidgetUpdate(PartialUpdate):
    """更新Widget请求"""
    non_nullable = ("type", "position", "config", "display_options")

    type: Optional[WidgetType] = None
    position: Optional[Position] = None
    config: Optional[WidgetConfig] = None
    display_options: Optional[DisplayOptions] = None


class Widget(WidgetCreate):
    """Dashboard内嵌的Widget"""
    id: str = Field(default_factory=new_widget_id, description="Widget ID (dashboard内唯一)")


# ===== Dashboard =====

class DashboardBase(BaseModel):
    """Dashboard基础Schema"""
    name: str = Field(..., min_length=1, max_length=255, description="Dashboard名称")
    description: Optional[str] = Field(None, max_length=2000, description="Dashboard描述")
    is_public: bool = Field(False, description="是否公开")
    tags: Optional[List[str]] = Field(None, description="标签列表")
    category: Optional[str] = Field(None, max_length=100, description="分类")


class DashboardCreate(DashboardBase):
    """创建Dashboard的请求Schema"""
    widgets: List[Widget] = Field(default_factory=list)
    is_default: bool = False


class DashboardUpdate(PartialUpdate):
    """更新Dashboard元数据 (不含widgets)"""
    non_nullable = ("name", "is_public")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None
    category: Optional[str] = None


class DashboardSave(BaseModel):
    """整体替换widgets列表

    ``expected_version`` 提供时启用乐观并发检查，否则 last-write-wins。
    """
    widgets: List[Widget]
    expected_version: Optional[int] = Field(None, ge=1)


class DashboardListItem(DashboardBase):
    """Dashboard列表项Schema"""
    id: int
    owner_id: int
    widget_count: int = Field(0, description="Widget数量")
    is_template: bool = False
    is_default: bool = False
    access_count: int = 0
    last_accessed_at: Optional[datetime] = None
    version: int = 1
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DashboardDetail(DashboardBase):
    """Dashboard详情Schema"""
    id: int
    owner_id: int
    widgets: List[Widget] = Field(default_factory=list, description="Widget列表")
    is_template: bool = False
    is_default: bool = False
    access_count: int = 0
    last_accessed_at: Optional[datetime] = None
    version: int = 1
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SaveAsTemplateRequest(BaseModel):
    """另存为模板"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = Field("custom", max_length=100)


class DashboardResults(BaseModel):
    """Dashboard计算快照 (每个widget独立成败)"""
    dashboard_id: int
    name: str
    results: List[WidgetResult]
    success_count: int
    failed_count: int
    total_duration_ms: int
    computed_at: datetime
