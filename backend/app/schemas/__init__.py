# Import and re-export schema classes
from app.schemas.analytics import (
    FilterPredicate,
    AggregationSpec,
    MetricConfig,
    WidgetConfig,
    GroupedPoint,
    AggregationResult,
    WidgetResult,
    FieldDescriptor,
    DataSourceInfo,
    EvaluateRequest,
    ChangeNotification,
    ChangeNotificationResponse,
    NONE_GROUP_KEY,
)
from app.schemas.custom_metric import (
    CustomMetric,
    CustomMetricCreate,
    CustomMetricUpdate,
    MetricCalculationResponse,
)
from app.schemas.dashboard import (
    Position,
    DisplayOptions,
    Widget,
    WidgetCreate,
    WidgetUpdate,
    DashboardCreate,
    DashboardUpdate,
    DashboardSave,
    DashboardListItem,
    DashboardDetail,
    DashboardResults,
    SaveAsTemplateRequest,
)
from app.schemas.dashboard_template import (
    DashboardTemplate,
    DashboardTemplateCreate,
    DashboardTemplateUpdate,
    CreateFromTemplateRequest,
)
from app.schemas.saved_report import (
    ReportConfiguration,
    ReportFilters,
    SavedReport,
    SavedReportCreate,
    SavedReportUpdate,
    ReportMetricResult,
    SavedReportRun,
)
from app.schemas.scheduled_report import (
    ScheduleSpec,
    Recipient,
    ScheduledReport,
    ScheduledReportCreate,
    ScheduledReportUpdate,
    SweepSummary,
)
