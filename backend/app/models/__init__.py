# Import all models so Alembic can detect them
from app.models.records import Project, Task, Contact, ProjectPayment, Invoice
from app.models.custom_metric import CustomMetric
from app.models.saved_report import SavedReport
from app.models.dashboard import Dashboard
from app.models.dashboard_template import DashboardTemplate
from app.models.scheduled_report import ScheduledReport
