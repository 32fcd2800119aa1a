# Import all the models, so that Base has them before being
# imported by Alembic
from app.db.base_class import Base  # noqa
from app.models.records import Project, Task, Contact, ProjectPayment, Invoice  # noqa
from app.models.custom_metric import CustomMetric  # noqa
from app.models.saved_report import SavedReport  # noqa
from app.models.dashboard import Dashboard  # noqa
from app.models.dashboard_template import DashboardTemplate  # noqa
from app.models.scheduled_report import ScheduledReport  # noqa
