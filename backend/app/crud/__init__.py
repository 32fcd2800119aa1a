from app.crud.crud_custom_metric import crud_custom_metric
from app.crud.crud_dashboard import crud_dashboard
from app.crud.crud_dashboard_template import crud_dashboard_template
from app.crud.crud_saved_report import crud_saved_report
from app.crud.crud_scheduled_report import crud_scheduled_report
