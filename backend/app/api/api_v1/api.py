from fastapi import APIRouter

from app.api.api_v1.endpoints import (
    analytics, custom_metrics, dashboards, dashboard_widgets,
    dashboard_templates, saved_reports, scheduled_reports
)

api_router = APIRouter()


# 添加API根路径处理器
@api_router.get("/")
async def api_root():
    """API根路径"""
    return {
        "message": "Records Analytics API",
        "version": "0.1.0",
        "status": "running",
        "endpoints": {
            "analytics": "/api/analytics/",
            "custom_metrics": "/api/custom-metrics/",
            "dashboards": "/api/dashboards/",
            "dashboard_templates": "/api/dashboard-templates/",
            "saved_reports": "/api/saved-reports/",
            "scheduled_reports": "/api/scheduled-reports/",
            "docs": "/docs",
            "openapi": "/openapi.json"
        }
    }

api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(custom_metrics.router, prefix="/custom-metrics", tags=["custom-metrics"])
api_router.include_router(dashboards.router, prefix="/dashboards", tags=["dashboards"])
api_router.include_router(dashboard_widgets.router, prefix="", tags=["widgets"])
api_router.include_router(dashboard_templates.router, prefix="/dashboard-templates", tags=["dashboard-templates"])
api_router.include_router(saved_reports.router, prefix="/saved-reports", tags=["saved-reports"])
api_router.include_router(scheduled_reports.router, prefix="/scheduled-reports", tags=["scheduled-reports"])
