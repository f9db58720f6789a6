"""
API Routers
"""
from .metrics import router as metrics_router
from .analytics import router as analytics_router
from .alerts import router as alerts_router
from .reports import router as reports_router

__all__ = ["metrics_router", "analytics_router", "alerts_router", "reports_router"]
