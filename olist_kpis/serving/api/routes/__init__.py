"""
API Routes Module
"""
from .health import router as health_router
from .reports import router as reports_router, get_report_service

__all__ = [
    "health_router",
    "reports_router",
    "get_report_service",
]
