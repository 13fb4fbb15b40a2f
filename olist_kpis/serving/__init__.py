"""
Serving Module
"""
from .cache import CacheManager, init_redis, close_redis, get_redis, reports_cache
from .reports import ReportService, ReportUnavailableError

__all__ = [
    "CacheManager",
    "init_redis",
    "close_redis",
    "get_redis",
    "reports_cache",
    "ReportService",
    "ReportUnavailableError",
]
