"""
Production Server Configuration

Run the report API with Uvicorn workers under Gunicorn:

    gunicorn olist_kpis.main:app -c gunicorn.conf.py

Each worker loads its own snapshot and computes reports at startup; the
Redis report cache is shared between them.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", f"0.0.0.0:{os.getenv('API_PORT', '8000')}")
backlog = 2048

# Worker processes; reports are CPU bound, one worker per core
workers = int(os.getenv("API_WORKERS", multiprocessing.cpu_count()))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 10000
max_requests_jitter = 1000
# Startup computes every report before the worker accepts traffic
timeout = 300
keepalive = 5
graceful_timeout = 30

proc_name = "olist-kpis-api"

# Logging
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s'


def when_ready(server):
    server.log.info("Olist KPI API ready on %s with %s workers", bind, workers)
