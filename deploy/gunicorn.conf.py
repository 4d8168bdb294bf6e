# ==============================================================================
# Gunicorn Configuration for the matrimony subscriptions API
# ==============================================================================
# Run with: gunicorn -c deploy/gunicorn.conf.py matrimony_site.wsgi:application

import multiprocessing
import os

# Server socket - Use PORT from environment (Railway/Heroku) or default to 8000
port = os.environ.get("PORT", "8000")
bind = f"0.0.0.0:{port}"
backlog = 2048

# Worker processes: (2 x CPU cores) + 1, overridable for small containers
workers = int(os.environ.get("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "sync"
timeout = 60  # JSON API only; sweeps run in Celery
keepalive = 5
max_requests = 1000
max_requests_jitter = 50

proc_name = "matrimony"

# Logging - Use stdout/stderr for cloud platforms
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("GUNICORN_LOG_LEVEL", "info")
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(L)s'

# Payment-proof uploads are multipart; keep header limits at defaults
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190

daemon = False  # Let container manage the process

raw_env = [
    "DJANGO_SETTINGS_MODULE=matrimony_site.settings",
]
