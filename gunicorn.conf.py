# gunicorn.conf.py
import multiprocessing
import os

from planledger.app_logger import build_logging_config

# import path to the app factory (package installed, or PYTHONPATH=src)
wsgi_app = "planledger.main:create_app()"

# networking
host = os.getenv("HOST", "0.0.0.0")
port = int(os.getenv("PORT", "8000"))
bind = f"{host}:{port}"

# workers; per-plan finalize serialization across workers relies on the
# PostgreSQL advisory lock, not the in-process one
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_tmp_dir = "/dev/shm"

# timeouts
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

# logging
accesslog = "-"   # stdout
errorlog = "-"    # stderr
loglevel = os.getenv("LOG_LEVEL", "info")
capture_output = True

# resiliency on occasional worker leaks
max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", "1000"))
max_requests_jitter = int(os.getenv("GUNICORN_MAX_REQUESTS_JITTER", "100"))

# JSON lines for master and workers, same layout the app uses with LOG_JSON=1
logconfig_dict = build_logging_config(os.getenv("LOG_LEVEL", "INFO").upper(), json_logs=True)
