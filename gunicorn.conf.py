"""
Gunicorn configuration for production deployment of the module access API.
"""
import multiprocessing
import os
from pathlib import Path

from framework.config import settings

LOG_DIR = Path(settings.LOG_DIR)
LOG_DIR.mkdir(parents=True, exist_ok=True)

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
# Access checks are I/O bound; a small pool of async workers is enough
workers = int(os.getenv("GUNICORN_WORKERS", min(4, multiprocessing.cpu_count())))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 2000
max_requests_jitter = 100
# Longer than ACCESS_CHECK_TIMEOUT_SECONDS so the app answers 504 before gunicorn kills it
timeout = int(settings.ACCESS_CHECK_TIMEOUT_SECONDS + settings.AI_REQUEST_TIMEOUT_SECONDS + 30)
graceful_timeout = 30
keepalive = 5

proc_name = (settings.GUNICORN_PROC_NAME or settings.APP_NAME.lower().replace(" ", "-"))[:32]

accesslog = str(LOG_DIR / "gunicorn_access.log")
errorlog = str(LOG_DIR / "gunicorn_error.log")
loglevel = "debug" if settings.DEBUG else "info"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s tenant=%({x-tenant-id}i)s'

daemon = False  # managed by systemd
pidfile = str(LOG_DIR / "gunicorn.pid")
# DB engine and Redis client are created per worker in the app lifespan
preload_app = False
worker_tmp_dir = "/dev/shm"


def when_ready(server):
    server.log.info("%s is ready. Listening on %s", settings.APP_NAME, server.address)


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s)", worker.pid)


def on_exit(server):
    server.log.info("%s is shutting down.", settings.APP_NAME)
