import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:8000")
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))

# Parked polls are greenlets, so one worker holds many of them
worker_class = "gevent"
worker_connections = int(os.getenv("WORKER_CONNECTIONS", "1000"))

# Must exceed CHAT_POLL_MAX_TIMEOUT
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
