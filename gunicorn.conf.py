"""Gunicorn configuration for the Stocksync reference backend."""
import os

# Network binding configuration. Defaults are suitable for containerized deployments.
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:5000")

# SQLite handles a single writer best; raise this when DB_URL points at a server database.
workers = int(os.getenv("GUNICORN_WORKERS", "1"))

# Full-collection pushes can be large on slow links.
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))

# Log to stdout/stderr by default so container orchestrators can capture logs.
accesslog = os.getenv("GUNICORN_ACCESS_LOGFILE", "-")
errorlog = os.getenv("GUNICORN_ERROR_LOGFILE", "-")

forwarded_allow_ips = os.getenv("GUNICORN_FORWARDED_ALLOW_IPS", "*")
