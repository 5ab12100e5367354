import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'linkpulse.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    CHANGE_EVENT_RETENTION_HOURS = int(
        os.environ.get("CHANGE_EVENT_RETENTION_HOURS", "72")
    )
    CHANGE_PRUNE_INTERVAL_MINUTES = int(
        os.environ.get("CHANGE_PRUNE_INTERVAL_MINUTES", "60")
    )
    CHANGE_FEED_PAGE_SIZE = int(os.environ.get("CHANGE_FEED_PAGE_SIZE", "200"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False


class ClientConfig:
    API_BASE_URL = os.environ.get("LINKPULSE_API_URL", "http://127.0.0.1:8072")
    HTTP_TIMEOUT = float(os.environ.get("LINKPULSE_HTTP_TIMEOUT", "10"))
    CHANGE_POLL_INTERVAL_SECONDS = float(
        os.environ.get("LINKPULSE_POLL_INTERVAL_SECONDS", "2")
    )
    REFETCH_DEBOUNCE_SECONDS = float(
        os.environ.get("LINKPULSE_REFETCH_DEBOUNCE_SECONDS", "0.25")
    )
    REMOTE_WORKERS = int(os.environ.get("LINKPULSE_REMOTE_WORKERS", "4"))
