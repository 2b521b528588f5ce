"""
Environment driven configuration for the web app, workers and cleanup command.

Every value can be overridden through an environment variable of the same
name (``MAX_UPLOAD_SIZE`` and ``CONVERSION_TIMEOUT`` keep their short names).
"""

import os


def _int_env(name, default):
    value = os.getenv(name, "").strip()
    return int(value) if value else default


class Config:
    """Flask-style configuration object (used with ``app.config.from_object``)."""

    # Storage
    STORAGE_PATH = os.getenv("STORAGE_PATH", "/data")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:////data/jobs.db")

    # Task queue
    CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND") or None

    # Upload limits (original service capped uploads at 100MB)
    MAX_CONTENT_LENGTH = _int_env("MAX_UPLOAD_SIZE", 100 * 1024 * 1024)

    # Conversion deadline and lease slack for stuck-job reconciliation
    CONVERSION_TIMEOUT_SECONDS = _int_env("CONVERSION_TIMEOUT", 300)
    LEASE_GRACE_SECONDS = _int_env("LEASE_GRACE_SECONDS", 60)

    # Retention sweeper
    CLEANUP_RETENTION_HOURS = _int_env("CLEANUP_RETENTION_HOURS", 24)

    # HTTP / websocket
    ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*")
    SOCKETIO_CORS_ORIGINS = os.getenv("SOCKETIO_CORS_ORIGINS", "*")
    SOCKETIO_ASYNC_MODE = os.getenv("SOCKETIO_ASYNC_MODE", "eventlet")
    SOCKETIO_MESSAGE_QUEUE = os.getenv("SOCKETIO_MESSAGE_QUEUE", "")

    # PDF output fonts (TrueType); the bundled DejaVu Sans is used when unset
    PDF_FONT_PATH = os.getenv("PDF_FONT_PATH", "")
    PDF_BOLD_FONT_PATH = os.getenv("PDF_BOLD_FONT_PATH", "")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def max_job_duration_seconds(cls):
        """Longest a job may legitimately stay in ``processing``."""
        return cls.CONVERSION_TIMEOUT_SECONDS + cls.LEASE_GRACE_SECONDS

