"""
Celery configuration for the FlexiConvert task queue.

Redis is the message broker. Conversion state lives in the job table, so a
result backend is optional (``CELERY_RESULT_BACKEND``).
"""

from celery import Celery
from kombu import Exchange, Queue

from flexiconvert.config import Config
from flexiconvert.utils.enhanced_logger import setup_enhanced_logging

logger = setup_enhanced_logging()

# Backstop limits around the engine's own deadline
SOFT_TIME_LIMIT = Config.max_job_duration_seconds()
HARD_TIME_LIMIT = SOFT_TIME_LIMIT + 30

celery_app = Celery(
    "flexiconvert",
    broker=Config.CELERY_BROKER_URL,
    backend=Config.CELERY_RESULT_BACKEND,
    include=["flexiconvert.tasks"],
)

# --------------------------
# Explicit queue definitions
# --------------------------
celery_app.conf.task_queues = [
    Queue("conversion", Exchange("conversion", type="direct"), routing_key="conversion"),
    Queue("maintenance", Exchange("maintenance", type="direct"), routing_key="maintenance"),
]
celery_app.conf.task_default_queue = "conversion"
celery_app.conf.task_default_exchange = "conversion"
celery_app.conf.task_default_routing_key = "conversion"

# --------------------------
# Celery configuration
# --------------------------
celery_app.conf.update(
    # Timezone settings
    timezone="UTC",
    enable_utc=True,
    # Serialization settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Task execution settings
    task_track_started=True,
    task_acks_late=True,  # Redelivery is refused by the claim
    worker_prefetch_multiplier=1,  # Workers fetch one task at a time (prevents hoarding)
    worker_send_task_events=True,
    result_expires=86400,  # Results expire after 24 hours (1 day)
    # Task time limits (prevent runaway tasks)
    task_time_limit=HARD_TIME_LIMIT,
    task_soft_time_limit=SOFT_TIME_LIMIT,
    # Worker settings
    worker_disable_rate_limits=True,
    worker_max_tasks_per_child=50,  # Restart worker after 50 tasks (prevent memory leaks)
    # Task routing
    task_routes={
        "flexiconvert.convert_document": {"queue": "conversion"},
        "flexiconvert.sweep_retention": {"queue": "maintenance"},
        "flexiconvert.reconcile_stale_jobs": {"queue": "maintenance"},
    },
    # Periodic tasks (Celery Beat schedule)
    beat_schedule={
        "sweep-retention-every-hour": {
            "task": "flexiconvert.sweep_retention",
            "schedule": 3600.0,
            "options": {"queue": "maintenance"},
        },
        "reconcile-stale-jobs-every-minute": {
            "task": "flexiconvert.reconcile_stale_jobs",
            "schedule": 60.0,
            "options": {"queue": "maintenance"},
        },
    },
    # Logging
    worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
    worker_task_log_format=(
        "[%(asctime)s: %(levelname)s/%(processName)s]" "[%(task_name)s(%(task_id)s)] %(message)s"
    ),
)


# --------------------------
# Fix for Gunicorn fork issue
# --------------------------
def reset_celery_broker_connection():
    """Close and reset Celery broker connection after Gunicorn fork."""
    try:
        celery_app.connection_or_acquire().release()
    except Exception as e:
        logger.warning(f"Failed to reset Celery broker connection after fork: {e}")

