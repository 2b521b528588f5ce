"""
Celery tasks for FlexiConvert.

Tasks are thin: all state handling lives in the job executor and the
retention sweeper so it can be exercised without a broker.
"""

from celery.signals import worker_process_init

from flexiconvert.celery_config import celery_app
from flexiconvert.database.models import init_db
from flexiconvert.utils.enhanced_logger import setup_enhanced_logging
from flexiconvert.utils.job_executor import JobExecutor, reconcile_expired_leases
from flexiconvert.utils.retention import RetentionSweeper

logger = setup_enhanced_logging()


@worker_process_init.connect
def init_worker_database(**kwargs):
    # Each forked worker needs its own connection pool
    init_db()


@celery_app.task(bind=True, name="flexiconvert.convert_document")
def convert_document_task(self, job_id):
    """
    Convert the input of one job.

    Not retried: the executor always ends in a terminal state, and a second
    delivery of the same job is refused by the claim.

    Args:
        self: Celery task instance (bound via bind=True)
        job_id (str): Unique job identifier (UUID)

    Returns:
        dict: Task result with status and job_id
    """
    logger.info(f"Task {self.request.id} picked up job {job_id}")
    return JobExecutor().run(job_id)


@celery_app.task(name="flexiconvert.sweep_retention")
def sweep_retention_task(retention_hours=None):
    report = RetentionSweeper().sweep(retention_hours=retention_hours)
    return {
        "records": report.records,
        "orphans": report.orphans,
        "bytes_reclaimed": report.bytes_reclaimed,
        "skipped_active": report.skipped_active,
        "errors": report.errors,
    }


@celery_app.task(name="flexiconvert.reconcile_stale_jobs")
def reconcile_stale_jobs_task():
    return {"failed_jobs": reconcile_expired_leases()}


def enqueue_conversion(job_id):
    """Schedule a job for execution and return the Celery task id."""
    return convert_document_task.apply_async(args=[job_id], queue="conversion").id
