"""
Centralized job status management utilities.

Status and progress writes are conditional UPDATEs guarded by the status the
caller last saw, so a worker can never overwrite a record that another
process (a second worker, the lease reconciler) has already moved on.
"""
from datetime import timedelta

from flexiconvert.database.models import ConversionJob, utcnow
from flexiconvert.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from flexiconvert.utils.enums.job_status import JobStatus
from flexiconvert.utils.socketio_broadcast import broadcast_job_update

logger = setup_enhanced_logging()

MAX_PROGRESS_WHILE_PROCESSING = 99


class InvalidStatusTransition(Exception):
    def __init__(self, job_id, old_status, new_status):
        self.job_id = job_id
        self.old_status = old_status
        self.new_status = new_status
        old = old_status.value if old_status else None
        super().__init__(f"Job {job_id}: cannot move from {old} to {new_status.value}")


def change_status(
    job,
    new_status,
    db,
    now=None,
    error_message=None,
    error_kind=None,
    context=None,
    broadcast=True,
):
    """
    Move a job to a new status and log the change.

    Args:
        job: ConversionJob instance (refreshed from the database afterwards)
        new_status: JobStatus enum value
        db: Database session
        now: Timestamp for the transition (defaults to utcnow)
        error_message: Required cause when moving to FAILED
        error_kind: ErrorKind recorded next to the message on FAILED
        context: Additional context for logging (optional)
        broadcast: Whether to emit a ``job_update`` event after commit

    Raises:
        InvalidStatusTransition: if the transition is not allowed, or the
            record changed status underneath the caller
    """
    old_status = job.status

    if old_status == new_status:
        log_with_context(
            logger, "debug", f"Status already {new_status.value}, no change needed",
            job_id=job.id,
        )
        return

    if old_status is None or not old_status.can_transition_to(new_status):
        raise InvalidStatusTransition(job.id, old_status, new_status)

    now = now or utcnow()
    values = {
        ConversionJob.status: new_status,
        ConversionJob.updated_at: now,
    }

    if new_status == JobStatus.PROCESSING:
        values[ConversionJob.started_at] = now
        values[ConversionJob.progress] = max(job.progress or 0, 10)
    elif new_status == JobStatus.COMPLETED:
        if not job.processed_filename or job.processed_file_size is None:
            raise ValueError(f"Job {job.id} cannot complete without an output file")
        values[ConversionJob.progress] = 100
        values[ConversionJob.completed_at] = now
        values[ConversionJob.processed_filename] = job.processed_filename
        values[ConversionJob.processed_file_size] = job.processed_file_size
        values[ConversionJob.error_message] = None
        values[ConversionJob.error_kind] = None
        values[ConversionJob.lease_expires_at] = None
    elif new_status == JobStatus.FAILED:
        values[ConversionJob.completed_at] = now
        values[ConversionJob.error_message] = error_message or "Conversion failed"
        values[ConversionJob.error_kind] = error_kind
        values[ConversionJob.processed_filename] = None
        values[ConversionJob.processed_file_size] = None
        values[ConversionJob.lease_expires_at] = None

    log_with_context(
        logger, "info", f"Status change: {old_status.value} -> {new_status.value}",
        job_id=job.id,
        **(context or {}),
    )

    try:
        updated = (
            db.query(ConversionJob)
            .filter(ConversionJob.id == job.id, ConversionJob.status == old_status)
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            db.rollback()
            db.refresh(job)
            log_with_context(
                logger, "warning", "Status changed underneath caller, transition dropped",
                job_id=job.id,
                expected=old_status.value,
                actual=job.status.value if job.status else None,
                requested=new_status.value,
            )
            raise InvalidStatusTransition(job.id, job.status, new_status)
        db.commit()
    except InvalidStatusTransition:
        raise
    except Exception as e:
        db.rollback()
        log_with_context(
            logger, "error", f"FAILED status change from {old_status.value} to {new_status.value}: {e}",
            job_id=job.id,
            error_type=type(e).__name__,
        )
        raise

    db.refresh(job)

    if broadcast:
        broadcast_job_update(job)


def update_progress(job, progress, db, now=None, lease_seconds=None, broadcast=True):
    """
    Record an advisory progress checkpoint for a PROCESSING job.

    Progress never decreases and stays below 100 until completion. When
    ``lease_seconds`` is given the worker's lease is renewed as well.

    Returns:
        bool: False if the job is no longer processing
    """
    if job.status != JobStatus.PROCESSING:
        return False

    now = now or utcnow()
    target = max(job.progress or 0, min(int(progress), MAX_PROGRESS_WHILE_PROCESSING))
    values = {
        ConversionJob.progress: target,
        ConversionJob.updated_at: now,
    }
    if lease_seconds is not None:
        values[ConversionJob.lease_expires_at] = now + timedelta(seconds=lease_seconds)

    updated = (
        db.query(ConversionJob)
        .filter(
            ConversionJob.id == job.id,
            ConversionJob.status == JobStatus.PROCESSING,
            ConversionJob.progress <= target,
        )
        .update(values, synchronize_session=False)
    )
    db.commit()
    db.refresh(job)

    if updated != 1:
        return False

    log_with_context(logger, "debug", f"Progress {target}%", job_id=job.id)
    if broadcast:
        broadcast_job_update(job)
    return True
