"""
Job executor: drives one job record from PENDING to a terminal state.

Progress checkpoints: 10 on claim, 30 once the input is resolved, 80 when
the engine returns, 100 on completion. Every failure past the claim is
caught here and recorded as FAILED with an ``ErrorKind``; ``run`` itself
never raises for a conversion problem.
"""
from flexiconvert.config import Config
from flexiconvert.converters.capabilities import output_extension
from flexiconvert.converters.engine import default_engine
from flexiconvert.database.models import get_db_session, utcnow
from flexiconvert.database.utils import claim_job, expired_leases, get_job
from flexiconvert.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from flexiconvert.utils.enums.error_kind import ErrorKind
from flexiconvert.utils.enums.job_status import JobStatus
from flexiconvert.utils.job_status import InvalidStatusTransition, change_status, update_progress
from flexiconvert.utils.socketio_broadcast import broadcast_job_update
from flexiconvert.utils.storage import OUTPUTS, get_storage

logger = setup_enhanced_logging()

PROGRESS_INPUT_RESOLVED = 30
PROGRESS_ENGINE_RETURNED = 80


class JobLost(Exception):
    """The record left PROCESSING while this worker still held it."""


class JobExecutor:
    def __init__(
        self,
        session_factory=get_db_session,
        storage=None,
        engine=None,
        clock=utcnow,
        timeout_seconds=None,
        lease_grace_seconds=None,
        broadcast=True,
    ):
        self.session_factory = session_factory
        self.storage = storage or get_storage()
        self.engine = engine or default_engine
        self.clock = clock
        self.timeout_seconds = (
            Config.CONVERSION_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        self.lease_grace_seconds = (
            Config.LEASE_GRACE_SECONDS if lease_grace_seconds is None else lease_grace_seconds
        )
        self.broadcast = broadcast

    @property
    def lease_seconds(self):
        return (self.timeout_seconds or 0) + self.lease_grace_seconds

    def run(self, job_id):
        """
        Claim and execute a job.

        Returns:
            dict: Outcome with ``status`` of ``success``, ``failed``, ``skipped``
            (not claimable) or ``abandoned`` (record moved on mid-run)
        """
        db = self.session_factory()
        try:
            if not claim_job(db, job_id, self.clock(), self.lease_seconds):
                job = get_job(db, job_id)
                log_with_context(
                    logger, "warning", "Job not claimable, skipping",
                    job_id=job_id,
                    status=job.status.value if job else "missing",
                )
                return {"status": "skipped", "job_id": job_id}

            job = get_job(db, job_id)
            log_with_context(
                logger, "info", "Job claimed",
                job_id=job_id,
                conversion=f"{job.input_format}->{job.target_format}",
                lease_seconds=self.lease_seconds,
            )
            if self.broadcast:
                broadcast_job_update(job)

            return self._execute(db, job)
        finally:
            db.close()

    def _execute(self, db, job):
        output_name = None
        try:
            input_path = self.storage.upload_path(job.stored_filename)
            if not input_path.is_file():
                return self._fail(
                    db, job, ErrorKind.IO_ERROR,
                    f"Input file for '{job.original_filename}' is no longer available",
                )
            self._checkpoint(db, job, PROGRESS_INPUT_RESOLVED)

            output_name = self.storage.new_output_filename(output_extension(job.target_format))
            result = self.engine.convert(
                input_path,
                self.storage.output_path(output_name),
                job.input_format,
                job.target_format,
                settings=job.settings,
                timeout=self.timeout_seconds or None,
            )
            if not result.ok:
                output_name = None
                return self._fail(db, job, result.error.kind, result.error.message)

            self._checkpoint(db, job, PROGRESS_ENGINE_RETURNED)

            job.processed_filename = output_name
            job.processed_file_size = result.output.size
            change_status(
                job, JobStatus.COMPLETED, db,
                now=self.clock(),
                context={"output_size": result.output.size, "seconds": result.output.duration_seconds},
                broadcast=self.broadcast,
            )
            return {
                "status": "success",
                "job_id": job.id,
                "output_filename": job.download_name,
                "output_size": job.processed_file_size,
            }

        except (JobLost, InvalidStatusTransition) as e:
            log_with_context(logger, "warning", f"Abandoning job: {e}", job_id=job.id)
            self._discard_output(output_name)
            return {"status": "abandoned", "job_id": job.id}

        except Exception as e:
            logger.exception(f"Job {job.id} crashed during execution")
            db.rollback()
            self._discard_output(output_name)
            return self._fail(db, job, ErrorKind.EXECUTION_FAILURE, f"{type(e).__name__}: {e}")

    def _checkpoint(self, db, job, progress):
        if not update_progress(
            job, progress, db,
            now=self.clock(),
            lease_seconds=self.lease_seconds,
            broadcast=self.broadcast,
        ):
            raise JobLost(f"job left processing (now {job.status.value})")

    def _fail(self, db, job, kind, message):
        try:
            change_status(
                job, JobStatus.FAILED, db,
                now=self.clock(),
                error_message=message,
                error_kind=kind,
                context={"error_kind": kind.value},
                broadcast=self.broadcast,
            )
        except InvalidStatusTransition as e:
            log_with_context(logger, "warning", f"Could not record failure: {e}", job_id=job.id)
        except Exception:
            # Lease reconciliation fails the job once its lease runs out
            logger.exception(f"Failed to record failure for job {job.id}")
        return {"status": "failed", "job_id": job.id, "error_kind": kind.value, "error": message}

    def _discard_output(self, output_name):
        if not output_name:
            return
        try:
            self.storage.delete_file(OUTPUTS, output_name)
        except OSError as e:
            logger.warning(f"Could not remove output {output_name}: {e}")


def reconcile_expired_leases(session_factory=get_db_session, clock=utcnow, broadcast=True):
    """
    Fail PROCESSING jobs whose worker stopped renewing its lease.

    Such jobs are not re-run; the user resubmits.

    Returns:
        list: IDs of the jobs marked FAILED
    """
    db = session_factory()
    reclaimed = []
    try:
        now = clock()
        for job in expired_leases(db, now):
            expired_at = job.lease_expires_at
            try:
                change_status(
                    job, JobStatus.FAILED, db,
                    now=now,
                    error_message=(
                        f"Conversion did not finish in time; worker lease expired at "
                        f"{expired_at.isoformat()}"
                    ),
                    error_kind=ErrorKind.LEASE_EXPIRED,
                    context={"lease_expires_at": expired_at.isoformat()},
                    broadcast=broadcast,
                )
            except InvalidStatusTransition:
                # Worker finished between the query and the update
                continue
            reclaimed.append(job.id)

        if reclaimed:
            log_with_context(logger, "warning", f"Reclaimed {len(reclaimed)} stale job(s)", job_ids=",".join(reclaimed))
        return reclaimed
    finally:
        db.close()
