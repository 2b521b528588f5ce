"""
Retention sweeper.

Deletes job records created at or before the retention cutoff together with
their upload and output files. Unfinished jobs still holding a lease, or
touched within the maximum job duration, are left alone. Orphaned files
(present on disk, referenced by no record) are removed once they are older
than both the cutoff and the maximum job duration. A dry run walks exactly
the same candidates without touching anything.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from flexiconvert.config import Config
from flexiconvert.database.models import format_bytes, get_db_session, utcnow
from flexiconvert.database.utils import jobs_created_before, referenced_filenames
from flexiconvert.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from flexiconvert.utils.storage import OUTPUTS, UPLOADS, get_storage

logger = setup_enhanced_logging()

RECORD = "record"
ORPHAN = "orphan"


@dataclass(frozen=True)
class SweepItem:
    kind: str  # RECORD or ORPHAN
    identifier: str  # job id, or "<area>/<filename>"
    size: int
    timestamp: datetime


@dataclass
class SweepReport:
    dry_run: bool
    cutoff: datetime
    items: List[SweepItem] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    skipped_active: int = 0
    bytes_reclaimed: int = 0

    @property
    def records(self):
        return sum(1 for item in self.items if item.kind == RECORD)

    @property
    def orphans(self):
        return sum(1 for item in self.items if item.kind == ORPHAN)

    def candidates(self):
        return [(item.kind, item.identifier) for item in self.items]

    def summary(self):
        verb = "Would delete" if self.dry_run else "Deleted"
        return (
            f"{verb} {self.records} record(s) and {self.orphans} orphaned file(s), "
            f"{format_bytes(self.bytes_reclaimed)} reclaimed"
        )


class RetentionSweeper:
    def __init__(self, session_factory=get_db_session, storage=None, clock=utcnow, safety_margin_seconds=None):
        self.session_factory = session_factory
        self.storage = storage or get_storage()
        self.clock = clock
        self.safety_margin = timedelta(
            seconds=Config.max_job_duration_seconds() if safety_margin_seconds is None else safety_margin_seconds
        )

    def sweep(self, retention_hours: Optional[float] = None, dry_run: bool = False) -> SweepReport:
        """
        Run one sweep.

        Args:
            retention_hours: Age threshold (defaults to ``CLEANUP_RETENTION_HOURS``)
            dry_run: Report candidates without deleting anything
        """
        if retention_hours is None:
            retention_hours = Config.CLEANUP_RETENTION_HOURS
        if retention_hours < 0:
            raise ValueError("retention_hours must not be negative")

        now = self.clock()
        cutoff = now - timedelta(hours=retention_hours)
        active_cutoff = now - self.safety_margin
        report = SweepReport(dry_run=dry_run, cutoff=cutoff)

        log_with_context(
            logger, "info", "Retention sweep started",
            cutoff=cutoff.isoformat(),
            retention_hours=retention_hours,
            dry_run=dry_run,
        )

        db = self.session_factory()
        try:
            self._sweep_records(db, report, cutoff, now, active_cutoff)
            self._sweep_orphans(db, report, min(cutoff, active_cutoff))
        finally:
            db.close()

        log_with_context(
            logger, "info", report.summary(),
            dry_run=dry_run,
            errors=len(report.errors) or None,
        )
        return report

    def _sweep_records(self, db, report, cutoff, now, active_cutoff):
        for job in jobs_created_before(db, cutoff):
            if self._may_be_active(job, now, active_cutoff):
                # May still be running; leave it for a later sweep
                report.skipped_active += 1
                continue

            files = [(UPLOADS, job.stored_filename)]
            if job.processed_filename:
                files.append((OUTPUTS, job.processed_filename))

            try:
                if report.dry_run:
                    size = sum(self._existing_size(area, name) for area, name in files)
                else:
                    size = sum(self._delete(area, name, job_id=job.id) for area, name in files)
                    db.delete(job)
                    db.commit()
            except Exception as e:
                db.rollback()
                message = f"record {job.id}: {e}"
                report.errors.append(message)
                log_with_context(logger, "error", f"Failed to sweep record: {e}", job_id=job.id)
                continue

            report.items.append(SweepItem(RECORD, job.id, size, job.created_at))
            report.bytes_reclaimed += size
            log_with_context(
                logger, "info", "Would delete record" if report.dry_run else "Deleted record",
                job_id=job.id,
                status=job.status.value,
                created_at=job.created_at.isoformat(),
                size=format_bytes(size),
            )

    @staticmethod
    def _may_be_active(job, now, active_cutoff):
        """A non-terminal job holding a live lease or touched within the safety margin."""
        if job.is_terminal:
            return False
        if job.lease_expires_at is not None and job.lease_expires_at > now:
            return True
        last_activity = max(stamp for stamp in (job.created_at, job.started_at, job.updated_at) if stamp)
        return last_activity > active_cutoff

    def _sweep_orphans(self, db, report, older_than):
        referenced = referenced_filenames(db)

        for area in (UPLOADS, OUTPUTS):
            for stored in self.storage.list_files(area):
                if stored.name in referenced or stored.modified_at >= older_than:
                    continue

                identifier = f"{area}/{stored.name}"
                try:
                    size = stored.size if report.dry_run else self._delete(area, stored.name)
                except OSError as e:
                    report.errors.append(f"{identifier}: {e}")
                    logger.error(f"Failed to delete orphaned file {identifier}: {e}")
                    continue

                report.items.append(SweepItem(ORPHAN, identifier, size, stored.modified_at))
                report.bytes_reclaimed += size
                log_with_context(
                    logger, "info", "Would delete orphan" if report.dry_run else "Deleted orphan",
                    file=identifier,
                    size=format_bytes(size),
                )

    def _existing_size(self, area, filename):
        path = self.storage.upload_path(filename) if area == UPLOADS else self.storage.output_path(filename)
        return self.storage.get_file_size(path) or 0

    def _delete(self, area, filename, job_id=None):
        freed = self.storage.delete_file(area, filename)
        if freed == 0 and job_id:
            log_with_context(logger, "debug", "File already gone", job_id=job_id, file=f"{area}/{filename}")
        return freed
