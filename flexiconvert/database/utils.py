from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session as DBSession

from flexiconvert.utils.enums.job_status import JobStatus

from .models import ConversionJob


def get_job(db: DBSession, job_id: str) -> Optional[ConversionJob]:
    """Get a job by its ID"""
    return db.query(ConversionJob).filter(ConversionJob.id == job_id).first()


def claim_job(db: DBSession, job_id: str, now, lease_seconds: int) -> bool:
    """
    Atomically move a PENDING job to PROCESSING.

    The status guard in the WHERE clause makes the claim a compare-and-set:
    when two workers race for the same job exactly one UPDATE matches.

    Returns:
        bool: True if this caller now owns the job
    """
    claimed = (
        db.query(ConversionJob)
        .filter(ConversionJob.id == job_id, ConversionJob.status == JobStatus.PENDING)
        .update(
            {
                ConversionJob.status: JobStatus.PROCESSING,
                ConversionJob.progress: 10,
                ConversionJob.started_at: now,
                ConversionJob.lease_expires_at: now + timedelta(seconds=lease_seconds),
                ConversionJob.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return claimed == 1


def list_jobs(db: DBSession, user_id: Optional[str] = None, limit: int = 100) -> List[ConversionJob]:
    query = db.query(ConversionJob)
    if user_id is not None:
        query = query.filter(ConversionJob.user_id == user_id)
    return query.order_by(ConversionJob.created_at.desc()).limit(limit).all()


def jobs_created_before(db: DBSession, cutoff) -> List[ConversionJob]:
    return (
        db.query(ConversionJob)
        .filter(ConversionJob.created_at <= cutoff)
        .order_by(ConversionJob.created_at)
        .all()
    )


def expired_leases(db: DBSession, now) -> List[ConversionJob]:
    """PROCESSING jobs whose worker stopped renewing its lease."""
    return (
        db.query(ConversionJob)
        .filter(
            ConversionJob.status == JobStatus.PROCESSING,
            ConversionJob.lease_expires_at.isnot(None),
            ConversionJob.lease_expires_at < now,
        )
        .all()
    )


def referenced_filenames(db: DBSession) -> set:
    """Every upload and output filename still owned by a job record."""
    names = set()
    for stored, processed in db.query(ConversionJob.stored_filename, ConversionJob.processed_filename):
        names.add(stored)
        if processed:
            names.add(processed)
    return names
