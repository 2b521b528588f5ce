"""Tests for the job status state machine."""

import pytest

from flexiconvert.database.utils import claim_job, get_job
from flexiconvert.utils.enums.error_kind import ErrorKind
from flexiconvert.utils.enums.job_status import TERMINAL_STATUSES, JobStatus
from flexiconvert.utils.job_status import InvalidStatusTransition, change_status, update_progress


class TestJobStatusEnum:
    def test_values(self):
        assert [s.value for s in JobStatus] == ["pending", "processing", "completed", "failed"]

    def test_terminal_states(self):
        assert TERMINAL_STATUSES == {JobStatus.COMPLETED, JobStatus.FAILED}
        assert not JobStatus.PENDING.is_terminal

    def test_transition_table(self):
        assert JobStatus.PENDING.can_transition_to(JobStatus.PROCESSING)
        assert not JobStatus.PENDING.can_transition_to(JobStatus.COMPLETED)
        assert JobStatus.PROCESSING.can_transition_to(JobStatus.FAILED)
        for terminal in TERMINAL_STATUSES:
            assert not any(terminal.can_transition_to(s) for s in JobStatus)


@pytest.fixture
def processing_job(make_job, db, clock):
    job = make_job()
    claim_job(db, job.id, clock(), lease_seconds=60)
    db.refresh(job)
    return job


class TestChangeStatus:
    """change_status enforces the transition table and the timestamp invariants."""

    def test_pending_cannot_complete(self, make_job, db):
        job = make_job()
        with pytest.raises(InvalidStatusTransition):
            change_status(job, JobStatus.COMPLETED, db)

    def test_pending_to_processing(self, make_job, db, clock):
        job = make_job()
        change_status(job, JobStatus.PROCESSING, db, now=clock())

        assert job.status == JobStatus.PROCESSING
        assert job.started_at == clock()
        assert job.progress == 10

    def test_complete_sets_output_fields(self, processing_job, db, clock):
        processing_job.processed_filename = "out.json"
        processing_job.processed_file_size = 42
        change_status(processing_job, JobStatus.COMPLETED, db, now=clock.advance(seconds=5))

        db.expire_all()
        job = get_job(db, processing_job.id)
        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100
        assert job.completed_at == clock()
        assert job.processed_file_size == 42
        assert job.lease_expires_at is None
        assert job.error_message is None

    def test_complete_requires_output(self, processing_job, db):
        with pytest.raises(ValueError):
            change_status(processing_job, JobStatus.COMPLETED, db)

    def test_fail_records_error(self, processing_job, db, clock):
        change_status(
            processing_job, JobStatus.FAILED, db,
            now=clock(),
            error_message="bad input",
            error_kind=ErrorKind.CODEC_ERROR,
        )

        assert processing_job.status == JobStatus.FAILED
        assert processing_job.error_message == "bad input"
        assert processing_job.error_kind is ErrorKind.CODEC_ERROR
        assert processing_job.completed_at == clock()
        assert processing_job.processed_file_size is None

    def test_fail_without_message_gets_default(self, processing_job, db):
        change_status(processing_job, JobStatus.FAILED, db)
        assert processing_job.error_message

    def test_terminal_states_are_final(self, processing_job, db):
        change_status(processing_job, JobStatus.FAILED, db, error_message="x")
        with pytest.raises(InvalidStatusTransition):
            change_status(processing_job, JobStatus.PROCESSING, db)

    def test_same_status_is_noop(self, processing_job, db):
        change_status(processing_job, JobStatus.PROCESSING, db)
        assert processing_job.status == JobStatus.PROCESSING

    def test_stale_caller_cannot_overwrite(self, processing_job, db, session_factory):
        """A worker holding an old copy cannot complete a job that was failed elsewhere."""
        other = session_factory()
        try:
            change_status(get_job(other, processing_job.id), JobStatus.FAILED, other, error_message="reaped")
        finally:
            other.close()

        processing_job.processed_filename = "out.json"
        processing_job.processed_file_size = 1
        with pytest.raises(InvalidStatusTransition):
            change_status(processing_job, JobStatus.COMPLETED, db)

        db.expire_all()
        job = get_job(db, processing_job.id)
        assert job.status == JobStatus.FAILED
        assert job.processed_filename is None


class TestUpdateProgress:
    def test_progress_is_monotonic_and_capped(self, processing_job, db):
        assert update_progress(processing_job, 30, db)
        assert processing_job.progress == 30

        update_progress(processing_job, 20, db)
        assert processing_job.progress == 30

        update_progress(processing_job, 100, db)
        assert processing_job.progress == 99

    def test_progress_renews_lease(self, processing_job, db, clock):
        update_progress(processing_job, 30, db, now=clock.advance(seconds=50), lease_seconds=60)
        assert (processing_job.lease_expires_at - clock()).total_seconds() == 60

    def test_ignored_outside_processing(self, make_job, db):
        job = make_job()
        assert update_progress(job, 50, db) is False
        assert job.progress == 0
