"""Tests for the job executor and lease reconciliation."""

import json

import pytest

from flexiconvert.converters import ConversionEngine
from flexiconvert.converters.base import ConversionStrategy
from flexiconvert.converters.capabilities import FormatFamily
from flexiconvert.database.utils import claim_job, get_job
from flexiconvert.utils.enums.error_kind import ErrorKind
from flexiconvert.utils.enums.job_status import JobStatus
from flexiconvert.utils.job_executor import JobExecutor, reconcile_expired_leases
from flexiconvert.utils.storage import OUTPUTS


class RecordingEngine(ConversionEngine):
    """Real engine that remembers the progress seen while it ran."""

    def __init__(self, db_probe):
        super().__init__()
        self.db_probe = db_probe
        self.seen = []

    def convert(self, input_path, output_path, from_format, to_format, settings=None, timeout=None):
        self.seen.append(self.db_probe())
        return super().convert(input_path, output_path, from_format, to_format, settings, timeout)


class Crashing(ConversionStrategy):
    family = FormatFamily.TABULAR

    def convert(self, source, target, from_format, to_format, settings):
        raise MemoryError("codec ran out of memory")


@pytest.fixture
def executor(session_factory, storage, clock):
    return JobExecutor(
        session_factory=session_factory,
        storage=storage,
        clock=clock,
        timeout_seconds=30,
        lease_grace_seconds=10,
        broadcast=False,
    )


def reload(session_factory, job_id):
    session = session_factory()
    try:
        return get_job(session, job_id)
    finally:
        session.close()


class TestJobExecutor:
    """Claim-to-terminal execution."""

    def test_successful_conversion(self, executor, make_job, session_factory, storage):
        job = make_job()

        outcome = executor.run(job.id)

        assert outcome["status"] == "success"
        done = reload(session_factory, job.id)
        assert done.status == JobStatus.COMPLETED
        assert done.progress == 100
        assert done.started_at is not None and done.completed_at is not None
        assert done.error_message is None
        output = storage.output_path(done.processed_filename)
        assert output.stat().st_size == done.processed_file_size > 0
        assert len(json.loads(output.read_text(encoding="utf-8"))) == 10
        assert outcome["output_filename"] == "people.json"

    def test_progress_checkpoints(self, session_factory, storage, clock, make_job):
        job = make_job()
        engine = RecordingEngine(lambda: reload(session_factory, job.id).progress)
        executor = JobExecutor(session_factory, storage, engine, clock, 30, 10, broadcast=False)

        executor.run(job.id)

        assert engine.seen == [30]
        assert reload(session_factory, job.id).progress == 100

    def test_unique_output_names(self, executor, make_job, session_factory):
        first, second = make_job(), make_job()
        executor.run(first.id)
        executor.run(second.id)

        names = {reload(session_factory, j.id).processed_filename for j in (first, second)}
        assert len(names) == 2

    def test_codec_failure(self, executor, make_job, session_factory, storage):
        job = make_job(content="{broken", input_format="json", target_format="csv")

        outcome = executor.run(job.id)

        assert outcome["status"] == "failed"
        failed = reload(session_factory, job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.error_kind is ErrorKind.CODEC_ERROR
        assert failed.error_message
        assert failed.processed_filename is None
        assert failed.processed_file_size is None
        assert failed.completed_at is not None
        assert list(storage.list_files(OUTPUTS)) == []

    def test_missing_input_fails_with_io_error(self, executor, make_job, session_factory, storage):
        """The upload vanished between intake and execution."""
        job = make_job()
        storage.upload_path(job.stored_filename).unlink()

        outcome = executor.run(job.id)

        assert outcome["error_kind"] == "io_error"
        failed = reload(session_factory, job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.error_kind is ErrorKind.IO_ERROR

    def test_crash_inside_strategy_is_contained(self, session_factory, storage, clock, make_job):
        job = make_job()
        executor = JobExecutor(
            session_factory, storage, ConversionEngine(strategies=[Crashing()]), clock, 30, 10,
            broadcast=False,
        )

        outcome = executor.run(job.id)

        assert outcome["status"] == "failed"
        failed = reload(session_factory, job.id)
        assert failed.status == JobStatus.FAILED
        assert "out of memory" in failed.error_message

    def test_unexpected_executor_error_is_contained(self, executor, make_job, session_factory, monkeypatch):
        job = make_job()

        def broken_output_name(extension):
            raise RuntimeError("disk quota service unavailable")

        monkeypatch.setattr(executor.storage, "new_output_filename", broken_output_name)
        outcome = executor.run(job.id)

        assert outcome["error_kind"] == "execution_failure"
        failed = reload(session_factory, job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.error_kind is ErrorKind.EXECUTION_FAILURE
        assert "disk quota" in failed.error_message

    def test_timeout_is_distinct_failure(self, session_factory, storage, clock, make_job):
        import threading

        release = threading.Event()

        class Stuck(ConversionStrategy):
            family = FormatFamily.TABULAR

            def convert(self, source, target, from_format, to_format, settings):
                release.wait(5)

        job = make_job()
        executor = JobExecutor(
            session_factory, storage, ConversionEngine(strategies=[Stuck()]), clock,
            timeout_seconds=0.05, lease_grace_seconds=10, broadcast=False,
        )
        try:
            executor.run(job.id)
        finally:
            release.set()

        failed = reload(session_factory, job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.error_kind is ErrorKind.TIMEOUT

    def test_job_is_never_run_twice(self, executor, make_job, session_factory):
        job = make_job()
        executor.run(job.id)
        first = reload(session_factory, job.id)

        assert executor.run(job.id)["status"] == "skipped"
        assert reload(session_factory, job.id).processed_filename == first.processed_filename

    def test_unknown_job_is_skipped(self, executor):
        assert executor.run("no-such-job") == {"status": "skipped", "job_id": "no-such-job"}

    def test_unsupported_pair_recorded(self, executor, make_job, session_factory):
        """A record that bypassed intake validation still ends FAILED, not stuck."""
        job = make_job(content="[]", input_format="json", target_format="pdf")

        executor.run(job.id)

        failed = reload(session_factory, job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.error_kind is ErrorKind.UNSUPPORTED_CONVERSION


class TestLeaseReconciliation:
    def test_expired_lease_fails_job(self, make_job, db, session_factory, clock):
        job = make_job()
        claim_job(db, job.id, clock(), lease_seconds=60)

        assert reconcile_expired_leases(session_factory, clock, broadcast=False) == []

        clock.advance(seconds=61)
        assert reconcile_expired_leases(session_factory, clock, broadcast=False) == [job.id]

        failed = reload(session_factory, job.id)
        assert failed.status == JobStatus.FAILED
        assert failed.error_kind is ErrorKind.LEASE_EXPIRED
        assert failed.completed_at == clock()

    def test_terminal_and_pending_jobs_untouched(self, make_job, session_factory, clock):
        pending = make_job()
        done = make_job(status=JobStatus.COMPLETED)
        clock.advance(days=2)

        assert reconcile_expired_leases(session_factory, clock, broadcast=False) == []
        assert reload(session_factory, pending.id).status == JobStatus.PENDING
        assert reload(session_factory, done.id).status == JobStatus.COMPLETED

    def test_worker_finishing_after_reclaim_is_discarded(self, make_job, session_factory, storage, clock):
        """Once reclaimed, a late worker cannot flip the job to completed."""
        job = make_job()

        class ReclaimDuringConversion(ConversionEngine):
            def convert(self, *args, **kwargs):
                clock.advance(hours=1)
                reconcile_expired_leases(session_factory, clock, broadcast=False)
                return super().convert(*args, **kwargs)

        executor = JobExecutor(
            session_factory, storage, ReclaimDuringConversion(), clock, 30, 10, broadcast=False,
        )
        outcome = executor.run(job.id)

        assert outcome["status"] == "abandoned"
        final = reload(session_factory, job.id)
        assert final.status == JobStatus.FAILED
        assert final.error_kind is ErrorKind.LEASE_EXPIRED
        assert list(storage.list_files(OUTPUTS)) == []
