"""Tests for the retention sweeper."""

import os
from datetime import timedelta, timezone

import pytest

from flexiconvert.database.utils import get_job
from flexiconvert.utils.enums.job_status import JobStatus
from flexiconvert.utils.retention import ORPHAN, RECORD, RetentionSweeper
from flexiconvert.utils.storage import OUTPUTS, UPLOADS


@pytest.fixture
def sweeper(session_factory, storage, clock):
    return RetentionSweeper(session_factory=session_factory, storage=storage, clock=clock, safety_margin_seconds=600)


def age_file(path, moment):
    timestamp = moment.replace(tzinfo=timezone.utc).timestamp()
    os.utime(path, (timestamp, timestamp))


def completed_job(make_job, db, storage, created_at, output=b'[{"id": "1"}]'):
    job = make_job(status=JobStatus.COMPLETED, created_at=created_at)
    job.processed_filename = storage.new_output_filename("json")
    job.processed_file_size = len(output)
    storage.output_path(job.processed_filename).write_bytes(output)
    db.commit()
    return job


class TestRetentionSweeper:
    def test_old_records_and_files_are_deleted(self, sweeper, make_job, db, storage, clock):
        old = completed_job(make_job, db, storage, clock() - timedelta(hours=30))
        fresh = completed_job(make_job, db, storage, clock() - timedelta(hours=1))
        old_id, old_size = old.id, old.file_size + old.processed_file_size
        old_upload = storage.upload_path(old.stored_filename)
        old_output = storage.output_path(old.processed_filename)

        report = sweeper.sweep(retention_hours=24)

        assert report.records == 1
        assert report.candidates() == [(RECORD, old_id)]
        assert report.bytes_reclaimed == old_size
        db.expire_all()
        assert get_job(db, old_id) is None
        assert get_job(db, fresh.id) is not None
        assert not old_upload.exists()
        assert not old_output.exists()
        assert storage.output_path(fresh.processed_filename).exists()

    def test_retention_zero_sweeps_record_created_now(self, sweeper, make_job, db, storage, clock):
        job_id = completed_job(make_job, db, storage, clock()).id

        preview = sweeper.sweep(retention_hours=0, dry_run=True)
        assert preview.candidates() == [(RECORD, job_id)]
        db.expire_all()
        assert get_job(db, job_id) is not None

        report = sweeper.sweep(retention_hours=0)
        assert report.records == 1
        db.expire_all()
        assert get_job(db, job_id) is None

    def test_dry_run_is_idempotent(self, sweeper, make_job, db, storage, clock):
        completed_job(make_job, db, storage, clock() - timedelta(days=3))
        orphan = storage.output_path(storage.new_output_filename("pdf"))
        orphan.write_bytes(b"%PDF-1.4 orphan")
        age_file(orphan, clock() - timedelta(days=3))

        first = sweeper.sweep(retention_hours=24, dry_run=True)
        second = sweeper.sweep(retention_hours=24, dry_run=True)

        assert first.candidates() == second.candidates()
        assert first.bytes_reclaimed == second.bytes_reclaimed
        assert first.records == 1 and first.orphans == 1
        assert orphan.exists()
        assert len(list(storage.list_files(OUTPUTS))) == 2

    def test_orphans_need_to_be_old(self, sweeper, storage, clock):
        old = storage.upload_path(storage.new_output_filename("csv"))
        old.write_text("a\n1\n", encoding="utf-8")
        age_file(old, clock() - timedelta(hours=48))
        recent = storage.upload_path(storage.new_output_filename("csv"))
        recent.write_text("a\n2\n", encoding="utf-8")
        age_file(recent, clock() - timedelta(minutes=1))

        report = sweeper.sweep(retention_hours=24)

        assert report.candidates() == [(ORPHAN, f"{UPLOADS}/{old.name}")]
        assert not old.exists()
        assert recent.exists()

    def test_orphans_respect_safety_margin(self, sweeper, storage, clock):
        """With retention 0 a file written moments ago may belong to a running job."""
        part = storage.output_path(".abc.part.json")
        part.write_text("{}", encoding="utf-8")
        age_file(part, clock() - timedelta(seconds=30))

        report = sweeper.sweep(retention_hours=0)
        assert report.orphans == 0
        assert part.exists()

    def test_referenced_files_are_not_orphans(self, sweeper, make_job, db, storage, clock):
        job = completed_job(make_job, db, storage, clock() - timedelta(hours=1))
        age_file(storage.upload_path(job.stored_filename), clock() - timedelta(days=5))

        report = sweeper.sweep(retention_hours=24)
        assert report.items == []
        assert storage.upload_path(job.stored_filename).exists()

    def test_active_jobs_inside_safety_margin_are_kept(self, sweeper, make_job, db, clock):
        running = make_job(status=JobStatus.PENDING, created_at=clock() - timedelta(minutes=2))
        stale = make_job(status=JobStatus.PENDING, created_at=clock() - timedelta(hours=2))

        report = sweeper.sweep(retention_hours=0)

        assert report.skipped_active == 1
        assert report.candidates() == [(RECORD, stale.id)]
        db.expire_all()
        assert get_job(db, running.id) is not None

    def test_job_claimed_after_a_long_queue_wait_is_kept(self, sweeper, make_job, db, storage, clock):
        """An old created_at says nothing about a job a worker picked up moments ago."""
        job = make_job(status=JobStatus.PROCESSING, created_at=clock() - timedelta(hours=1))
        job.started_at = clock()
        job.updated_at = clock()
        job.lease_expires_at = clock() + timedelta(seconds=600)
        db.commit()

        report = sweeper.sweep(retention_hours=0)

        assert report.skipped_active == 1
        assert report.records == 0
        db.expire_all()
        assert get_job(db, job.id).status == JobStatus.PROCESSING
        assert storage.upload_path(job.stored_filename).exists()

    def test_processing_job_with_expired_lease_and_no_recent_activity_is_swept(self, sweeper, make_job, db, clock):
        job = make_job(status=JobStatus.PROCESSING, created_at=clock() - timedelta(hours=3))
        job.started_at = clock() - timedelta(hours=2)
        job.updated_at = clock() - timedelta(hours=2)
        job.lease_expires_at = clock() - timedelta(hours=1)
        db.commit()
        job_id = job.id

        report = sweeper.sweep(retention_hours=0)

        assert report.candidates() == [(RECORD, job_id)]
        db.expire_all()
        assert get_job(db, job_id) is None

    def test_missing_files_do_not_fail_sweep(self, sweeper, make_job, db, storage, clock):
        job = completed_job(make_job, db, storage, clock() - timedelta(days=2))
        storage.output_path(job.processed_filename).unlink()
        storage.upload_path(job.stored_filename).unlink()
        job_id = job.id

        report = sweeper.sweep(retention_hours=24)

        assert report.errors == []
        assert report.records == 1
        assert report.bytes_reclaimed == 0
        db.expire_all()
        assert get_job(db, job_id) is None

    def test_file_error_aborts_only_that_item(self, sweeper, make_job, db, storage, clock, monkeypatch):
        broken = completed_job(make_job, db, storage, clock() - timedelta(days=2))
        healthy = completed_job(make_job, db, storage, clock() - timedelta(days=2))
        broken_id, broken_output, healthy_id = broken.id, broken.processed_filename, healthy.id
        real_delete = storage.delete_file

        def flaky_delete(area, filename):
            if filename == broken_output:
                raise PermissionError("read-only file")
            return real_delete(area, filename)

        monkeypatch.setattr(storage, "delete_file", flaky_delete)
        report = sweeper.sweep(retention_hours=24)

        assert len(report.errors) == 1 and broken_id in report.errors[0]
        assert report.candidates() == [(RECORD, healthy_id)]
        db.expire_all()
        assert get_job(db, broken_id) is not None
        assert get_job(db, healthy_id) is None

    def test_negative_retention_rejected(self, sweeper):
        with pytest.raises(ValueError):
            sweeper.sweep(retention_hours=-1)

    def test_summary(self, sweeper, make_job, db, storage, clock):
        completed_job(make_job, db, storage, clock() - timedelta(days=2))
        assert sweeper.sweep(retention_hours=24, dry_run=True).summary().startswith("Would delete 1 record(s)")
