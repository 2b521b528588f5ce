"""Shared fixtures: temporary storage, a throwaway SQLite database and a fixed clock."""

import uuid
from datetime import datetime, timedelta

import pytest

from flexiconvert.database.models import ConversionJob, get_db_session, init_db
from flexiconvert.utils import socketio_broadcast
from flexiconvert.utils.enums.job_status import JobStatus
from flexiconvert.utils.enums.tool_name import ToolName
from flexiconvert.utils.storage import LocalStorage

SAMPLE_CSV = "id,name,city\n" + "".join(f"{i},Person {i},City {i % 3}\n" for i in range(1, 11))


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def no_socketio(monkeypatch):
    """Keep broadcasts process-local and silent unless a test wires one up."""
    monkeypatch.setattr(socketio_broadcast, "_socketio_instance", None)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'jobs.db'}"


@pytest.fixture
def session_factory(database_url):
    init_db(database_url)
    return get_db_session


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(base_path=tmp_path / "data")


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 3, 2, 9, 30, 0))


@pytest.fixture
def make_job(db, storage, clock):
    """Create a job record with a real upload behind it."""

    def _make_job(
        content=SAMPLE_CSV,
        input_format="csv",
        target_format="json",
        status=JobStatus.PENDING,
        created_at=None,
        settings=None,
        tool_name=ToolName.DATA_CONVERTER,
    ):
        data = content.encode("utf-8") if isinstance(content, str) else content
        stored_filename = f"{uuid.uuid4()}.{input_format}"
        storage.upload_path(stored_filename).write_bytes(data)

        created = created_at or clock()
        job = ConversionJob(
            id=str(uuid.uuid4()),
            tool_name=tool_name,
            original_filename=f"people.{input_format}",
            stored_filename=stored_filename,
            input_format=input_format,
            target_format=target_format,
            file_size=len(data),
            status=status,
            progress=0,
            settings=settings or {},
            created_at=created,
            updated_at=created,
        )
        if status.is_terminal:
            job.completed_at = created
            job.progress = 100 if status == JobStatus.COMPLETED else 10
        db.add(job)
        db.commit()
        return job

    return _make_job
