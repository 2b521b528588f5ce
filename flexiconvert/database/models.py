import os
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    Enum,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from flexiconvert.utils.enums.error_kind import ErrorKind
from flexiconvert.utils.enums.job_status import JobStatus
from flexiconvert.utils.enums.tool_name import ToolName

Base = declarative_base()


def utcnow():
    """Naive UTC timestamp, matching how SQLite stores DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_bytes(bytes_value):
    """Format bytes into human-readable string (e.g., '1.5 MB')"""
    if bytes_value is None:
        return None

    if bytes_value == 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB"]
    unit_index = 0
    size = float(bytes_value)

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    # Format with 1 decimal place for MB and above, no decimals for B and KB
    if unit_index <= 1:
        return f"{int(size)} {units[unit_index]}"
    else:
        return f"{size:.1f} {units[unit_index]}"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ConversionJob(Base):
    __tablename__ = "conversion_jobs"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(64), nullable=True, index=True)  # Anonymous uploads have no owner
    tool_name = Column(Enum(ToolName, values_callable=_enum_values), nullable=False)

    original_filename = Column(String(255), nullable=False)
    stored_filename = Column(String(255), nullable=False)  # Unique name under uploads/
    processed_filename = Column(String(255), nullable=True)  # Unique name under outputs/, set on completion
    input_format = Column(String(20), nullable=False)
    target_format = Column(String(20), nullable=False)
    file_size = Column(BigInteger, nullable=False)  # Input size in bytes
    processed_file_size = Column(BigInteger, nullable=True)  # Output size in bytes, set on completion

    status = Column(
        Enum(JobStatus, values_callable=_enum_values),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )
    progress = Column(Integer, nullable=False, default=0)
    settings = Column(JSON, nullable=False, default=dict)
    error_message = Column(Text, nullable=True)
    error_kind = Column(Enum(ErrorKind, values_callable=_enum_values), nullable=True)

    celery_task_id = Column(String(36), nullable=True)
    lease_expires_at = Column(DateTime, nullable=True)  # Worker must finish or renew before this

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)  # Set on COMPLETED and FAILED

    @property
    def is_terminal(self):
        return self.status is not None and self.status.is_terminal

    @property
    def download_name(self):
        """Filename offered to the user: original stem with the target extension."""
        from flexiconvert.converters.capabilities import output_extension

        stem = os.path.splitext(self.original_filename)[0] or "converted"
        return f"{stem}.{output_extension(self.target_format)}"

    def to_status_dict(self):
        """Everything a polling client or download handler needs."""
        data = {
            "job_id": self.id,
            "tool_name": self.tool_name.value if self.tool_name else None,
            "status": self.status.value,
            "progress": self.progress,
            "original_filename": self.original_filename,
            "input_format": self.input_format,
            "target_format": self.target_format,
            "file_size": self.file_size,
            "file_size_human": format_bytes(self.file_size),
            "settings": self.settings or {},
            "error_message": self.error_message,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if self.status == JobStatus.COMPLETED:
            data["output_filename"] = self.download_name
            data["processed_file_size"] = self.processed_file_size
            data["download_url"] = f"/download/{self.id}"
        return data


# Configured lazily so tests and the cleanup command can point at their own database
engine = None
SessionLocal = sessionmaker(expire_on_commit=False)


def init_db(database_url=None):
    """Create the engine, bind the session factory and create missing tables."""
    global engine

    if database_url is None:
        from flexiconvert.config import Config

        database_url = Config.DATABASE_URL

    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # Needed for SQLite with multiple threads

    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    SessionLocal.configure(bind=engine)
    Base.metadata.create_all(engine)
    return engine


def get_db_session():
    """Get database session for direct use (non-generator)."""
    if engine is None:
        init_db()
    return SessionLocal()
