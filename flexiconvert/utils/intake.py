"""
Job intake: validate a request, store its input and create the PENDING record.

Validation happens before anything is persisted, so a rejected request
leaves neither a record nor an upload behind.
"""
import uuid
from typing import Any, Callable, Mapping, Optional

from werkzeug.utils import secure_filename

from flexiconvert.converters.capabilities import DEFAULT_CAPABILITIES, CapabilityTable
from flexiconvert.database.models import ConversionJob, utcnow
from flexiconvert.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from flexiconvert.utils.enums.job_status import JobStatus
from flexiconvert.utils.enums.tool_name import ToolName
from flexiconvert.utils.file_validation import (
    ValidationError,
    get_file_extension,
    resolve_input_format,
    validate_conversion,
    validate_file_size,
    validate_settings,
)
from flexiconvert.utils.storage import UPLOADS

logger = setup_enhanced_logging()


class EnqueueError(Exception):
    """The job could not be handed to the task queue; nothing was kept."""


def resolve_tool(tool_name: Optional[str], input_format: str, capabilities: CapabilityTable) -> ToolName:
    expected = ToolName.for_family(capabilities.family_for(input_format))
    if not tool_name:
        return expected
    try:
        tool = ToolName.parse(tool_name)
    except ValueError as e:
        raise ValidationError(str(e))
    if tool != expected:
        raise ValidationError(f"Tool '{tool.value}' cannot convert {input_format} files; use '{expected.value}'")
    return tool


def submit_job(
    db,
    storage,
    file_obj,
    original_filename: str,
    target_format: str,
    settings: Optional[Mapping[str, Any]] = None,
    user_id: Optional[str] = None,
    tool_name: Optional[str] = None,
    max_size: int = 0,
    declared_size: Optional[int] = None,
    enqueue: Optional[Callable[[str], Optional[str]]] = None,
    capabilities: CapabilityTable = DEFAULT_CAPABILITIES,
    now=None,
) -> ConversionJob:
    """
    Create a PENDING job for an uploaded file and hand it to the executor.

    Args:
        db: Database session
        storage: StorageProvider holding uploads
        file_obj: Upload (FileStorage, file-like object or path)
        original_filename: Name the client sent; decides the input format
        target_format: Requested output format
        settings: Conversion options, validated here
        user_id: Owner, None for anonymous uploads
        tool_name: Optional explicit tool; must match the input family
        max_size: Upload limit in bytes (0 disables the check)
        declared_size: Size announced by the client, checked before saving
        enqueue: Callable scheduling execution; returns a task id
        capabilities: Format capability table

    Returns:
        The committed ConversionJob

    Raises:
        ValidationError: request rejected; no record or file is kept
        EnqueueError: the task queue refused the job; no record or file is kept
    """
    input_format = resolve_input_format(original_filename, capabilities)
    input_format, target_format = validate_conversion(input_format, target_format, capabilities)
    tool = resolve_tool(tool_name, input_format, capabilities)
    settings = validate_settings(settings)

    if declared_size:
        validate_file_size(declared_size, max_size)

    stored_filename = storage.save_upload(file_obj, get_file_extension(original_filename))
    try:
        file_size = validate_file_size(storage.get_file_size(storage.upload_path(stored_filename)), max_size)
    except ValidationError:
        storage.delete_file(UPLOADS, stored_filename)
        raise

    now = now or utcnow()
    display_name = secure_filename(original_filename) or f"upload{get_file_extension(original_filename)}"
    job = ConversionJob(
        id=str(uuid.uuid4()),
        user_id=user_id,
        tool_name=tool,
        original_filename=display_name,
        stored_filename=stored_filename,
        input_format=input_format,
        target_format=target_format,
        file_size=file_size,
        status=JobStatus.PENDING,
        progress=0,
        settings=settings,
        created_at=now,
        updated_at=now,
    )

    try:
        db.add(job)
        db.commit()
    except Exception:
        db.rollback()
        storage.delete_file(UPLOADS, stored_filename)
        raise

    log_with_context(
        logger, "info", "Job created",
        job_id=job.id,
        user_id=user_id,
        tool=tool.value,
        conversion=f"{input_format}->{target_format}",
        file_size=file_size,
    )

    if enqueue is not None:
        try:
            job.celery_task_id = enqueue(job.id)
            db.commit()
        except Exception as e:
            log_with_context(
                logger, "error", f"Failed to enqueue job, discarding it: {e}",
                job_id=job.id,
                error_type=type(e).__name__,
            )
            db.rollback()
            db.delete(job)
            db.commit()
            storage.delete_file(UPLOADS, stored_filename)
            raise EnqueueError(f"Could not queue conversion: {e}") from e

    return job
