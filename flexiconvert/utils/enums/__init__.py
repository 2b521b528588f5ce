from .error_kind import ErrorKind
from .job_status import JobStatus
from .tool_name import ToolName

__all__ = ["ErrorKind", "JobStatus", "ToolName"]
