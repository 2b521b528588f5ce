from enum import Enum


class JobStatus(Enum):
    """Enum for conversion job status values."""

    PENDING = "pending"        # Job created at intake, waiting for a worker (initial state)
    PROCESSING = "processing"  # Claimed by a worker, conversion running

    # Terminal states
    COMPLETED = "completed"    # Output written, ready for download
    FAILED = "failed"          # Conversion or execution failed, error_message populated

    @property
    def is_terminal(self):
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, new_status):
        return new_status in _TRANSITIONS[self]


_TRANSITIONS = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status in JobStatus if status.is_terminal)
