from enum import Enum


class ErrorKind(Enum):
    """Why a job ended up FAILED. Stored next to the human-readable error_message."""

    UNSUPPORTED_CONVERSION = "unsupported_conversion"
    CODEC_ERROR = "codec_error"
    IO_ERROR = "io_error"
    TIMEOUT = "timeout"
    EXECUTION_FAILURE = "execution_failure"
    LEASE_EXPIRED = "lease_expired"
