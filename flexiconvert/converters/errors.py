"""Errors raised by the conversion engine and its strategies."""

from flexiconvert.utils.enums.error_kind import ErrorKind


class ConversionError(Exception):
    """Base class for every conversion failure; carries an ErrorKind."""

    kind = ErrorKind.EXECUTION_FAILURE

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class UnsupportedConversionError(ConversionError):
    kind = ErrorKind.UNSUPPORTED_CONVERSION

    def __init__(self, from_format, to_format):
        super().__init__(f"Conversion from {from_format} to {to_format} is not supported")
        self.from_format = from_format
        self.to_format = to_format


class CodecError(ConversionError):
    """An underlying codec library failed. The original exception is kept as __cause__."""

    kind = ErrorKind.CODEC_ERROR


class ConversionIOError(ConversionError):
    kind = ErrorKind.IO_ERROR


class ConversionTimeoutError(ConversionError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, seconds):
        super().__init__(f"Conversion did not finish within {seconds} seconds")
        self.seconds = seconds
