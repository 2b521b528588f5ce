from .capabilities import DEFAULT_CAPABILITIES, CapabilityTable, FormatFamily, normalize_format, output_extension
from .engine import ConversionEngine, ConversionResult, OutputDescriptor, default_engine
from .errors import (
    CodecError,
    ConversionError,
    ConversionIOError,
    ConversionTimeoutError,
    UnsupportedConversionError,
)

__all__ = [
    "DEFAULT_CAPABILITIES",
    "CapabilityTable",
    "FormatFamily",
    "normalize_format",
    "output_extension",
    "ConversionEngine",
    "ConversionResult",
    "OutputDescriptor",
    "default_engine",
    "CodecError",
    "ConversionError",
    "ConversionIOError",
    "ConversionTimeoutError",
    "UnsupportedConversionError",
]
