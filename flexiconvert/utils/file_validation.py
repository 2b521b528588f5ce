"""
File validation utilities for conversion uploads.

This module provides the checks intake runs before a job record exists:
file extension, requested format pair, upload size and conversion settings.
Anything rejected here surfaces to the caller as a ``ValidationError`` and
never creates a job.
"""

import os
import re
from typing import Any, Dict, Mapping, Optional, Tuple

from flexiconvert.converters.base import page_range_segments
from flexiconvert.converters.capabilities import DEFAULT_CAPABILITIES, CapabilityTable, normalize_format
from flexiconvert.database.models import format_bytes

XML_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")

PAGE_SIZE_NAMES = ("a4", "letter")
FONT_SIZE_RANGE = (6, 72)
JSON_INDENT_RANGE = (0, 8)


class ValidationError(Exception):
    """Request rejected before a job was created."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedFileFormatError(ValidationError):
    """Exception raised when an unsupported file format is encountered."""

    def __init__(self, filename: str, extension: str = None, capabilities: CapabilityTable = DEFAULT_CAPABILITIES):
        self.filename = filename
        self.extension = extension

        if extension is None:
            message = (
                f"File '{filename}' has no extension. Please provide a file with a valid extension."
            )
        else:
            message = (
                f"File format '{extension}' is not supported. "
                f"Supported formats: {', '.join(sorted(capabilities.supported_inputs()))}"
            )

        super().__init__(message)


class UnsupportedConversionPairError(ValidationError):
    def __init__(self, from_format: str, to_format: str, capabilities: CapabilityTable = DEFAULT_CAPABILITIES):
        self.from_format = from_format
        self.to_format = to_format
        targets = sorted(capabilities.targets_for(from_format))
        message = f"Cannot convert {from_format} to {to_format or '(none)'}."
        if targets:
            message += f" Supported targets for {from_format}: {', '.join(targets)}"
        super().__init__(message)


class FileTooLargeError(ValidationError):
    status_code = 413

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"File is {format_bytes(size)}, larger than the {format_bytes(limit)} upload limit"
        )


def get_file_extension(filename: str) -> str:
    """
    Extract the file extension from a filename.

    Args:
        filename: The name of the file

    Returns:
        The lowercase file extension (including the dot), or empty string if none
    """
    if not filename:
        return ""

    _, ext = os.path.splitext(filename)
    return ext.lower()


def resolve_input_format(filename: str, capabilities: CapabilityTable = DEFAULT_CAPABILITIES) -> str:
    """
    Map a filename to the input format tag it will be converted from.

    Raises:
        UnsupportedFileFormatError: If the file has no extension or an unsupported extension
    """
    if not filename:
        raise UnsupportedFileFormatError(filename or "unnamed file", None, capabilities)

    extension = get_file_extension(filename)

    # Check for files without extension
    if not extension:
        raise UnsupportedFileFormatError(filename, None, capabilities)

    input_format = normalize_format(extension)
    if input_format not in capabilities.supported_inputs():
        raise UnsupportedFileFormatError(filename, extension, capabilities)

    return input_format


def validate_conversion(
    from_format: str, to_format: str, capabilities: CapabilityTable = DEFAULT_CAPABILITIES
) -> Tuple[str, str]:
    """Normalize a format pair and make sure the capability table allows it."""
    source = normalize_format(from_format)
    target = normalize_format(to_format)
    if not capabilities.can_convert(source, target):
        raise UnsupportedConversionPairError(source, target, capabilities)
    return source, target


def validate_file_size(size: Optional[int], limit: int) -> int:
    if size is None:
        raise ValidationError("Could not determine the size of the uploaded file")
    if size == 0:
        raise ValidationError("Uploaded file is empty")
    if limit and size > limit:
        raise FileTooLargeError(size, limit)
    return size


def _bounded_int(name: str, value: Any, bounds: Tuple[int, int]) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Setting '{name}' must be an integer")
    low, high = bounds
    if not low <= number <= high:
        raise ValidationError(f"Setting '{name}' must be between {low} and {high}")
    return number


def validate_settings(settings: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Check the conversion options the engine understands.

    Unknown keys are passed through untouched; known keys are type checked
    and normalized.

    Returns:
        A new settings dict safe to persist as JSON
    """
    if settings is None:
        return {}
    if not isinstance(settings, Mapping):
        raise ValidationError("Settings must be a JSON object")

    cleaned = dict(settings)

    if cleaned.get("page_range") is not None:
        page_range = str(cleaned["page_range"])
        try:
            page_range_segments(page_range)
        except ValueError:
            raise ValidationError(f"Invalid page range: {page_range!r} (use 'all' or e.g. '1-3,5')")
        cleaned["page_range"] = page_range.strip()

    if cleaned.get("page_size") is not None:
        page_size = str(cleaned["page_size"]).strip().lower()
        if page_size not in PAGE_SIZE_NAMES:
            raise ValidationError(f"Setting 'page_size' must be one of: {', '.join(PAGE_SIZE_NAMES)}")
        cleaned["page_size"] = page_size

    if cleaned.get("font_size") is not None:
        cleaned["font_size"] = _bounded_int("font_size", cleaned["font_size"], FONT_SIZE_RANGE)

    if cleaned.get("json_indent") is not None:
        cleaned["json_indent"] = _bounded_int("json_indent", cleaned["json_indent"], JSON_INDENT_RANGE)

    if cleaned.get("delimiter") is not None:
        delimiter = str(cleaned["delimiter"])
        if delimiter == "\\t":
            delimiter = "\t"
        if len(delimiter) != 1 or delimiter in ('"', "\n", "\r"):
            raise ValidationError("Setting 'delimiter' must be a single character")
        cleaned["delimiter"] = delimiter

    for tag_key in ("root_tag", "record_tag"):
        if cleaned.get(tag_key) is not None:
            tag = str(cleaned[tag_key]).strip()
            if not XML_NAME_PATTERN.match(tag) or tag.lower().startswith("xml"):
                raise ValidationError(f"Setting '{tag_key}' is not a valid XML element name")
            cleaned[tag_key] = tag

    for text_key in ("title", "sheet"):
        if cleaned.get(text_key) is not None:
            cleaned[text_key] = str(cleaned[text_key])

    return cleaned

