"""
Format capability table.

Static registry of the (input, output) format pairs the service accepts and
the strategy family that handles each input format. Built once at import and
never mutated.
"""

from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Optional, Tuple


class FormatFamily(Enum):
    PDF = "pdf"
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"
    PRESENTATION = "presentation"
    MARKUP = "markup"
    TABULAR = "tabular"
    TEXT = "text"


# Alternate spellings accepted from file extensions and API clients
FORMAT_ALIASES = MappingProxyType({
    "htm": "html",
    "md": "markdown",
    "text": "txt",
})


def normalize_format(value: Optional[str]) -> str:
    """Lower-case a format tag, strip a leading dot and resolve aliases."""
    if not value:
        return ""
    tag = value.strip().lower().lstrip(".")
    return FORMAT_ALIASES.get(tag, tag)


class CapabilityTable:
    """Read-only mapping of input format -> (family, supported outputs)."""

    def __init__(self, entries: Iterable[Tuple[str, FormatFamily, Iterable[str]]]):
        families: Dict[str, FormatFamily] = {}
        outputs: Dict[str, FrozenSet[str]] = {}
        for input_format, family, targets in entries:
            families[input_format] = family
            outputs[input_format] = frozenset(targets)
        self._families = MappingProxyType(families)
        self._outputs = MappingProxyType(outputs)

    def can_convert(self, from_format: str, to_format: str) -> bool:
        """Pure membership check. Unknown formats yield False, never an error."""
        targets = self._outputs.get(normalize_format(from_format))
        return targets is not None and normalize_format(to_format) in targets

    def supported_inputs(self) -> FrozenSet[str]:
        return frozenset(self._outputs)

    def supported_outputs(self) -> FrozenSet[str]:
        return frozenset().union(*self._outputs.values())

    def targets_for(self, from_format: str) -> FrozenSet[str]:
        return self._outputs.get(normalize_format(from_format), frozenset())

    def family_for(self, from_format: str) -> Optional[FormatFamily]:
        return self._families.get(normalize_format(from_format))

    def as_dict(self):
        """Matrix view for API responses: {input: sorted outputs}."""
        return {source: sorted(targets) for source, targets in sorted(self._outputs.items())}


DEFAULT_CAPABILITIES = CapabilityTable([
    ("pdf", FormatFamily.PDF, ["txt", "html", "docx", "rtf"]),
    ("docx", FormatFamily.DOCUMENT, ["pdf", "html", "txt", "rtf", "odt", "markdown"]),
    ("xlsx", FormatFamily.SPREADSHEET, ["csv", "pdf", "html", "json", "xml", "ods"]),
    ("pptx", FormatFamily.PRESENTATION, ["pdf", "html"]),
    ("csv", FormatFamily.TABULAR, ["xlsx", "json", "xml", "html"]),
    ("json", FormatFamily.TABULAR, ["csv", "xlsx", "xml"]),
    ("xml", FormatFamily.TABULAR, ["json", "csv", "html"]),
    ("html", FormatFamily.MARKUP, ["pdf", "docx", "txt", "markdown"]),
    ("markdown", FormatFamily.MARKUP, ["html", "pdf", "docx", "txt"]),
    ("txt", FormatFamily.TEXT, ["pdf", "docx", "html", "rtf"]),
    ("rtf", FormatFamily.TEXT, ["pdf", "docx", "html", "txt"]),
])

# File extension written for each output format
OUTPUT_EXTENSIONS = MappingProxyType({
    "markdown": "md",
})


def output_extension(to_format: str) -> str:
    tag = normalize_format(to_format)
    return OUTPUT_EXTENSIONS.get(tag, tag)
