from enum import Enum


class ToolName(Enum):
    """Conversion tool that was requested; one per input format family."""

    PDF_CONVERTER = "pdf-converter"
    DOCUMENT_CONVERTER = "document-converter"
    SPREADSHEET_CONVERTER = "spreadsheet-converter"
    PRESENTATION_CONVERTER = "presentation-converter"
    MARKUP_CONVERTER = "markup-converter"
    DATA_CONVERTER = "data-converter"
    TEXT_CONVERTER = "text-converter"

    @classmethod
    def for_family(cls, family):
        """Default tool for a ``FormatFamily``."""
        return _TOOL_BY_FAMILY[family.value]

    @classmethod
    def parse(cls, value):
        """Look a tool up by value; raises ValueError for unknown names."""
        try:
            return cls(value.strip().lower())
        except (AttributeError, ValueError):
            raise ValueError(f"Unknown tool name: {value!r}")


_TOOL_BY_FAMILY = {
    "pdf": ToolName.PDF_CONVERTER,
    "document": ToolName.DOCUMENT_CONVERTER,
    "spreadsheet": ToolName.SPREADSHEET_CONVERTER,
    "presentation": ToolName.PRESENTATION_CONVERTER,
    "markup": ToolName.MARKUP_CONVERTER,
    "tabular": ToolName.DATA_CONVERTER,
    "text": ToolName.TEXT_CONVERTER,
}
