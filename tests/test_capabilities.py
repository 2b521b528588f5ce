"""Tests for the format capability table."""

import pytest

from flexiconvert.converters.capabilities import (
    DEFAULT_CAPABILITIES,
    CapabilityTable,
    FormatFamily,
    normalize_format,
    output_extension,
)
from flexiconvert.utils.enums.tool_name import ToolName


class TestCapabilityTable:
    """Membership checks over the static conversion matrix."""

    def test_supported_pairs(self):
        assert DEFAULT_CAPABILITIES.can_convert("csv", "json")
        assert DEFAULT_CAPABILITIES.can_convert("xlsx", "pdf")
        assert DEFAULT_CAPABILITIES.can_convert("docx", "markdown")
        assert DEFAULT_CAPABILITIES.can_convert("pdf", "txt")

    def test_unsupported_pairs(self):
        assert not DEFAULT_CAPABILITIES.can_convert("json", "pdf")
        assert not DEFAULT_CAPABILITIES.can_convert("pptx", "docx")
        assert not DEFAULT_CAPABILITIES.can_convert("csv", "csv")

    def test_unknown_formats_are_false_not_errors(self):
        assert DEFAULT_CAPABILITIES.can_convert("exe", "pdf") is False
        assert DEFAULT_CAPABILITIES.can_convert("", "") is False
        assert DEFAULT_CAPABILITIES.can_convert(None, "pdf") is False
        assert DEFAULT_CAPABILITIES.family_for("exe") is None
        assert DEFAULT_CAPABILITIES.targets_for("exe") == frozenset()

    def test_aliases_are_resolved(self):
        assert DEFAULT_CAPABILITIES.can_convert(".MD", "htm")
        assert normalize_format(" .Text ") == "txt"

    def test_every_pair_outside_the_table_is_rejected(self):
        inputs = DEFAULT_CAPABILITIES.supported_inputs()
        outputs = DEFAULT_CAPABILITIES.supported_outputs()
        for source in inputs:
            targets = DEFAULT_CAPABILITIES.targets_for(source)
            for target in outputs | inputs:
                assert DEFAULT_CAPABILITIES.can_convert(source, target) == (target in targets)

    def test_declared_sets(self):
        assert DEFAULT_CAPABILITIES.supported_inputs() == {
            "pdf", "docx", "xlsx", "pptx", "csv", "json", "xml", "html", "markdown", "txt", "rtf",
        }
        assert "odt" in DEFAULT_CAPABILITIES.supported_outputs()
        assert DEFAULT_CAPABILITIES.can_convert("xlsx", "ods")
        assert not DEFAULT_CAPABILITIES.can_convert("csv", "ods")
        assert "pptx" not in DEFAULT_CAPABILITIES.supported_outputs()

    def test_families(self):
        assert DEFAULT_CAPABILITIES.family_for("json") is FormatFamily.TABULAR
        assert DEFAULT_CAPABILITIES.family_for("md") is FormatFamily.MARKUP
        assert DEFAULT_CAPABILITIES.family_for("rtf") is FormatFamily.TEXT

    def test_every_family_has_a_tool(self):
        for family in FormatFamily:
            assert isinstance(ToolName.for_family(family), ToolName)

    def test_as_dict_is_sorted(self):
        matrix = DEFAULT_CAPABILITIES.as_dict()
        assert list(matrix) == sorted(matrix)
        assert matrix["pptx"] == ["html", "pdf"]

    def test_custom_table(self):
        table = CapabilityTable([("csv", FormatFamily.TABULAR, ["json"])])
        assert table.can_convert("csv", "json")
        assert not table.can_convert("csv", "xml")

    @pytest.mark.parametrize("fmt,ext", [("markdown", "md"), ("json", "json"), ("txt", "txt")])
    def test_output_extension(self, fmt, ext):
        assert output_extension(fmt) == ext


class TestToolName:
    def test_parse(self):
        assert ToolName.parse(" PDF-Converter ") is ToolName.PDF_CONVERTER

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            ToolName.parse("image-converter")
        with pytest.raises(ValueError):
            ToolName.parse(None)
