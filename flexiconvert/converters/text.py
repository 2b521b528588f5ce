"""Plain and rich text family: txt and rtf."""

import pypandoc

from .base import ConversionStrategy, blocks_from_text, read_utf8
from .capabilities import FormatFamily
from .errors import UnsupportedConversionError
from .writers import write_blocks

TARGETS = frozenset({"pdf", "docx", "html", "rtf", "txt"})


def read_text(source, from_format):
    if from_format == "rtf":
        # Formatting is dropped; only the text survives
        return pypandoc.convert_file(str(source), "plain", format="rtf", extra_args=["--wrap=none"])
    return read_utf8(source)


class TextStrategy(ConversionStrategy):
    family = FormatFamily.TEXT

    def convert(self, source, target, from_format, to_format, settings):
        if to_format not in TARGETS or to_format == from_format:
            raise UnsupportedConversionError(from_format, to_format)
        blocks = blocks_from_text(read_text(source, from_format))
        write_blocks(target, to_format, blocks, settings)
