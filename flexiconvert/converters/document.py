"""Word processing family: docx read with python-docx, rich targets produced by pandoc."""

import re

import pypandoc
from docx import Document

from .base import HEADING, Block, ConversionStrategy
from .capabilities import FormatFamily
from .errors import UnsupportedConversionError
from .writers import title_from, write_blocks

BLOCK_TARGETS = frozenset({"txt", "pdf", "rtf"})

# Output format name pandoc uses for each target
PANDOC_TARGETS = {
    "html": "html",
    "markdown": "gfm",
    "odt": "odt",
}

_HEADING_STYLE = re.compile(r"Heading (\d)")


def extract_docx_blocks(source):
    """Paragraph text with heading levels taken from the paragraph style, then table rows."""
    document = Document(str(source))
    blocks = []
    for paragraph in document.paragraphs:
        text = paragraph.text.strip()
        if not text:
            continue
        style = paragraph.style.name if paragraph.style is not None else ""
        match = _HEADING_STYLE.match(style)
        if match:
            blocks.append(Block(text, HEADING, int(match.group(1))))
        elif style == "Title":
            blocks.append(Block(text, HEADING, 1))
        else:
            blocks.append(Block(text))

    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                blocks.append(Block(" | ".join(cells)))
    return blocks


def pandoc_args(to_format, settings):
    if to_format == "html":
        return ["--standalone", f"--metadata=pagetitle:{title_from(settings)}"]
    if to_format == "markdown":
        return ["--wrap=none"]
    return []


class DocumentStrategy(ConversionStrategy):
    family = FormatFamily.DOCUMENT

    def convert(self, source, target, from_format, to_format, settings):
        if to_format in BLOCK_TARGETS:
            write_blocks(target, to_format, extract_docx_blocks(source), settings)
        elif to_format in PANDOC_TARGETS:
            pypandoc.convert_file(
                str(source),
                PANDOC_TARGETS[to_format],
                format="docx",
                outputfile=str(target),
                extra_args=pandoc_args(to_format, settings),
            )
        else:
            raise UnsupportedConversionError(from_format, to_format)
