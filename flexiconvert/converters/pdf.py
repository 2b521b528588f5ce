"""PDF family: real text extraction with PyMuPDF, page by page."""

import fitz  # PyMuPDF

from .base import PAGE_BREAK, Block, ConversionStrategy, parse_page_range
from .capabilities import FormatFamily
from .errors import CodecError, UnsupportedConversionError
from .writers import write_blocks

TARGETS = frozenset({"txt", "html", "docx", "rtf"})
TEXT_BLOCK = 0


def extract_pdf_blocks(source, page_range=None):
    """Text blocks in reading order; a page break between selected pages."""
    with fitz.open(str(source)) as doc:
        if doc.needs_pass:
            raise CodecError("PDF is password protected")

        blocks = []
        for position, index in enumerate(parse_page_range(page_range, doc.page_count)):
            if position:
                blocks.append(Block("", PAGE_BREAK))
            page = doc[index]
            for entry in page.get_text("blocks", sort=True):
                text, block_type = entry[4], entry[6]
                if block_type != TEXT_BLOCK:
                    continue
                text = text.strip()
                if text:
                    blocks.append(Block(text))
        return blocks


class PdfStrategy(ConversionStrategy):
    family = FormatFamily.PDF

    def convert(self, source, target, from_format, to_format, settings):
        if to_format not in TARGETS:
            raise UnsupportedConversionError(from_format, to_format)
        blocks = extract_pdf_blocks(source, settings.get("page_range"))
        write_blocks(target, to_format, blocks, settings)
