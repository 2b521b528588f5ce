"""Presentation family: pptx slide text rendered to pdf or html."""

from pptx import Presentation

from .base import HEADING, PAGE_BREAK, Block, ConversionStrategy, parse_page_range
from .capabilities import FormatFamily
from .errors import UnsupportedConversionError
from .writers import write_blocks

TARGETS = frozenset({"pdf", "html"})


def _shape_lines(shape):
    if shape.has_text_frame:
        for paragraph in shape.text_frame.paragraphs:
            text = "".join(run.text for run in paragraph.runs).strip()
            if text:
                yield text
    elif shape.has_table:
        for row in shape.table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                yield " | ".join(cells)


def extract_slide_blocks(source, page_range=None):
    """One heading per slide followed by its text; slides separated by page breaks."""
    presentation = Presentation(str(source))
    slides = list(presentation.slides)
    blocks = []
    for position, index in enumerate(parse_page_range(page_range, len(slides))):
        slide = slides[index]
        if position:
            blocks.append(Block("", PAGE_BREAK))

        title_shape = slide.shapes.title
        title = title_shape.text_frame.text.strip() if title_shape is not None else ""
        heading = f"Slide {index + 1}: {title}" if title else f"Slide {index + 1}"
        blocks.append(Block(heading, HEADING, 1))

        for shape in slide.shapes:
            if title_shape is not None and shape.shape_id == title_shape.shape_id:
                continue
            blocks.extend(Block(line) for line in _shape_lines(shape))

        if slide.has_notes_slide:
            notes = slide.notes_slide.notes_text_frame.text.strip()
            if notes:
                blocks.append(Block("Notes", HEADING, 2))
                blocks.append(Block(notes))
    return blocks


class PresentationStrategy(ConversionStrategy):
    family = FormatFamily.PRESENTATION

    def convert(self, source, target, from_format, to_format, settings):
        if to_format not in TARGETS:
            raise UnsupportedConversionError(from_format, to_format)
        blocks = extract_slide_blocks(source, settings.get("page_range"))
        write_blocks(target, to_format, blocks, settings)
