"""
Output writers shared by the strategies.

Text-like content travels as a list of ``Block`` objects and tabular content as
``(name, DataFrame)`` pairs; each writer turns one of those into a file.
"""

import html
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import pandas as pd
import pypandoc
from docx import Document
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import (
    LongTable,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    TableStyle,
)

from .base import HEADING, PAGE_BREAK, Block, blocks_to_text
from .fonts import pdf_fonts

DEFAULT_TITLE = "Converted Document"

PAGE_SIZES = {
    "a4": A4,
    "letter": letter,
}

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: Arial, sans-serif; margin: 2em; }}
table {{ border-collapse: collapse; margin-bottom: 2em; }}
th, td {{ border: 1px solid #ccc; padding: 4px 8px; text-align: left; }}
hr.page-break {{ border: 0; border-top: 1px dashed #999; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""

Table = Tuple[str, pd.DataFrame]


def title_from(settings: Dict[str, Any], fallback: str = DEFAULT_TITLE) -> str:
    return str(settings.get("title") or fallback)


def write_text(target: Path, text: str) -> None:
    Path(target).write_text(text, encoding="utf-8")


def write_plain(target: Path, blocks: Sequence[Block]) -> None:
    write_text(target, blocks_to_text(blocks))


def render_html_document(body: str, title: str) -> str:
    return HTML_TEMPLATE.format(title=html.escape(title), body=body)


def blocks_to_html(blocks: Sequence[Block]) -> str:
    parts = []
    for block in blocks:
        if block.kind == PAGE_BREAK:
            parts.append('<hr class="page-break">')
        elif block.kind == HEADING:
            level = min(max(block.level, 1), 6)
            parts.append(f"<h{level}>{html.escape(block.text)}</h{level}>")
        else:
            text = html.escape(block.text).replace("\n", "<br>\n")
            parts.append(f"<p>{text}</p>")
    return "\n".join(parts)


def write_html(target: Path, blocks: Sequence[Block], settings: Dict[str, Any]) -> None:
    write_text(target, render_html_document(blocks_to_html(blocks), title_from(settings)))


def _pdf_styles(settings: Dict[str, Any]):
    fonts = pdf_fonts()
    styles = getSampleStyleSheet()
    for level in (1, 2, 3):
        styles[f"Heading{level}"].fontName = fonts.bold
    font_size = float(settings.get("font_size") or 11)
    body = ParagraphStyle(
        "FlexiBody",
        parent=styles["BodyText"],
        fontName=fonts.regular,
        fontSize=font_size,
        leading=font_size * 1.3,
        spaceAfter=font_size * 0.6,
    )
    return fonts, styles, body


def _page_size(settings: Dict[str, Any]):
    name = str(settings.get("page_size") or "A4").lower()
    if name not in PAGE_SIZES:
        raise ValueError(f"Unknown page size: {settings.get('page_size')!r}")
    return PAGE_SIZES[name]


def write_pdf(target: Path, blocks: Sequence[Block], settings: Dict[str, Any]) -> None:
    """Render blocks with reportlab's platypus layout engine."""
    fonts, styles, body = _pdf_styles(settings)
    story = []
    for block in blocks:
        if block.kind == PAGE_BREAK:
            if story:
                story.append(PageBreak())
            continue
        text = fonts.markup(block.text)
        if block.kind == HEADING:
            level = min(max(block.level, 1), 3)
            story.append(Paragraph(text, styles[f"Heading{level}"]))
        else:
            story.append(Paragraph(text, body))
    if not story:
        story.append(Spacer(1, 12))

    doc = SimpleDocTemplate(
        str(target),
        pagesize=_page_size(settings),
        title=title_from(settings),
    )
    doc.build(story)


def write_pdf_tables(target: Path, tables: Sequence[Table], settings: Dict[str, Any]) -> None:
    """One table per sheet, each starting on a new page; wide sheets go landscape."""
    fonts, styles, body = _pdf_styles(settings)
    widest = max((len(frame.columns) for _, frame in tables), default=0)
    pagesize = _page_size(settings)
    if widest > 6:
        pagesize = landscape(pagesize)

    story = []
    for index, (name, frame) in enumerate(tables):
        if index:
            story.append(PageBreak())
        story.append(Paragraph(fonts.markup(name), styles["Heading2"]))
        header = [Paragraph(f"<b>{fonts.markup(str(column))}</b>", body) for column in frame.columns]
        rows = [
            [Paragraph(fonts.markup(str(value)), body) for value in row]
            for row in frame.itertuples(index=False, name=None)
        ]
        if not header:
            story.append(Paragraph("(empty sheet)", body))
            continue
        table = LongTable([header] + rows, repeatRows=1)
        table.setStyle(TableStyle([
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#EEF2FF")),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        story.append(table)
    if not story:
        story.append(Spacer(1, 12))

    doc = SimpleDocTemplate(str(target), pagesize=pagesize, title=title_from(settings))
    doc.build(story)


def write_docx(target: Path, blocks: Sequence[Block], settings: Dict[str, Any]) -> None:
    document = Document()
    if settings.get("title"):
        document.core_properties.title = str(settings["title"])
    for block in blocks:
        if block.kind == PAGE_BREAK:
            document.add_page_break()
        elif block.kind == HEADING:
            document.add_heading(block.text, level=min(max(block.level, 1), 9))
        else:
            document.add_paragraph(block.text)
    document.save(str(target))


def write_rtf(target: Path, blocks: Sequence[Block], settings: Dict[str, Any]) -> None:
    """RTF is produced by pandoc from an HTML rendering of the blocks."""
    source = render_html_document(blocks_to_html(blocks), title_from(settings))
    pypandoc.convert_text(
        source,
        "rtf",
        format="html",
        outputfile=str(target),
        extra_args=["--standalone"],
    )


BLOCK_WRITERS = {
    "txt": lambda target, blocks, settings: write_plain(target, blocks),
    "html": write_html,
    "pdf": write_pdf,
    "docx": write_docx,
    "rtf": write_rtf,
}


def write_blocks(target: Path, to_format: str, blocks: List[Block], settings: Dict[str, Any]) -> None:
    """Dispatch a block list to the writer for ``to_format``."""
    writer = BLOCK_WRITERS.get(to_format)
    if writer is None:
        raise ValueError(f"No block writer for {to_format}")
    writer(target, blocks, settings)
