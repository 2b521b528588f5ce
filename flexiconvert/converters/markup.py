"""Markup family: html parsed with BeautifulSoup, markdown rendered by pandoc."""

from pathlib import Path

import pypandoc
from bs4 import BeautifulSoup
from markitdown import MarkItDown

from .base import HEADING, Block, ConversionStrategy, blocks_from_text, read_utf8
from .capabilities import FormatFamily
from .errors import UnsupportedConversionError
from .writers import title_from, write_blocks, write_text

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
BLOCK_TAGS = HEADING_TAGS + ("p", "li", "pre", "blockquote", "tr", "dt", "dd", "caption", "figcaption")
IGNORED_TAGS = ("script", "style", "head", "noscript", "template")


def blocks_from_html(markup):
    """Top-level block elements in document order; nested blocks fold into their parent."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(list(IGNORED_TAGS)):
        tag.decompose()

    blocks = []
    for element in soup.find_all(list(BLOCK_TAGS)):
        if element.find_parent(list(BLOCK_TAGS)) is not None:
            continue
        if element.name == "tr":
            text = " | ".join(cell.get_text(" ", strip=True) for cell in element.find_all(["td", "th"]))
        elif element.name == "pre":
            text = element.get_text().strip("\n")
        else:
            text = element.get_text(" ", strip=True)
        if not text.strip(" |"):
            continue
        if element.name in HEADING_TAGS:
            blocks.append(Block(text, HEADING, int(element.name[1])))
        else:
            blocks.append(Block(text))

    if not blocks:
        blocks = blocks_from_text(soup.get_text("\n"))
    return blocks


def html_to_markdown(source):
    result = MarkItDown().convert_local(str(source), file_extension=".html")
    return result.markdown


def markdown_to_html(source, standalone=False, title=None):
    extra_args = []
    if standalone:
        extra_args = ["--standalone", f"--metadata=pagetitle:{title}"]
    return pypandoc.convert_file(str(source), "html", format="gfm", extra_args=extra_args)


class MarkupStrategy(ConversionStrategy):
    family = FormatFamily.MARKUP

    def convert(self, source, target, from_format, to_format, settings):
        if from_format == "html":
            self._from_html(Path(source), target, to_format, settings)
        elif from_format == "markdown":
            self._from_markdown(Path(source), target, to_format, settings)
        else:
            raise UnsupportedConversionError(from_format, to_format)

    def _from_html(self, source, target, to_format, settings):
        if to_format == "markdown":
            write_text(target, html_to_markdown(source))
        elif to_format in ("txt", "pdf", "docx"):
            write_blocks(target, to_format, blocks_from_html(read_utf8(source)), settings)
        else:
            raise UnsupportedConversionError("html", to_format)

    def _from_markdown(self, source, target, to_format, settings):
        if to_format == "html":
            write_text(target, markdown_to_html(source, standalone=True, title=title_from(settings)))
        elif to_format == "pdf":
            write_blocks(target, to_format, blocks_from_html(markdown_to_html(source)), settings)
        elif to_format == "docx":
            pypandoc.convert_file(str(source), "docx", format="gfm", outputfile=str(target))
        elif to_format == "txt":
            text = pypandoc.convert_file(str(source), "plain", format="gfm", extra_args=["--wrap=none"])
            write_text(target, text)
        else:
            raise UnsupportedConversionError("markdown", to_format)
