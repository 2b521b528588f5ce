"""
Fonts for PDF output.

reportlab's standard fonts only cover Latin-1, so the PDF writers draw with a
bundled DejaVu Sans (or ``PDF_FONT_PATH``). Characters that font lacks, CJK in
particular, switch to the CJK font built into PyMuPDF.
"""

import io
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Optional
from xml.sax.saxutils import escape as xml_escape

import fitz  # PyMuPDF
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont

from flexiconvert.config import Config
from flexiconvert.utils.enhanced_logger import log_with_context, setup_enhanced_logging

logger = setup_enhanced_logging()

FONT_DIR = Path(__file__).parent / "fonts"

REGULAR_FONT = "FlexiSans"
BOLD_FONT = "FlexiSans-Bold"
FALLBACK_FONT = "FlexiCJK"


@dataclass(frozen=True)
class PdfFonts:
    regular: str
    bold: str
    covered: FrozenSet[int]
    fallback: Optional[str] = None
    fallback_covered: FrozenSet[int] = frozenset()

    def _font_for(self, char):
        if char.isspace() or ord(char) in self.covered:
            return None
        if self.fallback and ord(char) in self.fallback_covered:
            return self.fallback
        return None

    def markup(self, text: str) -> str:
        """Paragraph markup for ``text``: escaped, line breaks kept, fallback runs wrapped in <font>."""
        parts = []
        run, run_font = [], None
        for char in text:
            font = self._font_for(char)
            if font != run_font and run:
                parts.append(self._emit("".join(run), run_font))
                run = []
            run_font = font
            run.append(char)
        if run:
            parts.append(self._emit("".join(run), run_font))
        return "".join(parts)

    @staticmethod
    def _emit(chunk, font):
        escaped = xml_escape(chunk).replace("\n", "<br/>")
        return f'<font name="{font}">{escaped}</font>' if font else escaped


def _register(name, source):
    font = TTFont(name, source)
    pdfmetrics.registerFont(font)
    return frozenset(font.face.charToGlyph)


def _register_family(family, regular, bold):
    pdfmetrics.registerFontFamily(family, normal=regular, bold=bold, italic=regular, boldItalic=bold)


def _load_fonts() -> PdfFonts:
    regular_path = Config.PDF_FONT_PATH or str(FONT_DIR / "DejaVuSans.ttf")
    bold_path = Config.PDF_BOLD_FONT_PATH or (
        regular_path if Config.PDF_FONT_PATH else str(FONT_DIR / "DejaVuSans-Bold.ttf")
    )

    covered = _register(REGULAR_FONT, regular_path)
    _register(BOLD_FONT, bold_path)
    _register_family(REGULAR_FONT, REGULAR_FONT, BOLD_FONT)
    _register_family(BOLD_FONT, BOLD_FONT, BOLD_FONT)

    fallback, fallback_covered = None, frozenset()
    try:
        fallback_covered = _register(FALLBACK_FONT, io.BytesIO(fitz.Font("cjk").buffer))
        _register_family(FALLBACK_FONT, FALLBACK_FONT, FALLBACK_FONT)
        fallback = FALLBACK_FONT
    except (TTFError, RuntimeError, ValueError) as e:
        logger.warning(f"CJK fallback font unavailable, CJK text will not render in PDFs: {e}")

    log_with_context(
        logger, "debug", "PDF fonts registered",
        regular=regular_path,
        bold=bold_path,
        fallback=fallback,
    )
    return PdfFonts(REGULAR_FONT, BOLD_FONT, covered, fallback, fallback_covered)


_lock = threading.Lock()
_fonts: Optional[PdfFonts] = None


def pdf_fonts() -> PdfFonts:
    """Register the PDF fonts on first use and return them."""
    global _fonts
    with _lock:
        if _fonts is None:
            _fonts = _load_fonts()
        return _fonts
