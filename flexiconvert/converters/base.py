"""Strategy interface shared by every format family, plus the block model used by text-like formats."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .capabilities import FormatFamily

HEADING = "heading"
PARAGRAPH = "paragraph"
PAGE_BREAK = "page_break"


@dataclass(frozen=True)
class Block:
    """One unit of extracted document content."""

    text: str
    kind: str = PARAGRAPH
    level: int = 0


class ConversionStrategy(ABC):
    """Converts every input format of one family into its supported outputs.

    Implementations must be stateless: the engine calls them concurrently from
    several worker threads with nothing shared but the arguments.
    """

    family: FormatFamily

    @abstractmethod
    def convert(
        self,
        source: Path,
        target: Path,
        from_format: str,
        to_format: str,
        settings: Dict[str, Any],
    ) -> None:
        """Read ``source`` and write exactly one file at ``target``."""


def read_utf8(path: Path) -> str:
    """Read a text file as UTF-8, tolerating a byte order mark."""
    return Path(path).read_text(encoding="utf-8-sig")


def blocks_from_text(text: str) -> List[Block]:
    """Split plain text into paragraphs on blank lines."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    return [Block(chunk.strip("\n")) for chunk in re.split(r"\n\s*\n", normalized) if chunk.strip()]


def blocks_to_text(blocks: Iterable[Block]) -> str:
    parts = [block.text for block in blocks if block.kind != PAGE_BREAK and block.text]
    return "\n\n".join(parts) + ("\n" if parts else "")


def page_range_segments(spec: Optional[str]) -> List[Tuple[int, int]]:
    """
    Split a page range such as ``"1-3,5"`` into 1-based ``(start, end)`` pairs.

    ``None``, ``""`` and ``"all"`` give an empty list (every page).

    Raises:
        ValueError: if a segment is malformed, starts at 0 or runs backwards
    """
    if spec is None or str(spec).strip().lower() in ("", "all"):
        return []

    segments = []
    for part in str(spec).split(","):
        part = part.strip()
        if not part:
            continue
        match = re.fullmatch(r"(\d+)(?:\s*-\s*(\d+))?", part)
        if not match:
            raise ValueError(f"Invalid page range segment: {part!r}")
        start = int(match.group(1))
        end = int(match.group(2) or start)
        if start < 1 or end < start:
            raise ValueError(f"Invalid page range segment: {part!r}")
        segments.append((start, end))

    if not segments:
        raise ValueError(f"Page range {spec!r} names no pages")
    return segments


def parse_page_range(spec: Optional[str], count: int) -> List[int]:
    """
    Expand a page range such as ``"1-3,5"`` into zero-based indexes.

    ``None``, ``""`` and ``"all"`` select everything. Pages past ``count`` are
    dropped; an empty selection after clipping is an error.

    Raises:
        ValueError: if the range is malformed or selects nothing
    """
    segments = page_range_segments(spec)
    if not segments:
        return list(range(count))

    selected = set()
    for start, end in segments:
        selected.update(index - 1 for index in range(start, min(end, count) + 1))

    if not selected:
        raise ValueError(f"Page range {spec!r} selects nothing from {count} page(s)")
    return sorted(selected)
