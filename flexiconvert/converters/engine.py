"""
Conversion engine.

Validates a format pair against the capability table, hands the work to the
strategy registered for the input's family and publishes the result
atomically: strategies write to a hidden ``.part`` file next to the target,
which is renamed into place only once it exists and is non-empty. A failed or
timed-out conversion never leaves anything at ``output_path``.
"""

import os
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

from flexiconvert.utils.enhanced_logger import log_with_context, setup_enhanced_logging

from .base import ConversionStrategy
from .capabilities import DEFAULT_CAPABILITIES, CapabilityTable, FormatFamily, normalize_format
from .document import DocumentStrategy
from .errors import (
    CodecError,
    ConversionError,
    ConversionIOError,
    ConversionTimeoutError,
    UnsupportedConversionError,
)
from .markup import MarkupStrategy
from .pdf import PdfStrategy
from .presentation import PresentationStrategy
from .spreadsheet import SpreadsheetStrategy
from .tabular import TabularStrategy
from .text import TextStrategy

logger = setup_enhanced_logging()


@dataclass(frozen=True)
class OutputDescriptor:
    path: Path
    size: int
    format: str
    duration_seconds: float


@dataclass(frozen=True)
class ConversionResult:
    """Either an output descriptor or the error that prevented it."""

    output: Optional[OutputDescriptor] = None
    error: Optional[ConversionError] = None

    @property
    def ok(self):
        return self.error is None


def default_strategies():
    return [
        PdfStrategy(),
        DocumentStrategy(),
        SpreadsheetStrategy(),
        PresentationStrategy(),
        MarkupStrategy(),
        TabularStrategy(),
        TextStrategy(),
    ]


def part_path_for(output_path: Path) -> Path:
    """Hidden sibling of the target; keeps the real suffix for libraries that check it."""
    return output_path.with_name(f".{output_path.stem}.{uuid.uuid4().hex}.part{output_path.suffix}")


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


class ConversionEngine:
    """Stateless dispatcher; safe to share between worker threads."""

    def __init__(
        self,
        capabilities: CapabilityTable = DEFAULT_CAPABILITIES,
        strategies: Optional[Iterable[ConversionStrategy]] = None,
    ):
        self.capabilities = capabilities
        registry: Dict[FormatFamily, ConversionStrategy] = {}
        for strategy in strategies if strategies is not None else default_strategies():
            registry[strategy.family] = strategy
        self._strategies: Mapping[FormatFamily, ConversionStrategy] = registry

    def strategy_for(self, from_format: str) -> Optional[ConversionStrategy]:
        family = self.capabilities.family_for(from_format)
        return self._strategies.get(family) if family is not None else None

    def convert(
        self,
        input_path,
        output_path,
        from_format: str,
        to_format: str,
        settings: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> ConversionResult:
        """
        Convert ``input_path`` into ``output_path``.

        Args:
            input_path: Readable source file (never modified)
            output_path: Destination; written only on success
            from_format: Input format tag (aliases accepted)
            to_format: Output format tag (aliases accepted)
            settings: Strategy options such as ``page_range`` or ``title``
            timeout: Seconds before the conversion is abandoned (None = no deadline)

        Returns:
            ConversionResult with either ``output`` or ``error`` set
        """
        source_format = normalize_format(from_format)
        target_format = normalize_format(to_format)
        input_path = Path(input_path)
        output_path = Path(output_path)
        settings = dict(settings or {})

        strategy = self.strategy_for(source_format)
        if strategy is None or not self.capabilities.can_convert(source_format, target_format):
            return ConversionResult(error=UnsupportedConversionError(source_format, target_format))

        if not input_path.is_file():
            return ConversionResult(error=ConversionIOError(f"Input file not found: {input_path.name}"))

        log_with_context(
            logger, "info", "Dispatching conversion",
            strategy=type(strategy).__name__,
            from_format=source_format,
            to_format=target_format,
            output=output_path.name,
        )

        started = time.monotonic()
        part_path = None
        abandoned = False
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            part_path = part_path_for(output_path)
            work = (strategy.convert, input_path, part_path, source_format, target_format, settings)

            if timeout is None:
                work[0](*work[1:])
            else:
                abandoned = not self._run_with_deadline(work, part_path, timeout)
                if abandoned:
                    raise ConversionTimeoutError(timeout)

            if not part_path.exists() or part_path.stat().st_size == 0:
                raise CodecError(f"Conversion to {target_format} produced no output")

            os.replace(part_path, output_path)
            descriptor = OutputDescriptor(
                path=output_path,
                size=output_path.stat().st_size,
                format=target_format,
                duration_seconds=round(time.monotonic() - started, 3),
            )
            log_with_context(
                logger, "info", "Conversion finished",
                output=output_path.name,
                size=descriptor.size,
                seconds=descriptor.duration_seconds,
            )
            return ConversionResult(output=descriptor)

        except ConversionError as e:
            error = e
        except OSError as e:
            error = ConversionIOError(f"File operation failed: {e}")
            error.__cause__ = e
        except Exception as e:
            error = CodecError(f"{type(e).__name__}: {e}")
            error.__cause__ = e
        finally:
            # A timed-out worker thread removes its own part file when it finishes
            if part_path is not None and not abandoned:
                _discard(part_path)

        log_with_context(
            logger, "warning", f"Conversion failed: {error}",
            from_format=source_format,
            to_format=target_format,
            error_kind=error.kind.value,
        )
        return ConversionResult(error=error)

    @staticmethod
    def _run_with_deadline(work, part_path: Path, timeout: float) -> bool:
        """Run on a dedicated thread; False when the deadline passed first.

        Exceptions raised by the strategy propagate to the caller.
        """
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="conversion")
        future = pool.submit(*work)
        try:
            future.result(timeout=timeout)
            return True
        except FutureTimeoutError:
            future.add_done_callback(lambda _: _discard(part_path))
            return False
        finally:
            pool.shutdown(wait=False)


default_engine = ConversionEngine()
