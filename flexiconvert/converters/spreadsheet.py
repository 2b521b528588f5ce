"""Spreadsheet family: xlsx workbooks read through pandas/openpyxl."""

import logging

import pandas as pd

from .base import ConversionStrategy, parse_page_range
from .capabilities import FormatFamily
from .errors import UnsupportedConversionError
from .tabular import TABLE_WRITERS

logger = logging.getLogger(__name__)


def select_sheets(sheets, settings):
    """
    Pick the sheets to convert.

    ``settings["sheet"]`` names a single sheet; otherwise ``page_range``
    selects sheets by position (1-based), defaulting to all of them.
    """
    names = list(sheets)
    wanted = settings.get("sheet")
    if wanted:
        if wanted not in sheets:
            raise ValueError(f"Sheet {wanted!r} not found; available: {', '.join(names)}")
        chosen = [wanted]
    else:
        chosen = [names[index] for index in parse_page_range(settings.get("page_range"), len(names))]
    return [(name, sheets[name].fillna("")) for name in chosen]


class SpreadsheetStrategy(ConversionStrategy):
    family = FormatFamily.SPREADSHEET

    def convert(self, source, target, from_format, to_format, settings):
        writer = TABLE_WRITERS.get(to_format)
        if writer is None or to_format == from_format:
            raise UnsupportedConversionError(from_format, to_format)

        sheets = pd.read_excel(source, sheet_name=None, dtype=str, engine="openpyxl")
        tables = select_sheets(sheets, settings)
        logger.info(f"Converting {len(tables)} of {len(sheets)} sheet(s) to {to_format}")
        writer(target, tables, settings)
