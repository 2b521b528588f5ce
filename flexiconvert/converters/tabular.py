"""Tabular data family: csv, json and xml inputs, plus the table writers reused by spreadsheets."""

import html
import json
import logging
import math
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pandas as pd

from .base import ConversionStrategy
from .capabilities import FormatFamily
from .errors import UnsupportedConversionError
from .writers import Table, render_html_document, title_from, write_pdf_tables

logger = logging.getLogger(__name__)

DEFAULT_ROOT_TAG = "records"
DEFAULT_RECORD_TAG = "record"
EXCEL_SHEET_NAME_LIMIT = 31


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------

def read_csv_table(source: Path) -> pd.DataFrame:
    # Everything stays a string so values survive a round trip unchanged
    return pd.read_csv(source, dtype=str, keep_default_na=False, encoding="utf-8-sig")


def _json_records(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return [item if isinstance(item, dict) else {"value": item} for item in data]
    if isinstance(data, dict):
        if len(data) == 1:
            (only,) = data.values()
            if isinstance(only, list):
                return _json_records(only)
        return [data]
    return [{"value": data}]


def _flat_cell(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return value


def read_json_table(source: Path) -> pd.DataFrame:
    """Load an array of objects (or a single wrapped array) and flatten nested keys."""
    with open(source, encoding="utf-8-sig") as handle:
        data = json.load(handle)
    records = _json_records(data)
    if not records:
        return pd.DataFrame()
    return pd.json_normalize(records).map(_flat_cell)


def read_xml_table(source: Path) -> pd.DataFrame:
    """Children of the root element are records; their child elements and attributes are fields."""
    frame = pd.read_xml(source, parser="etree", dtype=str)
    return frame.fillna("")


READERS = {
    "csv": read_csv_table,
    "json": read_json_table,
    "xml": read_xml_table,
}


# ---------------------------------------------------------------------------
# Writers
# ---------------------------------------------------------------------------

def xml_tag(name: Any) -> str:
    """Coerce a column header into a valid XML element name."""
    tag = re.sub(r"[^A-Za-z0-9_.-]", "_", str(name).strip())
    if not tag or not re.match(r"[A-Za-z_]", tag[0]) or tag.lower().startswith("xml"):
        tag = f"_{tag}"
    return tag


def excel_sheet_name(name: str) -> str:
    cleaned = re.sub(r"[\[\]:*?/\\]", "_", name).strip() or "Sheet1"
    return cleaned[:EXCEL_SHEET_NAME_LIMIT]


def _records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    return frame.to_dict(orient="records")


def write_csv(target: Path, tables: Sequence[Table], settings: Dict[str, Any]) -> None:
    name, frame = tables[0]
    if len(tables) > 1:
        logger.warning(f"CSV holds a single table; writing '{name}' and skipping {len(tables) - 1} more")
    delimiter = str(settings.get("delimiter") or ",")
    frame.to_csv(target, index=False, sep=delimiter, encoding="utf-8")


def write_json(target: Path, tables: Sequence[Table], settings: Dict[str, Any]) -> None:
    if len(tables) == 1:
        payload = _records(tables[0][1])
    else:
        payload = {name: _records(frame) for name, frame in tables}
    indent = settings.get("json_indent", 2)
    with open(target, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=indent, default=str)
        handle.write("\n")


def write_xml(target: Path, tables: Sequence[Table], settings: Dict[str, Any]) -> None:
    root = ET.Element(xml_tag(settings.get("root_tag") or DEFAULT_ROOT_TAG))
    record_tag = xml_tag(settings.get("record_tag") or DEFAULT_RECORD_TAG)
    for name, frame in tables:
        parent = root if len(tables) == 1 else ET.SubElement(root, "sheet", name=name)
        for row in _records(frame):
            record = ET.SubElement(parent, record_tag)
            for key, value in row.items():
                ET.SubElement(record, xml_tag(key)).text = "" if value is None else str(value)
    ET.indent(root)
    ET.ElementTree(root).write(target, encoding="utf-8", xml_declaration=True)


def write_html_tables(target: Path, tables: Sequence[Table], settings: Dict[str, Any]) -> None:
    parts = []
    for name, frame in tables:
        if len(tables) > 1:
            parts.append(f"<h2>{html.escape(name)}</h2>")
        parts.append(frame.to_html(index=False, border=0, na_rep=""))
    document = render_html_document("\n".join(parts), title_from(settings, "Converted Data"))
    Path(target).write_text(document, encoding="utf-8")


def write_xlsx(target: Path, tables: Sequence[Table], settings: Dict[str, Any]) -> None:
    with pd.ExcelWriter(target, engine="openpyxl") as writer:
        for name, frame in tables:
            frame.to_excel(writer, sheet_name=excel_sheet_name(name), index=False)


def write_ods(target: Path, tables: Sequence[Table], settings: Dict[str, Any]) -> None:
    with pd.ExcelWriter(target, engine="odf") as writer:
        for name, frame in tables:
            frame.to_excel(writer, sheet_name=excel_sheet_name(name), index=False)


TABLE_WRITERS = {
    "csv": write_csv,
    "json": write_json,
    "xml": write_xml,
    "html": write_html_tables,
    "xlsx": write_xlsx,
    "ods": write_ods,
    "pdf": write_pdf_tables,
}


class TabularStrategy(ConversionStrategy):
    """csv / json / xml records converted between each other, to html and to xlsx."""

    family = FormatFamily.TABULAR

    def convert(self, source, target, from_format, to_format, settings):
        reader = READERS.get(from_format)
        writer = TABLE_WRITERS.get(to_format)
        if reader is None or writer is None:
            raise UnsupportedConversionError(from_format, to_format)

        frame = reader(source)
        logger.info(f"Loaded {len(frame)} record(s) with {len(frame.columns)} field(s) from {from_format}")
        writer(target, [(str(settings.get("sheet") or "data"), frame)], settings)
