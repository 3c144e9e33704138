"""
screener/parsers/table_parser.py
Parses uploaded message sheets (.csv / .xlsx) into raw row dicts.

CSV: header row + comma-delimited rows, standard quoting (stdlib csv).
     Encoding is detected by BOM — Excel on Windows saves UTF-8-BOM or
     UTF-16 depending on the "Save as" option picked.
XLSX: first worksheet only, first row is the header (openpyxl).

Column names are returned untouched; normalizer.py lower-cases them.
Any failure raises ParseError — a batch is never built from a partial file.
"""

import csv
import io
import logging
from pathlib import Path
from typing import Any, Dict, List

from openpyxl import load_workbook

from screener.errors import ParseError, UnsupportedFormat

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.csv', '.xlsx')

BOM_UTF8     = b'\xef\xbb\xbf'
BOM_UTF16_LE = b'\xff\xfe'
BOM_UTF16_BE = b'\xfe\xff'


def is_supported(filename: str) -> bool:
    return Path(filename or '').suffix.lower() in SUPPORTED_EXTENSIONS


def parse_table(data: bytes, filename: str) -> List[Dict[str, Any]]:
    """
    Parse file bytes into an ordered list of {column: value} dicts.
    Format is picked by the filename extension.
    Raises UnsupportedFormat / ParseError.
    """
    ext = Path(filename or '').suffix.lower()
    if ext == '.csv':
        rows = parse_csv(data)
    elif ext == '.xlsx':
        rows = parse_xlsx(data)
    else:
        raise UnsupportedFormat(filename)

    logger.info(f"Parsed {len(rows)} rows from {Path(filename).name}")
    return rows


# ── CSV ──────────────────────────────────────────────────────

def _decode(raw: bytes) -> str:
    if raw.startswith(BOM_UTF8):
        return raw[len(BOM_UTF8):].decode('utf-8', errors='replace')
    if raw.startswith(BOM_UTF16_LE):
        return raw[len(BOM_UTF16_LE):].decode('utf-16-le', errors='replace')
    if raw.startswith(BOM_UTF16_BE):
        return raw[len(BOM_UTF16_BE):].decode('utf-16-be', errors='replace')
    try:
        return raw.decode('utf-8', errors='strict')
    except UnicodeDecodeError:
        logger.warning("CSV is not valid UTF-8 — undecodable bytes replaced")
        return raw.decode('utf-8', errors='replace')


def parse_csv(data: bytes) -> List[Dict[str, Any]]:
    """
    Header + rows. Short rows get None for the missing cells;
    a row longer than the header is a ParseError.
    """
    text   = _decode(data)
    reader = csv.reader(io.StringIO(text, newline=''), strict=True)
    rows: List[Dict[str, Any]] = []

    try:
        header = next(reader, None)
        if header is None:
            return rows

        for values in reader:
            if not values:
                continue        # blank line
            if len(values) > len(header):
                raise ParseError(
                    f"CSV Parsing Error: line {reader.line_num} has "
                    f"{len(values)} fields, header has {len(header)}"
                )
            row = dict(zip(header, values))
            for col in header[len(values):]:
                row.setdefault(col, None)
            rows.append(row)

    except csv.Error as e:
        raise ParseError('CSV Parsing Error', e) from e

    return rows


# ── XLSX ─────────────────────────────────────────────────────

def parse_xlsx(data: bytes) -> List[Dict[str, Any]]:
    """
    First sheet, first row = header. Blank header cells drop their column;
    rows with no values at all are skipped.
    """
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ParseError('Excel Parsing Error', e) from e

    rows: List[Dict[str, Any]] = []
    try:
        if not wb.worksheets:
            return rows
        sheet = wb.worksheets[0]
        it    = sheet.iter_rows(values_only=True)

        header_row = next(it, None)
        if header_row is None:
            return rows
        columns = [
            (idx, str(name))
            for idx, name in enumerate(header_row)
            if name is not None and str(name).strip()
        ]

        for values in it:
            if values is None or all(v is None or v == '' for v in values):
                continue
            rows.append({
                name: (values[idx] if idx < len(values) else None)
                for idx, name in columns
            })

    except Exception as e:
        raise ParseError('Excel Parsing Error', e) from e
    finally:
        wb.close()

    return rows
