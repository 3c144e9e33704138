"""
screener/report_export.py
Result set export — CSV and XLSX.

Both formats carry exactly the columns sender, text, case, category, note
in that order. Export is read-only over finished ResultRecords.
CSV quoting: a value containing a comma, quote or line break is quoted,
embedded quotes doubled. read_results_csv() reverses it exactly.
"""

import csv
import io
import logging
from pathlib import Path
from typing import Iterable, List, Union

from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from screener.errors import ParseError, UnsupportedFormat
from screener.models.record import RESULT_FIELDS, ResultRecord

logger = logging.getLogger(__name__)

SHEET_TITLE = 'Screening Results'

EXPORT_FILENAMES = {
    'csv':  'sms_screening_results.csv',
    'xlsx': 'sms_screening_results.xlsx',
}

EXPORT_SUFFIXES = tuple(f".{fmt}" for fmt in EXPORT_FILENAMES)

EXPORT_MEDIA_TYPES = {
    'csv':  'text/csv; charset=utf-8',
    'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}


def export_to_csv(results: Iterable[ResultRecord]) -> str:
    buf    = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator='\r\n')
    writer.writerow(RESULT_FIELDS)
    for r in results:
        writer.writerow([getattr(r, name) for name in RESULT_FIELDS])
    return buf.getvalue()


def read_results_csv(text: str) -> List[ResultRecord]:
    """Parse an export_to_csv() payload back into ResultRecords."""
    reader = csv.DictReader(io.StringIO(text.lstrip('\ufeff'), newline=''))
    if tuple(reader.fieldnames or ()) != RESULT_FIELDS:
        raise ParseError(f"Unexpected result columns: {reader.fieldnames}")
    try:
        return [ResultRecord(**{name: row[name] or '' for name in RESULT_FIELDS}) for row in reader]
    except csv.Error as e:
        raise ParseError('CSV Parsing Error', e) from e


def export_to_xlsx(results: Iterable[ResultRecord]) -> bytes:
    wb = Workbook(write_only=True)
    ws = wb.create_sheet(title=SHEET_TITLE)
    ws.append(list(RESULT_FIELDS))
    for r in results:
        ws.append([_text_cell(ws, getattr(r, name)) for name in RESULT_FIELDS])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _text_cell(ws, value: str) -> WriteOnlyCell:
    """
    Plain string cell. Control characters the XLSX format cannot hold
    are dropped, and a leading '=' stays text rather than a formula.
    """
    cell = WriteOnlyCell(ws, value=ILLEGAL_CHARACTERS_RE.sub('', str(value)))
    cell.data_type = 's'
    return cell


def export_bytes(results: Iterable[ResultRecord], fmt: str) -> bytes:
    """Serialize to 'csv' (UTF-8 with BOM) or 'xlsx'."""
    fmt = fmt.lower().lstrip('.')
    if fmt == 'csv':
        # BOM so spreadsheet apps detect UTF-8 (Thai text)
        return export_to_csv(results).encode('utf-8-sig')
    if fmt == 'xlsx':
        return export_to_xlsx(results)
    raise UnsupportedFormat(f"{EXPORT_FILENAMES['csv'].rsplit('.', 1)[0]}.{fmt}")


def write_export(results: Iterable[ResultRecord], path: Union[str, Path]) -> Path:
    """Write results to path; format follows the extension."""
    path = Path(path)
    if path.suffix.lower() not in EXPORT_SUFFIXES:
        raise UnsupportedFormat(path.name)
    data = export_bytes(results, path.suffix)
    path.write_bytes(data)
    logger.info(f"Export written: {path} ({len(data):,} bytes)")
    return path
