"""
screener/normalizer.py
Turns raw parsed rows into InputRecords.

The column check is batch-wide: one row without sender/text rejects
the whole upload before anything is classified.
"""

import logging
from typing import Any, Dict, List, Mapping, Sequence

from screener.errors import MissingColumns, MissingFields
from screener.models.record import InputRecord

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('sender', 'text')


def standardize_columns(raw: Sequence[Mapping[Any, Any]]) -> List[Dict[str, Any]]:
    """Lower-case and trim every key. Values are copied unchanged."""
    return [
        {str(key).lower().strip(): value for key, value in row.items()}
        for row in raw
    ]


def to_text(value: Any) -> str:
    """
    Coerce a cell value to text. Spreadsheets hand back numeric sender
    short codes as floats — 4242.0 becomes '4242'.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _has_value(row: Mapping[str, Any], col: str) -> bool:
    value = row.get(col)
    if value is None:
        return False
    return bool(to_text(value).strip())


def normalize_records(raw: Sequence[Mapping[Any, Any]]) -> List[InputRecord]:
    """
    Standardize columns, verify every row carries sender and text,
    then build one InputRecord per row (same order).
    Raises MissingColumns naming the required columns and the columns
    found in the first row.
    """
    rows = standardize_columns(raw)

    for i, row in enumerate(rows):
        if not all(_has_value(row, col) for col in REQUIRED_COLUMNS):
            found = list(rows[0].keys()) if rows else []
            logger.warning(f"Row {i + 1} is missing a required column — batch rejected")
            raise MissingColumns(REQUIRED_COLUMNS, found, row=i + 1)

    return [
        InputRecord(sender=to_text(row['sender']), text=to_text(row['text']))
        for row in rows
    ]


def validate_fields(payload: Any) -> InputRecord:
    """Per-row boundary: sender and text must be non-empty strings."""
    if not isinstance(payload, Mapping):
        raise MissingFields(list(REQUIRED_COLUMNS))
    missing = [
        col for col in REQUIRED_COLUMNS
        if not isinstance(payload.get(col), str) or not payload[col].strip()
    ]
    if missing:
        raise MissingFields(missing)
    return InputRecord(sender=payload['sender'], text=payload['text'])
