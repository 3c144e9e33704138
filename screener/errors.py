"""
screener/errors.py
Exception taxonomy.

Batch-setup errors (UnsupportedFormat, ParseError, MissingColumns,
MissingFields) abort a request before any row is classified.
RemoteClassificationFailure never leaves the classifier adapter — it is
turned into an 'API Failure' verdict for that row.
"""

from typing import List, Optional, Sequence


class ScreenerError(Exception):
    """Base class for all screener errors."""


class UnsupportedFormat(ScreenerError):

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(
            f"Unsupported file type: {filename!r}. Please upload CSV or XLSX."
        )


class ParseError(ScreenerError):
    """Malformed CSV / corrupt workbook. `cause` is the parser's exception."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class MissingColumns(ScreenerError):

    def __init__(self, required: Sequence[str], found: Sequence[str], row: int = 0):
        self.required: List[str] = list(required)
        self.found:    List[str] = list(found)
        self.row = row
        msg = (
            f"File must contain {' and '.join(repr(c) for c in self.required)} columns. "
            f"Found columns: {', '.join(self.found) or '(none)'}"
        )
        if row:
            msg += f" (first incomplete row: {row})"
        super().__init__(msg)


class MissingFields(ScreenerError):

    def __init__(self, missing: Sequence[str]):
        self.missing: List[str] = list(missing)
        super().__init__(f"Missing sender or text in request body: {', '.join(self.missing)}")


class RemoteClassificationFailure(ScreenerError):
    """Transport, service or response-decoding failure for one message."""


class ConfigError(ScreenerError, ValueError):
    """Invalid configuration — unknown backend, missing API key."""
