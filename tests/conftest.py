"""
tests/conftest.py
Shared fixtures. No network — the remote classifier is always a fake.
"""

import io
import json
import threading
import time
from typing import Dict, List, Optional, Sequence

import pytest
from openpyxl import Workbook

from screener.llm.base import ClassifierAdapter
from screener.models.record import InputRecord


PASS_JSON = json.dumps({"case": "pass", "category": "OTP/Transactional", "note": "รหัส OTP ปกติ"})


class FakeClassifier(ClassifierAdapter):
    """
    Scripted backend. `responses` maps message text → raw response text,
    or an Exception instance to raise from _generate().
    """

    name = 'fake'

    def __init__(
        self,
        responses: Optional[Dict[str, object]] = None,
        default:   str = PASS_JSON,
        delays:    Optional[Dict[str, float]] = None,
        **kwargs,
    ):
        super().__init__(model='fake-model', **kwargs)
        self.responses = dict(responses or {})
        self.default   = default
        self.delays    = dict(delays or {})
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return True

    def _generate(self, text: str) -> str:
        with self._lock:
            self.calls.append(text)
        if text in self.delays:
            time.sleep(self.delays[text])
        resp = self.responses.get(text, self.default)
        if isinstance(resp, Exception):
            raise resp
        return resp


def make_xlsx(sheets: Sequence[Sequence[Sequence[object]]]) -> bytes:
    """Build a workbook in memory. One list of rows per sheet."""
    wb = Workbook()
    wb.remove(wb.active)
    for i, rows in enumerate(sheets):
        ws = wb.create_sheet(title=f"Sheet{i + 1}")
        for row in rows:
            ws.append(list(row))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def fake_classifier():
    return FakeClassifier()


@pytest.fixture
def classifier_factory():
    return FakeClassifier


@pytest.fixture
def xlsx_factory():
    return make_xlsx


@pytest.fixture
def sample_records():
    return [
        InputRecord(sender="BANK", text="OTP 123456"),
        InputRecord(sender="X", text="เล่นบาคาร่าได้เงินจริง"),
        InputRecord(sender="Y", text="ส่วนลด 50% วันนี้เท่านั้น"),
    ]
