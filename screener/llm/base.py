"""
screener/llm/base.py
Abstract base class for the remote classifier backends.
To add a new backend: subclass ClassifierAdapter and implement _generate().

classify() never raises. Every call returns a ClassificationVerdict so the
batch can always move on to the next row:
  - request / decode failure      → case=error, category='API Failure'
  - JSON object missing a field   → that field gets its declared default
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, field_validator

from screener.errors import RemoteClassificationFailure
from screener.models.record import (
    CASE_ERROR,
    CATEGORY_API_FAILURE,
    CATEGORY_UNKNOWN,
    NOTE_MISSING_FIELD,
    REMOTE_CATEGORIES,
    ClassificationVerdict,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "คุณคือผู้เชี่ยวชาญด้านการคัดกรองข้อความ SMS ที่เข้มงวด\n"
    "วิเคราะห์ข้อความที่ให้มาแล้วจำแนกเป็น 3 ผลลัพธ์: "
    "'case' ('pass'/'not pass'), 'category', และ 'note'\n"
    "Category ที่เป็นไปได้: "
    + ", ".join(f"'{c}'" for c in REMOTE_CATEGORIES[:-1])
    + f" หรือ '{REMOTE_CATEGORIES[-1]}'\n"
    "ตอบกลับด้วย JSON Format เท่านั้น: "
    "{'case': 'pass'/'not pass', 'category': 'ประเภทข้อความ', 'note': 'เหตุผล'}"
)


class VerdictPayload(BaseModel):
    """
    The JSON object the remote classifier must return.
    Absent, null or blank fields fall back to the declared defaults.
    """
    case:     str = CASE_ERROR
    category: str = CATEGORY_UNKNOWN
    note:     str = NOTE_MISSING_FIELD

    @field_validator('case', 'category', 'note', mode='before')
    @classmethod
    def _blank_to_default(cls, value: Any, info) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        if not isinstance(value, str):
            return str(value)
        return value

    def to_verdict(self) -> ClassificationVerdict:
        return ClassificationVerdict(case=self.case, category=self.category, note=self.note)


def api_failure_verdict(cause: Any) -> ClassificationVerdict:
    return ClassificationVerdict(
        case     = CASE_ERROR,
        category = CATEGORY_API_FAILURE,
        note     = f"API Error or Format Error: {cause}",
    )


def parse_response(text: str) -> ClassificationVerdict:
    """
    Parse the service's JSON text into a verdict.
    Tolerates surrounding whitespace and markdown fences despite JSON mode.
    Raises RemoteClassificationFailure if the text is not JSON at all.
    """
    clean = (text or '').strip()
    if clean.startswith('```'):
        parts = clean.split('```')
        if len(parts) >= 2:
            clean = parts[1]
            if clean.startswith('json'):
                clean = clean[4:]
        clean = clean.strip()

    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        raise RemoteClassificationFailure(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        logger.warning(f"Classifier returned JSON {type(data).__name__}, expected object")
        data = {}

    missing = [
        f for f in VerdictPayload.model_fields
        if data.get(f) is None or (isinstance(data[f], str) and not data[f].strip())
    ]
    if missing:
        logger.warning(f"Classifier response missing fields {missing} — defaults applied")

    return VerdictPayload.model_validate(data).to_verdict()


class ClassifierAdapter(ABC):
    """
    All remote classifier backends implement this interface.
    The pipeline calls classify() and gets back a ClassificationVerdict.
    The caller never knows which backend is running.
    """

    name = 'base'

    def __init__(
        self,
        model:             str,
        timeout_sec:       int   = 60,
        temperature:       float = 0.1,
        max_retries:       int   = 0,
        retry_backoff_sec: float = 1.0,
    ):
        self.model             = model
        self.timeout_sec       = timeout_sec
        self.temperature       = temperature
        self.max_retries       = max(0, int(max_retries))
        self.retry_backoff_sec = retry_backoff_sec

    @abstractmethod
    def is_available(self) -> bool:
        """True if the backend is reachable. Never raises."""
        ...

    @abstractmethod
    def _generate(self, text: str) -> str:
        """
        Send one message with SYSTEM_PROMPT in JSON response mode and
        return the raw response text.
        Raise RemoteClassificationFailure on transport / service errors.
        """
        ...

    def classify(self, text: str) -> ClassificationVerdict:
        try:
            raw = self._generate_with_retry(text)
            return parse_response(raw)
        except Exception as e:
            logger.error(f"{self.name} classification failed: {e}")
            return api_failure_verdict(e)

    def _generate_with_retry(self, text: str) -> str:
        attempt = 0
        while True:
            try:
                return self._generate(text)
            except RemoteClassificationFailure as e:
                if attempt >= self.max_retries:
                    raise
                delay = self.retry_backoff_sec * (2 ** attempt)
                logger.warning(
                    f"{self.name} request failed ({e}) — retry "
                    f"{attempt + 1}/{self.max_retries} in {delay:.1f}s"
                )
                time.sleep(delay)
                attempt += 1
