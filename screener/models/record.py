"""
screener/models/record.py
Shared dataclass schema. Parsers, the classifier adapters, the pipeline
and the exporters all use these types. Data only — no classification logic.
"""

from dataclasses import dataclass
from typing import Dict

# ── VERDICT VOCABULARY ───────────────────────────────────────

CASE_PASS     = 'pass'
CASE_NOT_PASS = 'not pass'
CASE_ERROR    = 'error'

VALID_CASES = frozenset({CASE_PASS, CASE_NOT_PASS, CASE_ERROR})

# Labels the remote classifier is instructed to choose from
REMOTE_CATEGORIES = (
    'OTP/Transactional',
    'Marketing/Promo',
    'Financial Scam',
    'Gambling/Illegal',
    'Phishing',
    'Others',
)

CATEGORY_PREFILTER   = 'Gambling/Loan Scam'     # keyword pre-filter only
CATEGORY_UNKNOWN     = 'Unknown'                # response missing category
CATEGORY_API_FAILURE = 'API Failure'            # request / parse failed

NOTE_MISSING_FIELD = 'JSON Missing Field'

# Fixed column order for every export format
RESULT_FIELDS = ('sender', 'text', 'case', 'category', 'note')


@dataclass(frozen=True)
class InputRecord:
    """One normalized upload row. Both fields non-empty."""
    sender: str
    text:   str


@dataclass(frozen=True)
class ClassificationVerdict:
    """Outcome of classifying one message."""
    case:     str           # pass / not pass / error
    category: str
    note:     str


@dataclass(frozen=True)
class ResultRecord:
    """InputRecord + ClassificationVerdict. Unit of aggregation and export."""
    sender:   str
    text:     str
    case:     str
    category: str
    note:     str

    @classmethod
    def combine(cls, record: InputRecord, verdict: ClassificationVerdict) -> 'ResultRecord':
        return cls(
            sender   = record.sender,
            text     = record.text,
            case     = verdict.case,
            category = verdict.category,
            note     = verdict.note,
        )

    def to_dict(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in RESULT_FIELDS}
