"""
screener/detectors/keyword_filter.py
Tier 1 detection — pure Python, no network.
Messages containing a denylisted term are rejected locally and never
sent to the remote classifier.
"""

from typing import List, Optional

from screener.models.record import (
    CASE_NOT_PASS,
    CATEGORY_PREFILTER,
    ClassificationVerdict,
)

# Gambling / baccarat / "quick cash" loan terms (Thai). Lower-case.
DENYLIST = (
    'พนัน',
    'บาคาร่า',
    'เงินด่วน',
)

PREFILTER_NOTE = 'มีคำต้องห้ามชัดเจน: พนัน/เงินด่วน'

PREFILTER_VERDICT = ClassificationVerdict(
    case     = CASE_NOT_PASS,
    category = CATEGORY_PREFILTER,
    note     = PREFILTER_NOTE,
)


def matched_terms(text: str) -> List[str]:
    lowered = (text or '').lower()
    return [term for term in DENYLIST if term in lowered]


def prefilter(text: str) -> Optional[ClassificationVerdict]:
    """
    Returns the fixed not-pass verdict if any denylist term occurs in the
    text (case-insensitive), else None. Which term matched does not matter.
    """
    lowered = (text or '').lower()
    if any(term in lowered for term in DENYLIST):
        return PREFILTER_VERDICT
    return None
