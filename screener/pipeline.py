"""
screener/pipeline.py
Batch orchestration: one verdict per InputRecord, in input order.

Per row: keyword pre-filter first; only rows it does not reject go to the
remote classifier. The adapter never raises, so every row yields a
ResultRecord and one bad row cannot abort the batch.

Rows run one at a time by default (one outstanding remote call).
workers > 1 keeps up to N rows in flight but still emits results and
progress strictly in input order.
"""

import itertools
import logging
import time
from collections import Counter, deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, Iterator, List, Optional

from screener.detectors.keyword_filter import matched_terms, prefilter
from screener.llm.base import ClassifierAdapter
from screener.models.record import InputRecord, ResultRecord

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


def classify_record(record: InputRecord, classifier: ClassifierAdapter) -> ResultRecord:
    """Pre-filter, else remote classifier. Never calls the classifier on a denylist hit."""
    verdict = prefilter(record.text)
    if verdict is not None:
        logger.debug(f"Pre-filter hit: {matched_terms(record.text)}")
    else:
        verdict = classifier.classify(record.text)
    return ResultRecord.combine(record, verdict)


def iter_batch(
    records:     Iterable[InputRecord],
    classifier:  ClassifierAdapter,
    progress_cb: Optional[ProgressCallback] = None,
    workers:     int = 1,
) -> Iterator[ResultRecord]:
    """
    Yield one ResultRecord per input, in order. progress_cb(done, total)
    fires after each row completes, before the row is yielded.
    Stopping iteration early leaves already-yielded records valid.
    """
    records = list(records)
    total   = len(records)
    start   = time.perf_counter()
    done    = 0

    if workers <= 1:
        rows = (classify_record(rec, classifier) for rec in records)
    else:
        rows = _iter_pooled(records, classifier, workers)

    try:
        for result in rows:
            done += 1
            if progress_cb:
                progress_cb(done, total)
            yield result
    finally:
        rows.close()
        logger.info(
            "Batch %s: count=%s/%s latency_sec=%.2f",
            "complete" if done == total else "stopped",
            done,
            total,
            time.perf_counter() - start,
        )


def _iter_pooled(
    records:    List[InputRecord],
    classifier: ClassifierAdapter,
    workers:    int,
) -> Iterator[ResultRecord]:
    """Sliding window of `workers` futures; head of the queue is always the next row."""
    source = iter(records)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='screener') as pool:
        pending: Deque[Future] = deque(
            pool.submit(classify_record, rec, classifier)
            for rec in itertools.islice(source, workers)
        )
        try:
            while pending:
                result = pending.popleft().result()
                nxt = next(source, None)
                if nxt is not None:
                    pending.append(pool.submit(classify_record, nxt, classifier))
                yield result
        finally:
            for fut in pending:
                fut.cancel()


def run_batch(
    records:     Iterable[InputRecord],
    classifier:  ClassifierAdapter,
    progress_cb: Optional[ProgressCallback] = None,
    workers:     int = 1,
) -> List[ResultRecord]:
    return list(iter_batch(records, classifier, progress_cb=progress_cb, workers=workers))


# ── SUMMARY ──────────────────────────────────────────────────

@dataclass
class BatchSummary:
    total:       int = 0
    by_case:     Dict[str, int] = field(default_factory=dict)
    by_category: Dict[str, int] = field(default_factory=dict)


def summarize(results: Iterable[ResultRecord]) -> BatchSummary:
    cases:      Counter = Counter()
    categories: Counter = Counter()
    total = 0
    for r in results:
        total += 1
        cases[r.case] += 1
        categories[r.category] += 1
    return BatchSummary(
        total       = total,
        by_case     = dict(cases.most_common()),
        by_category = dict(categories.most_common()),
    )
