"""Merge top-level listings with per-item enrichment into report records."""

from __future__ import annotations

from typing import Callable, Optional, Sequence, TypeVar

from tenant_audit.batching import BatchResult

T = TypeVar("T")
R = TypeVar("R")
Rec = TypeVar("Rec")

RecordBuilder = Callable[[T, Optional[R], Optional[BaseException]], Rec]


class MissingResult(Exception):
    """No outcome was recorded for an item."""


def error_note(error: Optional[BaseException]) -> str:
    if error is None:
        return ""
    return str(error) or type(error).__name__


def aggregate(
    items: Sequence[T],
    batch_result: BatchResult,
    build: RecordBuilder,
) -> list[Rec]:
    """Return exactly one record per item of ``items``, in input order.

    ``build(item, result, error)`` gets ``error`` set when the enrichment
    failed; the record must still be produced, carrying a note instead of
    the secondary data.
    """
    by_index = {o.index: o for o in batch_result.outcomes}
    records: list[Rec] = []
    for index, item in enumerate(items):
        outcome = by_index.get(index)
        if outcome is None:
            records.append(build(item, None, MissingResult(f"no result recorded for item {index}")))
        else:
            records.append(build(item, outcome.result, outcome.error))
    return records
