"""Fixed-size batch fan-out: parallel inside a batch, sequential between batches."""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

logger = logging.getLogger("audit.batching")

T = TypeVar("T")
R = TypeVar("R")


class BatchTimeout(Exception):
    """The run deadline passed before this item's batch was started."""


@dataclass(frozen=True)
class ItemOutcome(Generic[T, R]):
    index: int
    item: T
    result: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult(Generic[T, R]):
    """Outcomes of one run_batches() call, in completion order."""

    outcomes: list[ItemOutcome[T, R]] = field(default_factory=list)
    batches_run: int = 0

    @property
    def succeeded(self) -> list[tuple[T, R]]:
        return [(o.item, o.result) for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[tuple[T, BaseException]]:
        return [(o.item, o.error) for o in self.outcomes if not o.ok]

    def in_input_order(self) -> list[ItemOutcome[T, R]]:
        return sorted(self.outcomes, key=lambda o: o.index)

    def __len__(self) -> int:
        return len(self.outcomes)


def _split_batches(count: int, size: int) -> list[range]:
    return [range(start, min(start + size, count)) for start in range(0, count, size)]


def run_batches(
    items: Sequence[T],
    batch_size: int,
    worker: Callable[[T], R],
    *,
    label: str = "items",
    timeout: Optional[float] = None,
) -> BatchResult[T, R]:
    """Apply ``worker`` to every item, ``batch_size`` items at a time.

    Each item of a batch gets its own thread; the next batch only starts
    once every thread of the current one has returned. A worker that
    raises is recorded under ``failed`` and the run carries on.

    Only the calling thread touches the returned BatchResult, so a batch
    of N items always yields exactly N outcomes.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    work = list(items)
    result: BatchResult[T, R] = BatchResult()
    if not work:
        return result

    batches = _split_batches(len(work), batch_size)
    total_batches = math.ceil(len(work) / batch_size)
    deadline = time.monotonic() + timeout if timeout is not None else None

    for batch_index, positions in enumerate(batches, start=1):
        if deadline is not None and time.monotonic() > deadline:
            logger.error(
                "%s: timeout after %d of %d batches, skipping remaining items",
                label, batch_index - 1, total_batches,
            )
            for index in range(positions.start, len(work)):
                result.outcomes.append(ItemOutcome(
                    index, work[index],
                    error=BatchTimeout(f"{label} batch run exceeded {timeout}s"),
                ))
            break

        logger.info(
            "<----- %s Batch [%d] of [%d] ----->", label, batch_index, total_batches,
            extra={"label": label, "batch": batch_index, "items": len(positions)},
        )
        started = time.monotonic()
        _run_one_batch(work, positions, worker, result)
        result.batches_run += 1
        logger.info(
            "<----- %s Batch [%d] of [%d] completed in %.2fs ----->",
            label, batch_index, total_batches, time.monotonic() - started,
            extra={
                "label": label,
                "batch": batch_index,
                "duration_s": round(time.monotonic() - started, 3),
            },
        )

    return result


def _run_one_batch(
    work: list[Any],
    positions: range,
    worker: Callable[[Any], Any],
    result: BatchResult,
) -> None:
    # Leaving the with-block joins every thread: that is the batch barrier.
    with ThreadPoolExecutor(max_workers=len(positions)) as pool:
        futures = {pool.submit(worker, work[index]): index for index in positions}
        for future in as_completed(futures):
            index = futures[future]
            try:
                value = future.result()
            except Exception as exc:
                logger.warning("Worker failed for item %d: %s", index, exc)
                result.outcomes.append(ItemOutcome(index, work[index], error=exc))
            else:
                result.outcomes.append(ItemOutcome(index, work[index], result=value))
