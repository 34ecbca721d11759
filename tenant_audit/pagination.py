"""Cursor-driven listing helper shared by every API integration."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Generic, Optional, Sequence, TypeVar

from tenant_audit.retry import (
    FetchError,
    RetryClassifier,
    RetryPolicy,
    RetryState,
    SleepFunc,
)

logger = logging.getLogger("audit.pagination")

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One response of a list call. An empty cursor means it was the last."""

    items: Sequence[T] = field(default_factory=tuple)
    next_cursor: str = ""


PageFunc = Callable[[str], Page[T]]


def fetch_all(
    page_fn: PageFunc,
    policy: RetryPolicy,
    *,
    initial_cursor: str = "",
    classifier: Optional[RetryClassifier] = None,
    label: str = "items",
    sleep: SleepFunc = time.sleep,
    timeout: Optional[float] = None,
) -> list:
    """Walk ``page_fn`` until a page comes back without a cursor.

    Returns the items of every page, in the order the pages arrived.
    Quota errors are retried without limit (unless the policy caps them),
    server errors up to ``policy.max_tries`` times, anything else is
    fatal. On a fatal outcome the items gathered so far are discarded and
    FetchError is raised.
    """
    state = RetryState(policy, classifier, sleep=sleep, timeout=timeout, label=label)
    cursor = initial_cursor or ""
    accumulated: list = []

    while True:
        state.check_deadline()
        try:
            page = page_fn(cursor)
        except FetchError:
            raise
        except Exception as exc:
            state.handle(exc)
            continue

        accumulated.extend(page.items)
        logger.info(
            "%s thus far: %d", label.capitalize(), len(accumulated),
            extra={"label": label, "items": len(accumulated)},
        )

        if not page.next_cursor:
            return accumulated
        cursor = page.next_cursor
