"""Retry classification and fixed-delay retry state for Google API calls.

Errors are classified by sniffing the error message (see ``error_message``;
for HTTP errors that is the status and reason, never the request URI):

  - contains "quota" (case-sensitive)  -> QUOTA, retried after the per-API
    sleep with no cap unless ``RetryPolicy.quota_max_tries`` is set
  - contains "500"                     -> SERVER_TRANSIENT, retried after a
    fixed 60s sleep up to ``RetryPolicy.max_tries`` times
  - anything else                      -> FATAL, never retried

WARNING: with the default policy a tenant that is throttled without end
keeps a fetch retrying forever. Callers that need a bound should set
``quota_max_tries`` or pass a ``timeout``.
"""

from __future__ import annotations

import enum
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from googleapiclient.errors import HttpError

logger = logging.getLogger("audit.retry")

T = TypeVar("T")

SleepFunc = Callable[[float], None]

QUOTA_MARKER = "quota"
SERVER_ERROR_MARKER = "500"
DEFAULT_MAX_TRIES = 10
DEFAULT_SERVER_ERROR_SLEEP = 60.0


class ErrorKind(enum.Enum):
    QUOTA = "quota"
    SERVER_TRANSIENT = "server_transient"
    FATAL = "fatal"


class FetchError(Exception):
    """A remote call failed for good; the fetch it belonged to is aborted.

    ``kind`` is always ``ErrorKind.FATAL``. ``cause_kind`` records how the
    last underlying error was classified, so a server error that ran out of
    retries reads ``SERVER_TRANSIENT`` there.
    """

    kind = ErrorKind.FATAL

    def __init__(
        self,
        cause: Optional[BaseException],
        cause_kind: ErrorKind = ErrorKind.FATAL,
        attempts: int = 0,
        label: str = "",
        message: Optional[str] = None,
    ) -> None:
        self.cause = cause
        self.cause_kind = cause_kind
        self.attempts = attempts
        self.label = label
        if message is None:
            message = str(cause) if cause is not None else "fetch aborted"
        super().__init__(message)


class FetchTimeout(FetchError):
    """The optional deadline of a fetch expired."""

    def __init__(self, label: str = "", timeout: Optional[float] = None) -> None:
        super().__init__(
            None,
            ErrorKind.FATAL,
            label=label,
            message=f"{label or 'fetch'} exceeded timeout of {timeout}s",
        )
        self.timeout = timeout


def error_message(error: BaseException) -> str:
    """Text the classifier matches against.

    HttpError renders the request URI into str(), and IDs in that URI
    (project "billing-500", group "quota-alerts@...") must not decide the
    retry class. google.api_core errors already render as "<code> <message>".
    """
    if isinstance(error, HttpError):
        reason = getattr(error, "reason", None) or error.resp.reason or ""
        return f"Error {error.resp.status}: {reason}"
    return str(error)


class RetryClassifier(ABC):
    """Decides how a failed attempt is treated."""

    @abstractmethod
    def classify(self, error: BaseException) -> ErrorKind:
        """Return the retry class of ``error``."""


class SubstringRetryClassifier(RetryClassifier):
    """Message sniffing classifier used by every API integration."""

    def __init__(
        self,
        quota_marker: str = QUOTA_MARKER,
        server_marker: str = SERVER_ERROR_MARKER,
    ) -> None:
        self.quota_marker = quota_marker
        self.server_marker = server_marker

    def classify(self, error: BaseException) -> ErrorKind:
        message = error_message(error)
        if self.quota_marker in message:
            return ErrorKind.QUOTA
        if self.server_marker in message:
            return ErrorKind.SERVER_TRANSIENT
        return ErrorKind.FATAL


DEFAULT_CLASSIFIER = SubstringRetryClassifier()


@dataclass(frozen=True)
class RetryPolicy:
    sleep_seconds: float
    server_error_sleep_seconds: float = DEFAULT_SERVER_ERROR_SLEEP
    max_tries: Optional[int] = DEFAULT_MAX_TRIES  # None = unbounded
    quota_max_tries: Optional[int] = None  # None = unbounded


class RetryState:
    """Attempt counters for a single fetch or call. Never reuse across calls."""

    def __init__(
        self,
        policy: RetryPolicy,
        classifier: Optional[RetryClassifier] = None,
        sleep: SleepFunc = time.sleep,
        timeout: Optional[float] = None,
        label: str = "",
    ) -> None:
        self.policy = policy
        self.classifier = classifier or DEFAULT_CLASSIFIER
        self.sleep = sleep
        self.label = label
        self.timeout = timeout
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self.server_attempts = 0
        self.quota_attempts = 0

    def check_deadline(self, upcoming_sleep: float = 0.0) -> None:
        if self.deadline is None:
            return
        if time.monotonic() + upcoming_sleep > self.deadline:
            raise FetchTimeout(label=self.label, timeout=self.timeout)

    def handle(self, error: BaseException) -> None:
        """Sleep before the next attempt, or raise FetchError if there is none."""
        kind = self.classifier.classify(error)

        if kind is ErrorKind.QUOTA:
            cap = self.policy.quota_max_tries
            if cap is not None and self.quota_attempts >= cap:
                raise FetchError(error, kind, self.quota_attempts, self.label) from error
            self._wait(error, self.policy.sleep_seconds, self.quota_attempts + 1)
            self.quota_attempts += 1
            return

        if kind is ErrorKind.SERVER_TRANSIENT:
            cap = self.policy.max_tries
            if cap is not None and self.server_attempts >= cap:
                logger.error(
                    "%s: giving up after %d server error retries",
                    self.label or "call", self.server_attempts,
                )
                raise FetchError(error, kind, self.server_attempts, self.label) from error
            self._wait(error, self.policy.server_error_sleep_seconds, self.server_attempts + 1)
            self.server_attempts += 1
            return

        raise FetchError(error, kind, 0, self.label) from error

    def _wait(self, error: BaseException, delay: float, attempt: int) -> None:
        self.check_deadline(delay)
        logger.warning(
            "%s, sleeping for %s seconds ...",
            error_message(error), delay,
            extra={"label": self.label, "attempt": attempt, "sleep_s": delay},
        )
        self.sleep(delay)


def retry_call(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    classifier: Optional[RetryClassifier] = None,
    label: str = "",
    sleep: SleepFunc = time.sleep,
    timeout: Optional[float] = None,
) -> T:
    """Invoke a single, non-paginated remote call under ``policy``."""
    state = RetryState(policy, classifier, sleep=sleep, timeout=timeout, label=label)
    while True:
        state.check_deadline()
        try:
            return fn()
        except FetchError:
            raise
        except Exception as exc:
            state.handle(exc)
