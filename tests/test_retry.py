from __future__ import annotations

import pytest
from google.api_core import exceptions as core_exceptions

from tenant_audit.retry import (
    ErrorKind,
    FetchError,
    RetryClassifier,
    RetryPolicy,
    RetryState,
    SubstringRetryClassifier,
    error_message,
    retry_call,
)

from conftest import http_error


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Quota exceeded for quota metric 'Queries'", ErrorKind.QUOTA),
        ("googleapi: Error 500: Backend Error", ErrorKind.SERVER_TRANSIENT),
        ("<HttpError 404 when requesting ... returned \"Not Found\">", ErrorKind.FATAL),
        ("Quota exceeded", ErrorKind.FATAL),  # match is case-sensitive
        ("quota exceeded, backend returned 500", ErrorKind.QUOTA),
        ("", ErrorKind.FATAL),
    ],
)
def test_substring_classifier(message, expected):
    assert SubstringRetryClassifier().classify(Exception(message)) is expected


def test_quota_retries_are_unbounded_by_default(sleep):
    state = RetryState(RetryPolicy(sleep_seconds=2), sleep=sleep)
    for _ in range(50):
        state.handle(Exception("quota"))
    assert sleep.calls == [2] * 50
    assert state.server_attempts == 0


def test_quota_cap_is_opt_in(sleep):
    state = RetryState(RetryPolicy(sleep_seconds=2, quota_max_tries=2), sleep=sleep)
    state.handle(Exception("quota"))
    state.handle(Exception("quota"))
    with pytest.raises(FetchError) as excinfo:
        state.handle(Exception("quota"))
    assert excinfo.value.cause_kind is ErrorKind.QUOTA
    assert excinfo.value.kind is ErrorKind.FATAL
    assert len(sleep.calls) == 2


def test_server_errors_sleep_sixty_seconds_until_cap(sleep):
    state = RetryState(RetryPolicy(sleep_seconds=2, max_tries=3), sleep=sleep)
    for _ in range(3):
        state.handle(Exception("Error 500"))
    with pytest.raises(FetchError) as excinfo:
        state.handle(Exception("Error 500"))
    assert sleep.calls == [60, 60, 60]
    assert excinfo.value.cause_kind is ErrorKind.SERVER_TRANSIENT
    assert excinfo.value.attempts == 3


def test_unbounded_server_retries(sleep):
    state = RetryState(RetryPolicy(sleep_seconds=2, max_tries=None), sleep=sleep)
    for _ in range(25):
        state.handle(Exception("500"))
    assert len(sleep.calls) == 25


def test_fatal_error_raises_without_sleeping(sleep):
    state = RetryState(RetryPolicy(sleep_seconds=2), sleep=sleep)
    cause = PermissionError("403 forbidden")
    with pytest.raises(FetchError) as excinfo:
        state.handle(cause)
    assert excinfo.value.cause is cause
    assert str(excinfo.value) == "403 forbidden"
    assert sleep.calls == []


def test_custom_classifier_replaces_substring_rules(sleep):
    class EverythingIsQuota(RetryClassifier):
        def classify(self, error):
            return ErrorKind.QUOTA

    state = RetryState(RetryPolicy(sleep_seconds=5), EverythingIsQuota(), sleep=sleep)
    state.handle(ValueError("bad request"))
    assert sleep.calls == [5]


def test_retry_call_returns_after_transient_failures(sleep):
    outcomes = [Exception("quota"), Exception("500"), "done"]

    def call():
        step = outcomes.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    assert retry_call(call, RetryPolicy(sleep_seconds=2), sleep=sleep) == "done"
    assert sleep.calls == [2, 60]


def test_retry_call_fatal(sleep):
    def call():
        raise KeyError("missing")

    with pytest.raises(FetchError):
        retry_call(call, RetryPolicy(sleep_seconds=2), sleep=sleep)
    assert sleep.calls == []


IAM_URI = (
    "https://iam.googleapis.com/v1/projects/billing-500/serviceAccounts"
    "?pageSize=100&alt=json"
)
MEMBERS_URI = (
    "https://admin.googleapis.com/admin/directory/v1/groups/"
    "quota-alerts%40corp.com/members?roles=OWNER&alt=json"
)


@pytest.mark.parametrize(
    "error, expected",
    [
        (http_error(403, "The caller does not have permission", IAM_URI), ErrorKind.FATAL),
        (http_error(404, "Resource Not Found: groupKey", MEMBERS_URI), ErrorKind.FATAL),
        (http_error(500, "Backend Error", MEMBERS_URI), ErrorKind.SERVER_TRANSIENT),
        (
            http_error(429, "Quota exceeded for quota metric 'Queries'", IAM_URI),
            ErrorKind.QUOTA,
        ),
        (core_exceptions.InternalServerError("backend error"), ErrorKind.SERVER_TRANSIENT),
        (
            core_exceptions.ResourceExhausted("Quota exceeded for quota metric 'Read requests'"),
            ErrorKind.QUOTA,
        ),
        (core_exceptions.PermissionDenied("The caller does not have permission"), ErrorKind.FATAL),
        (core_exceptions.NotFound("project not found"), ErrorKind.FATAL),
    ],
)
def test_classifier_on_library_errors(error, expected):
    assert SubstringRetryClassifier().classify(error) is expected


def test_http_error_message_leaves_out_uri():
    error = http_error(403, "The caller does not have permission", IAM_URI)
    assert error_message(error) == "Error 403: The caller does not have permission"


def test_client_error_with_500_in_uri_is_not_retried(sleep):
    calls = []

    def call():
        calls.append(1)
        raise http_error(403, "The caller does not have permission", IAM_URI)

    with pytest.raises(FetchError):
        retry_call(call, RetryPolicy(sleep_seconds=2), sleep=sleep)
    assert len(calls) == 1
    assert sleep.calls == []
