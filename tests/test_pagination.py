from __future__ import annotations

import pytest

from tenant_audit.retry import ErrorKind, FetchError, FetchTimeout, RetryPolicy
from tenant_audit.pagination import Page, fetch_all

from conftest import ScriptedPages, http_error

POLICY = RetryPolicy(sleep_seconds=2)


def test_union_of_pages_in_arrival_order(sleep):
    pages = ScriptedPages([
        Page(["a", "b"], "c1"),
        Page(["c"], "c2"),
        Page([], "c3"),
        Page(["d", "e"], ""),
    ])
    items = fetch_all(pages, POLICY, sleep=sleep)
    assert items == ["a", "b", "c", "d", "e"]
    assert pages.cursors == ["", "c1", "c2", "c3"]
    assert sleep.calls == []


def test_initial_cursor_is_used_for_first_call(sleep):
    pages = ScriptedPages([Page([1], "")])
    fetch_all(pages, POLICY, initial_cursor="resume-here", sleep=sleep)
    assert pages.cursors == ["resume-here"]


def test_quota_errors_retry_same_cursor(sleep):
    k = 4
    pages = ScriptedPages(
        [Page(["a"], "next")] + [Exception("quota exceeded")] * k + [Page(["b"], "")]
    )
    items = fetch_all(pages, POLICY, sleep=sleep)
    assert items == ["a", "b"]
    assert pages.calls == k + 2
    assert pages.cursors[1:] == ["next"] * (k + 1)
    assert sleep.calls == [2] * k


def test_quota_errors_k_times_then_success(sleep):
    k = 7
    pages = ScriptedPages([Exception("quota")] * k + [Page(["x"], "")])
    assert fetch_all(pages, POLICY, sleep=sleep) == ["x"]
    assert pages.calls == k + 1
    assert sleep.calls == [2] * k


def test_server_errors_exhaust_after_max_tries(sleep):
    pages = ScriptedPages([Exception("Error 500: backendError")] * 20)
    with pytest.raises(FetchError) as excinfo:
        fetch_all(pages, POLICY, sleep=sleep)
    assert pages.calls == 11
    assert sleep.calls == [60] * 10
    assert excinfo.value.kind is ErrorKind.FATAL
    assert excinfo.value.cause_kind is ErrorKind.SERVER_TRANSIENT


def test_server_errors_one_below_cap_then_success(sleep):
    pages = ScriptedPages([Exception("500")] * 9 + [Page(["ok"], "")])
    assert fetch_all(pages, POLICY, sleep=sleep) == ["ok"]
    assert pages.calls == 10


def test_server_error_budget_spans_pages(sleep):
    policy = RetryPolicy(sleep_seconds=2, max_tries=2)
    pages = ScriptedPages([
        Exception("500"),
        Page(["a"], "n1"),
        Exception("500"),
        Page(["b"], "n2"),
        Exception("500"),
    ])
    with pytest.raises(FetchError):
        fetch_all(pages, policy, sleep=sleep)
    assert sleep.calls == [60, 60]


def test_quota_errors_do_not_consume_server_budget(sleep):
    policy = RetryPolicy(sleep_seconds=2, max_tries=1)
    pages = ScriptedPages([
        Exception("quota"), Exception("500"), Exception("quota"), Page(["a"], ""),
    ])
    assert fetch_all(pages, policy, sleep=sleep) == ["a"]
    assert sleep.calls == [2, 60, 2]


def test_fatal_error_on_first_call(sleep):
    cause = RuntimeError("403 insufficient permissions")
    pages = ScriptedPages([cause])
    with pytest.raises(FetchError) as excinfo:
        fetch_all(pages, POLICY, sleep=sleep)
    assert excinfo.value.cause is cause
    assert pages.calls == 1
    assert sleep.calls == []


def test_fatal_error_discards_accumulated_items(sleep):
    pages = ScriptedPages([Page(["a"], "n1"), Page(["b"], "n2"), ValueError("boom")])
    with pytest.raises(FetchError):
        fetch_all(pages, POLICY, sleep=sleep)
    assert pages.calls == 3


def test_retry_state_is_fresh_per_fetch(sleep):
    policy = RetryPolicy(sleep_seconds=2, max_tries=3)
    first = ScriptedPages([Exception("500")] * 3 + [Page(["a"], "")])
    second = ScriptedPages([Exception("500")] * 3 + [Page(["b"], "")])
    assert fetch_all(first, policy, sleep=sleep) == ["a"]
    assert fetch_all(second, policy, sleep=sleep) == ["b"]
    assert len(sleep.calls) == 6


def test_timeout_stops_before_a_sleep_that_would_overrun(sleep):
    pages = ScriptedPages([Exception("500")] * 3)
    with pytest.raises(FetchTimeout) as excinfo:
        fetch_all(pages, POLICY, sleep=sleep, timeout=5, label="users")
    assert pages.calls == 1
    assert sleep.calls == []
    assert "users" in str(excinfo.value)


def test_client_error_fails_fast_whatever_the_request_uri(sleep):
    uri = "https://iam.googleapis.com/v1/projects/billing-500/serviceAccounts?alt=json"
    pages = ScriptedPages([http_error(403, "The caller does not have permission", uri)] * 11)
    with pytest.raises(FetchError) as excinfo:
        fetch_all(pages, POLICY, sleep=sleep)
    assert pages.calls == 1
    assert sleep.calls == []
    assert excinfo.value.cause_kind is ErrorKind.FATAL
