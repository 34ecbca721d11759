"""Admin SDK Directory API: users, groups, members, subscriptions, tokens."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from tenant_audit.config import RetrySettings
from tenant_audit.pagination import Page, fetch_all
from tenant_audit.retry import SleepFunc, retry_call

logger = logging.getLogger("audit.directory")


class DirectoryClient:
    def __init__(
        self,
        services: Any,
        retry: RetrySettings,
        customer: str = "my_customer",
        timeout: Optional[float] = None,
        sleep: SleepFunc = time.sleep,
    ) -> None:
        self._services = services
        self._customer = customer
        self._policy = retry.policy(retry.directory_sleep_seconds)
        self._subscriptions_policy = retry.policy(retry.subscriptions_sleep_seconds)
        self._timeout = timeout
        self._sleep = sleep

    @property
    def _service(self) -> Any:
        return self._services.get("admin", "directory_v1")

    def _fetch(self, page_fn, label: str, policy=None) -> list[dict]:
        return fetch_all(
            page_fn,
            policy or self._policy,
            label=label,
            sleep=self._sleep,
            timeout=self._timeout,
        )

    def query_users(self, query: str = "") -> list[dict]:
        def page_fn(cursor: str) -> Page:
            response = self._service.users().list(
                customer=self._customer,
                query=query or None,
                fields="*",
                pageToken=cursor or None,
            ).execute()
            return Page(response.get("users", []), response.get("nextPageToken", ""))

        return self._fetch(page_fn, "users")

    def query_groups(self, query: str = "") -> list[dict]:
        def page_fn(cursor: str) -> Page:
            response = self._service.groups().list(
                customer=self._customer,
                query=query or None,
                orderBy="email",
                sortOrder="ASCENDING",
                fields="*",
                pageToken=cursor or None,
            ).execute()
            return Page(response.get("groups", []), response.get("nextPageToken", ""))

        return self._fetch(page_fn, "groups")

    def get_group_members(self, group_email: str, role: str = "") -> list[dict]:
        """Members of a group, optionally restricted to one role (OWNER, MANAGER, MEMBER)."""

        def page_fn(cursor: str) -> Page:
            response = self._service.members().list(
                groupKey=group_email,
                roles=role or None,
                fields="*",
                pageToken=cursor or None,
            ).execute()
            return Page(response.get("members", []), response.get("nextPageToken", ""))

        return self._fetch(page_fn, f"{group_email} {role.lower() or 'member'}s")

    def get_subscriptions(self, member_email: str) -> list[dict]:
        """Groups that ``member_email`` belongs to."""

        def page_fn(cursor: str) -> Page:
            response = self._service.groups().list(
                userKey=member_email,
                fields="*",
                pageToken=cursor or None,
            ).execute()
            return Page(response.get("groups", []), response.get("nextPageToken", ""))

        return self._fetch(
            page_fn, f"{member_email} subscriptions", policy=self._subscriptions_policy
        )

    def get_user_tokens(self, user_email: str) -> list[dict]:
        """OAuth tokens issued by ``user_email`` to third-party applications."""

        def call() -> list[dict]:
            response = self._service.tokens().list(userKey=user_email, fields="*").execute()
            return response.get("items") or []

        return retry_call(
            call,
            self._policy,
            label=f"{user_email} tokens",
            sleep=self._sleep,
            timeout=self._timeout,
        )
