"""IAM API: service accounts of a project."""

from __future__ import annotations

import time
from typing import Any, Optional

from tenant_audit.config import RetrySettings
from tenant_audit.models import ServiceAccount
from tenant_audit.pagination import Page, fetch_all
from tenant_audit.retry import SleepFunc


class IamClient:
    def __init__(
        self,
        services: Any,
        retry: RetrySettings,
        timeout: Optional[float] = None,
        sleep: SleepFunc = time.sleep,
    ) -> None:
        self._services = services
        self._policy = retry.policy(retry.iam_sleep_seconds)
        self._timeout = timeout
        self._sleep = sleep

    def get_project_service_accounts(self, project_id: str) -> list[ServiceAccount]:
        service = self._services.get("iam", "v1")

        def page_fn(cursor: str) -> Page:
            response = service.projects().serviceAccounts().list(
                name=f"projects/{project_id}",
                pageSize=100,
                pageToken=cursor or None,
            ).execute()
            return Page(response.get("accounts", []), response.get("nextPageToken", ""))

        accounts = fetch_all(
            page_fn,
            self._policy,
            label=f"{project_id} service accounts",
            sleep=self._sleep,
            timeout=self._timeout,
        )
        return [ServiceAccount.from_api(a) for a in accounts]
