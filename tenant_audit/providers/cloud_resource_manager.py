"""GCP Cloud Resource Manager provider: every project visible to the caller."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from google.cloud import resourcemanager_v3

from tenant_audit.config import RetrySettings
from tenant_audit.pagination import Page, fetch_all
from tenant_audit.retry import SleepFunc

logger = logging.getLogger("audit.cloud_resource_manager")


def project_to_dict(project: Any) -> dict:
    name = project.name or ""
    return {
        "projectId": project.project_id,
        "projectNumber": name.split("/")[-1] if name else "",
        "name": project.display_name,
        "parent": project.parent or "",
        "state": project.state.name if project.state else "ACTIVE",
    }


class ProjectsClient:
    def __init__(
        self,
        credentials: Any,
        retry: RetrySettings,
        org_id: Optional[str] = None,
        timeout: Optional[float] = None,
        sleep: SleepFunc = time.sleep,
        client: Any = None,
    ) -> None:
        # Client libraries auto-discover ADC when credentials=None
        self._client = client or resourcemanager_v3.ProjectsClient(credentials=credentials)
        self._policy = retry.policy(retry.resource_manager_sleep_seconds)
        self._org_id = org_id
        self._timeout = timeout
        self._sleep = sleep

    def _query(self) -> str:
        if not self._org_id:
            return ""
        org_name = self._org_id
        if not org_name.startswith("organizations/"):
            org_name = f"organizations/{org_name}"
        return f"parent:{org_name}"

    def get_all_projects(self) -> list[dict]:
        query = self._query()

        def page_fn(cursor: str) -> Page:
            request = resourcemanager_v3.SearchProjectsRequest(
                query=query, page_token=cursor
            )
            # The pager proxies attribute access to the first response only.
            pager = self._client.search_projects(request=request)
            return Page(
                [project_to_dict(p) for p in pager.projects],
                pager.next_page_token,
            )

        return fetch_all(
            page_fn, self._policy, label="projects", sleep=self._sleep, timeout=self._timeout
        )
