"""Drive API: shared drives, permissions, file search and report upload."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional

from googleapiclient.http import MediaFileUpload

from tenant_audit.config import RetrySettings
from tenant_audit.pagination import Page, fetch_all
from tenant_audit.retry import SleepFunc, retry_call

logger = logging.getLogger("audit.drive")

APPS_SCRIPT_QUERY = "mimeType='application/vnd.google-apps.script' AND 'me' in owners"


def human_bytes(count: int) -> str:
    unit = 1000
    if count < unit:
        return f"{count} B"
    div, exp = unit, 0
    n = count // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{count / div:.1f} {'kMGTPE'[exp]}B"


class DriveClient:
    def __init__(
        self,
        services: Any,
        retry: RetrySettings,
        subject: str = "",
        timeout: Optional[float] = None,
        sleep: SleepFunc = time.sleep,
    ) -> None:
        self._services = services
        self._policy = retry.policy(retry.drive_sleep_seconds)
        self._subject = subject
        self._timeout = timeout
        self._sleep = sleep

    @property
    def _service(self) -> Any:
        return self._services.get("drive", "v3")

    def _fetch(self, page_fn, label: str) -> list[dict]:
        return fetch_all(
            page_fn, self._policy, label=label, sleep=self._sleep, timeout=self._timeout
        )

    def get_all_drives(self) -> list[dict]:
        def page_fn(cursor: str) -> Page:
            response = self._service.drives().list(
                pageSize=100,
                useDomainAdminAccess=True,
                fields="*",
                pageToken=cursor or None,
            ).execute()
            return Page(response.get("drives", []), response.get("nextPageToken", ""))

        return self._fetch(page_fn, "shared drives")

    def get_file_permissions(self, file_id: str) -> list[dict]:
        def page_fn(cursor: str) -> Page:
            response = self._service.permissions().list(
                fileId=file_id,
                fields="*",
                supportsAllDrives=True,
                useDomainAdminAccess=True,
                pageSize=100,
                pageToken=cursor or None,
            ).execute()
            return Page(response.get("permissions", []), response.get("nextPageToken", ""))

        permissions = self._fetch(page_fn, f"{file_id} permissions")
        logger.debug("Getting permissions for [%s] - %d permissions found", file_id, len(permissions))
        return permissions

    def get_files(self, query: str) -> list[dict]:
        def page_fn(cursor: str) -> Page:
            response = self._service.files().list(
                q=query,
                pageSize=1000,
                fields="*",
                pageToken=cursor or None,
            ).execute()
            return Page(response.get("files", []), response.get("nextPageToken", ""))

        return self._fetch(page_fn, f"user {self._subject} files")

    def upload_file(self, path: str, parent_id: str = "root") -> dict:
        """Upload ``path`` into folder ``parent_id`` and return the file resource."""
        size = os.path.getsize(path)
        metadata: dict[str, Any] = {"name": os.path.basename(path)}
        if parent_id:
            metadata["parents"] = [parent_id]

        def upload() -> dict:
            media = MediaFileUpload(path, mimetype="application/zip", resumable=True)
            request = self._service.files().create(
                body=metadata, media_body=media, fields="*"
            )
            response = None
            while response is None:
                status, response = request.next_chunk()
                if status is not None:
                    logger.info(
                        "CurrentFile: [%s of %s]",
                        human_bytes(status.resumable_progress), human_bytes(size),
                    )
            return response

        return retry_call(
            upload, self._policy, label=f"upload {path}", sleep=self._sleep,
            timeout=self._timeout,
        )
