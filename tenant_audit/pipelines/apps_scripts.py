"""Apps Script report: script files owned by each user, found through delegation."""

from __future__ import annotations

import logging
from typing import Optional

from tenant_audit.aggregation import aggregate, error_note
from tenant_audit.config import ConfigError
from tenant_audit.models import AppsScriptRecord
from tenant_audit.pipelines.base import BasePipeline
from tenant_audit.providers.drive import APPS_SCRIPT_QUERY

logger = logging.getLogger("audit.apps_scripts")


def build_script_records(
    user: dict, files: Optional[list[dict]], error: Optional[BaseException]
) -> list[AppsScriptRecord]:
    email = user.get("primaryEmail", "")
    if error is not None:
        return [AppsScriptRecord(owner=email, file_id="", file_name="", notes=error_note(error))]
    return [AppsScriptRecord.from_api(f, fallback_owner=email) for f in files or []]


class AppsScriptsAudit(BasePipeline):
    NAME = "apps_scripts"
    RECORD = AppsScriptRecord

    def _user_scripts(self, user: dict) -> list[dict]:
        email = user["primaryEmail"]
        logger.info("Scanning user: %s", email)
        drive = self.clients.drive_for_user(email)
        return drive.get_files(APPS_SCRIPT_QUERY)

    def collect(self) -> list[AppsScriptRecord]:
        if self.clients.drive_for_user is None:
            raise ConfigError("apps_scripts audit needs a delegation key (GOOGLE_SA_KEY_FILE)")

        directory = self.clients.apps_scripts_directory or self.clients.directory
        users = directory.query_users()
        logger.info("Looping through %d users...", len(users))
        result = self._fan_out(
            users, self.batch_sizes.apps_scripts, self._user_scripts, label="Apps Script owners"
        )
        per_user = aggregate(users, result, build_script_records)
        return [record for records in per_user for record in records]
