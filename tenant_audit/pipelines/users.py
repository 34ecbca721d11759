"""Users report: every user with the OAuth tokens they have granted."""

from __future__ import annotations

import json
from typing import Optional

from tenant_audit.aggregation import aggregate, error_note
from tenant_audit.models import UserRecord
from tenant_audit.pipelines.base import BasePipeline


def build_user_record(
    user: dict, tokens: Optional[list[dict]], error: Optional[BaseException]
) -> UserRecord:
    if error is not None:
        return UserRecord.from_api(user, notes=f"Error getting tokens: {error_note(error)}")
    return UserRecord.from_api(user, tokens=json.dumps(tokens) if tokens else "")


class UsersAudit(BasePipeline):
    NAME = "users"
    RECORD = UserRecord

    def collect(self) -> list[UserRecord]:
        users = self.clients.directory.query_users()
        result = self._fan_out(
            users,
            self.batch_sizes.user_tokens,
            lambda user: self.clients.directory.get_user_tokens(user["primaryEmail"]),
            label="Users Tokens",
        )
        return aggregate(users, result, build_user_record)
