"""Groups report: flat listing of every group."""

from __future__ import annotations

from typing import Optional

from tenant_audit.aggregation import aggregate
from tenant_audit.models import GroupRecord
from tenant_audit.pipelines.base import BasePipeline


def _keep_or_rebuild(
    group: dict, record: Optional[GroupRecord], error: Optional[BaseException]
) -> GroupRecord:
    return record if error is None and record is not None else GroupRecord.from_api(group)


class GroupsAudit(BasePipeline):
    NAME = "groups"
    RECORD = GroupRecord

    def collect(self) -> list[GroupRecord]:
        groups = self.clients.directory.query_groups()
        result = self._fan_out(
            groups, self.batch_sizes.groups, GroupRecord.from_api, label="Groups"
        )
        return aggregate(groups, result, _keep_or_rebuild)
