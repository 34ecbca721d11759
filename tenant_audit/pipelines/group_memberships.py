"""Group memberships report: owners, managers and parent groups of each group."""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from tenant_audit.aggregation import aggregate, error_note
from tenant_audit.models import GroupMembershipRecord
from tenant_audit.pipelines.base import BasePipeline

logger = logging.getLogger("audit.group_memberships")


class Membership(NamedTuple):
    owners: list[str]
    managers: list[str]
    subscriptions: list[str]


def _emails(entries: list[dict]) -> list[str]:
    return [e.get("email") or e.get("id", "") for e in entries]


def sort_by_member_count(groups: list[dict]) -> list[dict]:
    """Largest groups first so the slow lookups start early."""
    return sorted(groups, key=lambda g: int(g.get("directMembersCount", 0) or 0), reverse=True)


def build_membership_record(
    group: dict, membership: Optional[Membership], error: Optional[BaseException]
) -> GroupMembershipRecord:
    members_count = int(group.get("directMembersCount", 0) or 0)
    if error is not None or membership is None:
        return GroupMembershipRecord(
            group_email=group.get("email", ""),
            members_count=members_count,
            notes=error_note(error),
        )
    return GroupMembershipRecord(
        group_email=group.get("email", ""),
        members_count=members_count,
        owners=membership.owners,
        managers=membership.managers,
        subscriptions=membership.subscriptions,
    )


class GroupMembershipsAudit(BasePipeline):
    NAME = "group_memberships"
    RECORD = GroupMembershipRecord

    def _membership(self, group: dict) -> Membership:
        directory = self.clients.directory
        email = group["email"]
        return Membership(
            owners=_emails(directory.get_group_members(email, "OWNER")),
            managers=_emails(directory.get_group_members(email, "MANAGER")),
            subscriptions=_emails(directory.get_subscriptions(email)),
        )

    def collect(self) -> list[GroupMembershipRecord]:
        groups = self.clients.directory.query_groups()
        logger.info("Total of %d groups found...", len(groups))
        groups = sort_by_member_count(groups)

        result = self._fan_out(
            groups, self.batch_sizes.group_memberships, self._membership, label="Group memberships"
        )
        return aggregate(groups, result, build_membership_record)
