"""Report records: one dataclass per CSV report, with its fixed header row."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional


def _bool(value: Any) -> str:
    return "true" if value else "false"


@dataclass(frozen=True)
class ServiceAccount:
    email: str
    oauth_2_client_id: str
    project_id: str
    unique_id: str

    @classmethod
    def from_api(cls, account: dict) -> "ServiceAccount":
        return cls(
            email=account.get("email", ""),
            oauth_2_client_id=account.get("oauth2ClientId", ""),
            project_id=account.get("projectId", ""),
            unique_id=account.get("uniqueId", ""),
        )


@dataclass(frozen=True)
class ProjectRecord:
    FILENAME: ClassVar[str] = "projects.csv"
    HEADERS: ClassVar[tuple[str, ...]] = (
        "project_id", "project_number", "project_name", "service_accounts", "notes",
    )

    project_id: str
    project_number: str
    project_name: str
    service_accounts: Optional[list[ServiceAccount]] = None
    notes: str = ""

    def to_row(self) -> list[str]:
        accounts = (
            json.dumps([vars(a) for a in self.service_accounts])
            if self.service_accounts is not None
            else "null"
        )
        return [
            self.project_id, self.project_number, self.project_name,
            accounts, self.notes,
        ]


@dataclass(frozen=True)
class UserRecord:
    FILENAME: ClassVar[str] = "users.csv"
    HEADERS: ClassVar[tuple[str, ...]] = (
        "user_id", "primary_email", "archived", "is_admin", "is_delegated_admin",
        "is_suspended", "last_login_time", "is_mailbox_setup", "tokens", "notes",
    )

    user_id: str
    primary_email: str
    archived: bool = False
    is_admin: bool = False
    is_delegated_admin: bool = False
    is_suspended: bool = False
    last_login_time: str = ""
    is_mailbox_setup: bool = False
    tokens: str = ""  # JSON array of token resources, empty when unknown
    notes: str = ""

    @classmethod
    def from_api(cls, user: dict, tokens: str = "", notes: str = "") -> "UserRecord":
        return cls(
            user_id=user.get("id", ""),
            primary_email=user.get("primaryEmail", ""),
            archived=user.get("archived", False),
            is_admin=user.get("isAdmin", False),
            is_delegated_admin=user.get("isDelegatedAdmin", False),
            is_suspended=user.get("suspended", False),
            last_login_time=user.get("lastLoginTime", ""),
            is_mailbox_setup=user.get("isMailboxSetup", False),
            tokens=tokens,
            notes=notes,
        )

    def to_row(self) -> list[str]:
        return [
            self.user_id,
            self.primary_email,
            _bool(self.archived),
            _bool(self.is_admin),
            _bool(self.is_delegated_admin),
            _bool(self.is_suspended),
            self.last_login_time,
            _bool(self.is_mailbox_setup),
            self.tokens,
            self.notes,
        ]


@dataclass(frozen=True)
class GroupRecord:
    FILENAME: ClassVar[str] = "groups.csv"
    HEADERS: ClassVar[tuple[str, ...]] = ("email", "name", "member_count", "admin_created")

    email: str
    name: str
    member_count: int = 0
    admin_created: bool = False

    @classmethod
    def from_api(cls, group: dict) -> "GroupRecord":
        return cls(
            email=group.get("email", ""),
            name=group.get("name", ""),
            member_count=int(group.get("directMembersCount", 0) or 0),
            admin_created=group.get("adminCreated", False),
        )

    def to_row(self) -> list[str]:
        return [self.email, self.name, str(self.member_count), _bool(self.admin_created)]


@dataclass(frozen=True)
class GroupMembershipRecord:
    FILENAME: ClassVar[str] = "groupsMap.csv"
    HEADERS: ClassVar[tuple[str, ...]] = (
        "GROUP_EMAIL", "MEMBERS_COUNT", "OWNER_COUNT", "OWNERS", "MANAGER_COUNT",
        "MANAGERS", "SUB_COUNT", "SUBSCRIPTIONS", "NOTES",
    )

    group_email: str
    members_count: int = 0
    owners: list[str] = field(default_factory=list)
    managers: list[str] = field(default_factory=list)
    subscriptions: list[str] = field(default_factory=list)
    notes: str = ""

    def to_row(self) -> list[str]:
        return [
            self.group_email,
            str(self.members_count),
            str(len(self.owners)),
            ",".join(self.owners),
            str(len(self.managers)),
            ",".join(self.managers),
            str(len(self.subscriptions)),
            ",".join(self.subscriptions),
            self.notes,
        ]


DRIVE_ROLES = ("owner", "organizer", "fileOrganizer", "writer", "commenter", "reader")


@dataclass(frozen=True)
class SharedDriveRecord:
    FILENAME: ClassVar[str] = "sharedDrivesMap.csv"
    HEADERS: ClassVar[tuple[str, ...]] = (
        "DRIVE_ID", "DRIVE_NAME", "OWNER_COUNT", "ORGANIZER_COUNT",
        "FILE_ORGANIZER_COUNT", "WRITER_COUNT", "COMMENTER_COUNT", "READER_COUNT",
        "GROUPS", "DOMAIN", "NOTES",
    )

    drive_id: str
    drive_name: str
    role_counts: dict[str, int] = field(default_factory=dict)
    groups: dict[str, str] = field(default_factory=dict)  # group email -> role
    domain: str = ""
    notes: str = ""

    @classmethod
    def from_permissions(
        cls, drive: dict, permissions: Optional[list[dict]], notes: str = ""
    ) -> "SharedDriveRecord":
        counts = {role: 0 for role in DRIVE_ROLES}
        groups: dict[str, str] = {}
        domain = ""
        for permission in permissions or []:
            role = permission.get("role", "")
            if role in counts:
                counts[role] += 1
            kind = permission.get("type")
            if kind == "group":
                groups[permission.get("emailAddress", "")] = role
            elif kind == "domain":
                domain = permission.get("domain", "")
        return cls(
            drive_id=drive.get("id", ""),
            drive_name=drive.get("name", ""),
            role_counts=counts,
            groups=groups,
            domain=domain,
            notes=notes,
        )

    def to_row(self) -> list[str]:
        counts = [str(self.role_counts.get(role, 0)) for role in DRIVE_ROLES]
        groups = json.dumps(self.groups) if self.groups else ""
        return [self.drive_id, self.drive_name, *counts, groups, self.domain, self.notes]


@dataclass(frozen=True)
class AppsScriptRecord:
    FILENAME: ClassVar[str] = "userOwnedGoogleAppsScripts.csv"
    HEADERS: ClassVar[tuple[str, ...]] = (
        "OWNER", "FILE_ID", "FILE_NAME", "CREATED", "LAST_VIEWED", "SHARED",
        "TEAM_DRIVE_ID", "NOTES",
    )

    owner: str
    file_id: str
    file_name: str
    created: str = ""
    last_viewed: str = ""
    shared: bool = False
    team_drive_id: str = ""
    notes: str = ""

    @classmethod
    def from_api(cls, file: dict, fallback_owner: str = "") -> "AppsScriptRecord":
        owners = file.get("owners") or []
        owner = owners[0].get("emailAddress", fallback_owner) if owners else fallback_owner
        return cls(
            owner=owner,
            file_id=file.get("id", ""),
            file_name=file.get("name", ""),
            created=file.get("createdTime", ""),
            last_viewed=file.get("viewedByMeTime", ""),
            shared=file.get("shared", False),
            team_drive_id=file.get("teamDriveId", ""),
        )

    def to_row(self) -> list[str]:
        return [
            self.owner, self.file_id, self.file_name, self.created,
            self.last_viewed, _bool(self.shared), self.team_drive_id, self.notes,
        ]


@dataclass(frozen=True)
class UserTokenRecord:
    FILENAME: ClassVar[str] = "userTokens.csv"
    HEADERS: ClassVar[tuple[str, ...]] = (
        "userEmail", "archived", "isAdmin", "isDelegatedAdmin", "suspended",
        "lastLoginTime", "isMailboxSetup", "clientID", "displayText", "kind", "scopes",
    )

    user_email: str
    archived: str
    is_admin: str
    is_delegated_admin: str
    suspended: str
    last_login_time: str
    is_mailbox_setup: str
    client_id: str
    display_text: str
    kind: str
    scopes: list[str] = field(default_factory=list)

    def to_row(self) -> list[str]:
        return [
            self.user_email, self.archived, self.is_admin, self.is_delegated_admin,
            self.suspended, self.last_login_time, self.is_mailbox_setup,
            self.client_id, self.display_text, self.kind,
            "[" + " ".join(self.scopes) + "]",
        ]
