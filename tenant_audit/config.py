"""Configuration via environment variables, built once per process.

Supports:
  - Environment variables / .env files (local runs)
  - GCP Secret Manager references (gcp-secret://name) for OAuth tokens,
    the delegation key file and the OAuth client secret file
  - Workload Identity / Application Default Credentials (no key files needed)

Every pipeline receives the AuditConfig value explicitly; nothing reads
process-wide state after startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv

from tenant_audit import __version__
from tenant_audit.retry import (
    DEFAULT_MAX_TRIES,
    DEFAULT_SERVER_ERROR_SLEEP,
    RetryPolicy,
)
from tenant_audit.secrets import resolve_secret, secret_file


class ConfigError(ValueError):
    """Required configuration is missing or malformed."""


@dataclass(frozen=True)
class GoogleConfig:
    customer_id: str = "my_customer"
    admin_email: Optional[str] = None  # subject for domain-wide delegation
    sa_key_file: Optional[str] = None  # None = OAuth tokens or ADC
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    client_secret_file: Optional[str] = None
    org_id: Optional[str] = None  # restricts the project search when set


@dataclass(frozen=True)
class RetrySettings:
    directory_sleep_seconds: float = 2
    subscriptions_sleep_seconds: float = 2
    resource_manager_sleep_seconds: float = 2
    iam_sleep_seconds: float = 60
    drive_sleep_seconds: float = 3
    apps_scripts_sleep_seconds: float = 3  # Directory and Drive calls of the Apps Script audit
    server_error_sleep_seconds: float = DEFAULT_SERVER_ERROR_SLEEP
    max_tries: Optional[int] = DEFAULT_MAX_TRIES
    quota_max_tries: Optional[int] = None  # None keeps quota retries unbounded

    def policy(self, sleep_seconds: float) -> RetryPolicy:
        return RetryPolicy(
            sleep_seconds=sleep_seconds,
            server_error_sleep_seconds=self.server_error_sleep_seconds,
            max_tries=self.max_tries,
            quota_max_tries=self.quota_max_tries,
        )


@dataclass(frozen=True)
class BatchSizes:
    project_service_accounts: int = 100
    user_tokens: int = 100
    groups: int = 1000
    group_memberships: int = 100
    shared_drive_permissions: int = 10
    apps_scripts: int = 10


@dataclass(frozen=True)
class ReportConfig:
    output_dir: str
    upload: bool = True
    drive_folder_id: str = "root"


@dataclass(frozen=True)
class SchedulerConfig:
    inventory_interval_hours: int = 24
    group_memberships_interval_hours: int = 24
    shared_drives_interval_hours: int = 24
    apps_scripts_interval_hours: int = 0  # 0 = not scheduled
    misfire_grace_time: int = 300


@dataclass(frozen=True)
class AuditConfig:
    reports: ReportConfig
    google: GoogleConfig = field(default_factory=GoogleConfig)
    retry: RetrySettings = field(default_factory=RetrySettings)
    batch_sizes: BatchSizes = field(default_factory=BatchSizes)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    fetch_timeout: Optional[float] = None  # None = no deadline
    batch_timeout: Optional[float] = None
    log_level: str = "INFO"
    version: str = __version__


def default_output_dir(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return "output_" + now.strftime("%Y-%m-%dT%H-%M-%SZ")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def _env_optional_int(name: str, default: Optional[int]) -> Optional[int]:
    """Integer env var where "unbounded" (or "none") maps to None."""
    raw = os.environ.get(name, "")
    if not raw:
        return default
    if raw.lower() in ("unbounded", "none"):
        return None
    return _env_int(name, 0)


def _env_secret(name: str) -> Optional[str]:
    raw = os.environ.get(name, "")
    return resolve_secret(raw) if raw else None


def _env_secret_file(name: str) -> Optional[str]:
    raw = os.environ.get(name, "")
    return secret_file(raw) if raw else None


def load_config() -> AuditConfig:
    """Load configuration from environment variables (and .env if present)."""
    load_dotenv()

    google = GoogleConfig(
        customer_id=os.environ.get("GOOGLE_CUSTOMER_ID", "my_customer"),
        admin_email=os.environ.get("GOOGLE_ADMIN_EMAIL") or None,
        sa_key_file=_env_secret_file("GOOGLE_SA_KEY_FILE"),
        access_token=_env_secret("GOOGLE_ACCESS_TOKEN"),
        refresh_token=_env_secret("GOOGLE_REFRESH_TOKEN"),
        client_secret_file=_env_secret_file("GOOGLE_CLIENT_SECRET_FILE"),
        org_id=os.environ.get("GCP_ORG_ID") or None,
    )

    retry = RetrySettings(
        directory_sleep_seconds=_env_float("DIRECTORY_SLEEP_SECONDS", 2),
        subscriptions_sleep_seconds=_env_float("SUBSCRIPTIONS_SLEEP_SECONDS", 2),
        resource_manager_sleep_seconds=_env_float("RESOURCE_MANAGER_SLEEP_SECONDS", 2),
        iam_sleep_seconds=_env_float("IAM_SLEEP_SECONDS", 60),
        drive_sleep_seconds=_env_float("DRIVE_SLEEP_SECONDS", 3),
        apps_scripts_sleep_seconds=_env_float("APPS_SCRIPTS_SLEEP_SECONDS", 3),
        server_error_sleep_seconds=_env_float(
            "SERVER_ERROR_SLEEP_SECONDS", DEFAULT_SERVER_ERROR_SLEEP
        ),
        max_tries=_env_optional_int("RETRY_MAX_TRIES", DEFAULT_MAX_TRIES),
        quota_max_tries=_env_optional_int("QUOTA_MAX_TRIES", None),
    )

    defaults = BatchSizes()
    batch_sizes = BatchSizes(
        project_service_accounts=_env_int(
            "BATCH_SIZE_PROJECT_SERVICE_ACCOUNTS", defaults.project_service_accounts
        ),
        user_tokens=_env_int("BATCH_SIZE_USER_TOKENS", defaults.user_tokens),
        groups=_env_int("BATCH_SIZE_GROUPS", defaults.groups),
        group_memberships=_env_int("BATCH_SIZE_GROUP_MEMBERSHIPS", defaults.group_memberships),
        shared_drive_permissions=_env_int(
            "BATCH_SIZE_SHARED_DRIVE_PERMISSIONS", defaults.shared_drive_permissions
        ),
        apps_scripts=_env_int("BATCH_SIZE_APPS_SCRIPTS", defaults.apps_scripts),
    )
    for name, value in vars(batch_sizes).items():
        if value < 1:
            raise ConfigError(f"batch size {name} must be >= 1, got {value}")

    reports = ReportConfig(
        output_dir=os.environ.get("AUDIT_OUTPUT_DIR") or default_output_dir(),
        upload=os.environ.get("AUDIT_UPLOAD", "true").lower() != "false",
        drive_folder_id=os.environ.get("AUDIT_DRIVE_FOLDER_ID", "root"),
    )

    scheduler = SchedulerConfig(
        inventory_interval_hours=_env_int("SCHEDULE_INVENTORY_HOURS", 24),
        group_memberships_interval_hours=_env_int("SCHEDULE_GROUP_MEMBERSHIPS_HOURS", 24),
        shared_drives_interval_hours=_env_int("SCHEDULE_SHARED_DRIVES_HOURS", 24),
        apps_scripts_interval_hours=_env_int("SCHEDULE_APPS_SCRIPTS_HOURS", 0),
        misfire_grace_time=_env_int("SCHEDULE_MISFIRE_GRACE_TIME", 300),
    )

    return AuditConfig(
        reports=reports,
        google=google,
        retry=retry,
        batch_sizes=batch_sizes,
        scheduler=scheduler,
        fetch_timeout=_env_float("FETCH_TIMEOUT_SECONDS", None),
        batch_timeout=_env_float("BATCH_TIMEOUT_SECONDS", None),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )
