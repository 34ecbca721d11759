from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tenant_audit.config import ConfigError, default_output_dir, load_config
from tenant_audit.secrets import resolve_secret, secret_file, secret_version_name

ENV_VARS = (
    "GOOGLE_CUSTOMER_ID", "GOOGLE_ADMIN_EMAIL", "GOOGLE_SA_KEY_FILE",
    "GOOGLE_ACCESS_TOKEN", "GOOGLE_REFRESH_TOKEN", "GOOGLE_CLIENT_SECRET_FILE",
    "GCP_ORG_ID", "DIRECTORY_SLEEP_SECONDS", "SUBSCRIPTIONS_SLEEP_SECONDS",
    "RESOURCE_MANAGER_SLEEP_SECONDS", "IAM_SLEEP_SECONDS", "DRIVE_SLEEP_SECONDS",
    "APPS_SCRIPTS_SLEEP_SECONDS",
    "SERVER_ERROR_SLEEP_SECONDS", "RETRY_MAX_TRIES", "QUOTA_MAX_TRIES",
    "BATCH_SIZE_PROJECT_SERVICE_ACCOUNTS", "BATCH_SIZE_USER_TOKENS", "BATCH_SIZE_GROUPS",
    "BATCH_SIZE_GROUP_MEMBERSHIPS", "BATCH_SIZE_SHARED_DRIVE_PERMISSIONS",
    "BATCH_SIZE_APPS_SCRIPTS", "AUDIT_OUTPUT_DIR", "AUDIT_UPLOAD", "AUDIT_DRIVE_FOLDER_ID",
    "SCHEDULE_INVENTORY_HOURS", "SCHEDULE_GROUP_MEMBERSHIPS_HOURS",
    "SCHEDULE_SHARED_DRIVES_HOURS", "SCHEDULE_APPS_SCRIPTS_HOURS",
    "SCHEDULE_MISFIRE_GRACE_TIME", "FETCH_TIMEOUT_SECONDS", "BATCH_TIMEOUT_SECONDS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    config = load_config()

    assert config.google.customer_id == "my_customer"
    assert config.google.sa_key_file is None
    assert config.retry.directory_sleep_seconds == 2
    assert config.retry.iam_sleep_seconds == 60
    assert config.retry.drive_sleep_seconds == 3
    assert config.retry.apps_scripts_sleep_seconds == 3
    assert config.retry.max_tries == 10
    assert config.retry.quota_max_tries is None
    assert config.batch_sizes.project_service_accounts == 100
    assert config.batch_sizes.groups == 1000
    assert config.batch_sizes.shared_drive_permissions == 10
    assert config.reports.upload is True
    assert config.reports.drive_folder_id == "root"
    assert config.reports.output_dir.startswith("output_")
    assert config.fetch_timeout is None
    assert config.scheduler.apps_scripts_interval_hours == 0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("GOOGLE_CUSTOMER_ID", "C0abc123")
    monkeypatch.setenv("IAM_SLEEP_SECONDS", "5")
    monkeypatch.setenv("APPS_SCRIPTS_SLEEP_SECONDS", "4")
    monkeypatch.setenv("RETRY_MAX_TRIES", "unbounded")
    monkeypatch.setenv("QUOTA_MAX_TRIES", "50")
    monkeypatch.setenv("BATCH_SIZE_GROUPS", "250")
    monkeypatch.setenv("AUDIT_OUTPUT_DIR", "reports/today")
    monkeypatch.setenv("AUDIT_UPLOAD", "false")
    monkeypatch.setenv("FETCH_TIMEOUT_SECONDS", "900")

    config = load_config()

    assert config.google.customer_id == "C0abc123"
    assert config.retry.iam_sleep_seconds == 5.0
    assert config.retry.apps_scripts_sleep_seconds == 4.0
    assert config.retry.max_tries is None
    assert config.retry.quota_max_tries == 50
    assert config.batch_sizes.groups == 250
    assert config.reports.output_dir == "reports/today"
    assert config.reports.upload is False
    assert config.fetch_timeout == 900.0


def test_retry_policy_from_settings(monkeypatch):
    monkeypatch.setenv("SERVER_ERROR_SLEEP_SECONDS", "30")
    policy = load_config().retry.policy(3)
    assert policy.sleep_seconds == 3
    assert policy.server_error_sleep_seconds == 30.0
    assert policy.max_tries == 10


def test_non_integer_rejected(monkeypatch):
    monkeypatch.setenv("BATCH_SIZE_USER_TOKENS", "lots")
    with pytest.raises(ConfigError, match="BATCH_SIZE_USER_TOKENS"):
        load_config()


def test_zero_batch_size_rejected(monkeypatch):
    monkeypatch.setenv("BATCH_SIZE_APPS_SCRIPTS", "0")
    with pytest.raises(ConfigError, match="apps_scripts"):
        load_config()


def test_default_output_dir_uses_utc_timestamp():
    now = datetime(2024, 3, 9, 7, 5, 1, tzinfo=timezone.utc)
    assert default_output_dir(now) == "output_2024-03-09T07-05-01Z"


def test_plain_secret_passes_through():
    assert resolve_secret("ya29.token") == "ya29.token"


@pytest.mark.parametrize(
    "ref, expected",
    [
        ("projects/p/secrets/token/versions/3", "projects/p/secrets/token/versions/3"),
        ("token", "projects/audit-prj/secrets/token/versions/latest"),
        ("token/versions/7", "projects/audit-prj/secrets/token/versions/7"),
    ],
)
def test_secret_version_name(ref, expected):
    assert secret_version_name(ref, "audit-prj") == expected


def test_secret_version_name_needs_project():
    with pytest.raises(ValueError, match="GCP_PROJECT_ID"):
        secret_version_name("token")


def test_literal_key_file_is_kept(monkeypatch):
    monkeypatch.setenv("GOOGLE_SA_KEY_FILE", "/etc/audit/key.json")
    assert load_config().google.sa_key_file == "/etc/audit/key.json"
    assert secret_file("/etc/audit/key.json") == "/etc/audit/key.json"
