"""Audit registry and orchestration: run pipelines side by side, then ship the reports."""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from tenant_audit.auth import DRIVE_READONLY_SCOPE, build_credentials, delegated_credentials
from tenant_audit.config import AuditConfig
from tenant_audit.pipelines.apps_scripts import AppsScriptsAudit
from tenant_audit.pipelines.base import AuditClients, BasePipeline
from tenant_audit.pipelines.group_memberships import GroupMembershipsAudit
from tenant_audit.pipelines.groups import GroupsAudit
from tenant_audit.pipelines.projects import ProjectsAudit
from tenant_audit.pipelines.shared_drives import SharedDrivesAudit
from tenant_audit.pipelines.users import UsersAudit
from tenant_audit.providers.cloud_resource_manager import ProjectsClient
from tenant_audit.providers.directory import DirectoryClient
from tenant_audit.providers.drive import DriveClient
from tenant_audit.providers.iam import IamClient
from tenant_audit.providers.services import ServiceFactory
from tenant_audit.reports import zip_directory

logger = logging.getLogger("audit.runner")

AUDIT_REGISTRY: dict[str, type[BasePipeline]] = {
    "projects": ProjectsAudit,
    "users": UsersAudit,
    "groups": GroupsAudit,
    "group_memberships": GroupMembershipsAudit,
    "shared_drives": SharedDrivesAudit,
    "apps_scripts": AppsScriptsAudit,
}

AUDIT_GROUPS: dict[str, list[str]] = {
    "inventory": ["projects", "users", "groups"],
    "all": list(AUDIT_REGISTRY),
}

AUDIT_CHOICES = [*AUDIT_GROUPS, *AUDIT_REGISTRY]


@dataclass
class RunSummary:
    results: dict[str, int] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)
    archive: Optional[str] = None
    uploaded_file: Optional[dict] = None

    @property
    def ok(self) -> bool:
        return not self.failures


def resolve_audits(name: str) -> list[str]:
    if name in AUDIT_GROUPS:
        return list(AUDIT_GROUPS[name])
    if name in AUDIT_REGISTRY:
        return [name]
    raise ValueError(f"Unknown audit {name!r}, expected one of {AUDIT_CHOICES}")


def build_clients(config: AuditConfig, credentials: Any = None) -> AuditClients:
    """Create the API adapters for one run."""
    credentials = credentials or build_credentials(config.google)
    services = ServiceFactory(credentials)
    retry = config.retry
    timeout = config.fetch_timeout

    scripts_retry = replace(
        retry,
        directory_sleep_seconds=retry.apps_scripts_sleep_seconds,
        drive_sleep_seconds=retry.apps_scripts_sleep_seconds,
    )

    drive_for_user = None
    key_file = config.google.sa_key_file
    if key_file:
        def drive_for_user(email: str) -> DriveClient:
            creds = delegated_credentials(key_file, email, [DRIVE_READONLY_SCOPE])
            return DriveClient(
                ServiceFactory(creds), scripts_retry, subject=email, timeout=timeout
            )

    return AuditClients(
        directory=DirectoryClient(
            services, retry, customer=config.google.customer_id, timeout=timeout
        ),
        apps_scripts_directory=DirectoryClient(
            services, scripts_retry, customer=config.google.customer_id, timeout=timeout
        ),
        projects=ProjectsClient(
            credentials, retry, org_id=config.google.org_id, timeout=timeout
        ),
        iam=IamClient(services, retry, timeout=timeout),
        drive=DriveClient(services, retry, timeout=timeout),
        drive_for_user=drive_for_user,
    )


def run_audits(
    names: list[str],
    config: AuditConfig,
    clients: AuditClients,
) -> RunSummary:
    """Run the named pipelines concurrently.

    A pipeline that fails is logged and reported in the summary; the
    others carry on. Reports are zipped and uploaded afterwards when
    enabled and at least one pipeline succeeded.
    """
    timer = time.monotonic()
    summary = RunSummary()
    os.makedirs(config.reports.output_dir, exist_ok=True)
    logger.info("Version: %s", config.version)

    pipelines = [AUDIT_REGISTRY[name](config, clients) for name in names]
    with ThreadPoolExecutor(max_workers=max(len(pipelines), 1)) as pool:
        futures = {pool.submit(p.run_with_tracking): p.NAME for p in pipelines}
        for future in as_completed(futures):
            name = futures[future]
            try:
                summary.results[name] = future.result()
            except Exception as exc:
                summary.failures[name] = str(exc) or type(exc).__name__

    if config.reports.upload and summary.results:
        upload_report(config, clients, summary)

    logger.info(
        "Audit run finished: %d succeeded, %d failed",
        len(summary.results), len(summary.failures),
        extra={"duration_s": round(time.monotonic() - timer, 3)},
    )
    return summary


def upload_report(config: AuditConfig, clients: AuditClients, summary: RunSummary) -> None:
    """Zip the report directory and upload the archive to Drive."""
    timer = time.monotonic()
    try:
        summary.archive = zip_directory(config.reports.output_dir)
        logger.info("Uploading zipped file to Google Drive...")
        uploaded = clients.drive.upload_file(summary.archive, config.reports.drive_folder_id)
    except Exception as exc:
        logger.error("Report upload failed: %s", exc)
        summary.failures["upload"] = str(exc) or type(exc).__name__
        return
    summary.uploaded_file = uploaded
    logger.info(
        "Uploaded file %s (%s)", uploaded.get("name"), uploaded.get("webViewLink"),
        extra={"duration_s": round(time.monotonic() - timer, 3)},
    )
