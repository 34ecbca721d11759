"""Projects report: every GCP project with its service accounts."""

from __future__ import annotations

import logging
from typing import Optional

from tenant_audit.aggregation import aggregate, error_note
from tenant_audit.models import ProjectRecord, ServiceAccount
from tenant_audit.pipelines.base import BasePipeline

logger = logging.getLogger("audit.projects")


def build_project_record(
    project: dict,
    accounts: Optional[list[ServiceAccount]],
    error: Optional[BaseException],
) -> ProjectRecord:
    return ProjectRecord(
        project_id=project.get("projectId", ""),
        project_number=str(project.get("projectNumber", "")),
        project_name=project.get("name", ""),
        service_accounts=None if error is not None else list(accounts or []),
        notes=error_note(error),
    )


class ProjectsAudit(BasePipeline):
    NAME = "projects"
    RECORD = ProjectRecord

    def collect(self) -> list[ProjectRecord]:
        projects = self.clients.projects.get_all_projects()

        logger.info("Getting all service accounts for all projects")
        result = self._fan_out(
            projects,
            self.batch_sizes.project_service_accounts,
            lambda project: self.clients.iam.get_project_service_accounts(project["projectId"]),
            label="Get ServiceAccounts",
        )
        return aggregate(projects, result, build_project_record)
