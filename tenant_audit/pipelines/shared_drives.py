"""Shared drives report: permission role counts and group grants per drive."""

from __future__ import annotations

import logging

from tenant_audit.aggregation import aggregate, error_note
from tenant_audit.models import SharedDriveRecord
from tenant_audit.pipelines.base import BasePipeline

logger = logging.getLogger("audit.shared_drives")


class SharedDrivesAudit(BasePipeline):
    NAME = "shared_drives"
    RECORD = SharedDriveRecord

    def collect(self) -> list[SharedDriveRecord]:
        drives = self.clients.drive.get_all_drives()
        logger.info("Found %d shared drives", len(drives))

        result = self._fan_out(
            drives,
            self.batch_sizes.shared_drive_permissions,
            lambda drive: self.clients.drive.get_file_permissions(drive["id"]),
            label="Shared drive permissions",
        )
        return aggregate(
            drives,
            result,
            lambda drive, permissions, error: SharedDriveRecord.from_permissions(
                drive, permissions, notes=error_note(error)
            ),
        )
