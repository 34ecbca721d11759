"""Abstract base class for all audit pipelines."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from tenant_audit.batching import BatchResult, run_batches
from tenant_audit.config import AuditConfig
from tenant_audit.reports import write_records

logger = logging.getLogger("audit.pipeline")


@dataclass
class AuditClients:
    """API adapters shared by the pipelines of one run."""

    directory: Any = None
    apps_scripts_directory: Any = None
    projects: Any = None
    iam: Any = None
    drive: Any = None
    drive_for_user: Optional[Callable[[str], Any]] = None


class BasePipeline(ABC):
    """Each pipeline overrides collect() and declares NAME and RECORD."""

    NAME: str = ""
    RECORD: type = object

    def __init__(self, config: AuditConfig, clients: AuditClients) -> None:
        self.config = config
        self.clients = clients
        self.batch_sizes = config.batch_sizes
        self.report_dir = config.reports.output_dir

    @abstractmethod
    def collect(self) -> list:
        """Fetch and assemble the report records, one per top-level item."""

    def run(self) -> int:
        records = self.collect()
        return write_records(self.report_dir, records, self.RECORD)

    def run_with_tracking(self) -> int:
        """Wrap run() with timing and outcome logging. Returns rows written."""
        timer = time.monotonic()
        logger.info("Getting all %s...", self.NAME, extra={"pipeline": self.NAME})
        try:
            total = self.run()
        except Exception as exc:
            logger.error(
                "Audit %s failed: %s", self.NAME, exc,
                extra={
                    "pipeline": self.NAME,
                    "duration_s": round(time.monotonic() - timer, 3),
                },
            )
            raise
        logger.info(
            "Audit %s completed", self.NAME,
            extra={
                "pipeline": self.NAME,
                "records": total,
                "duration_s": round(time.monotonic() - timer, 3),
            },
        )
        return total

    def _fan_out(
        self,
        items: Sequence[Any],
        batch_size: int,
        worker: Callable[[Any], Any],
        label: str,
    ) -> BatchResult:
        result = run_batches(
            items, batch_size, worker, label=label, timeout=self.config.batch_timeout
        )
        if result.failed:
            logger.warning(
                "%s: %d of %d items failed", label, len(result.failed), len(items),
                extra={"pipeline": self.NAME, "items": len(result.failed)},
            )
        return result
