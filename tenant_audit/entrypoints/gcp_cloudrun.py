"""GCP Cloud Run Job entry point for tenant audits.

Deployed as Cloud Run Jobs triggered by Cloud Scheduler.
The AUDIT_NAME env var determines which audit (or audit group) runs.

Usage:
  AUDIT_NAME=inventory python -m tenant_audit.entrypoints.gcp_cloudrun
  AUDIT_NAME=group_memberships python -m tenant_audit.entrypoints.gcp_cloudrun
  AUDIT_NAME=shared_drives python -m tenant_audit.entrypoints.gcp_cloudrun
"""

from __future__ import annotations

import logging
import os
import sys

from tenant_audit.config import load_config
from tenant_audit.logging_config import configure_logging

logger = logging.getLogger("audit.cloudrun")


def main() -> None:
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    audit_name = os.environ.get("AUDIT_NAME", "")
    if not audit_name:
        logger.error("AUDIT_NAME env var is required")
        sys.exit(1)

    logger.info("Cloud Run Job started for audit=%s", audit_name)

    try:
        from tenant_audit.runner import build_clients, resolve_audits, run_audits

        config = load_config()
        configure_logging(config.log_level, report_dir=config.reports.output_dir)
        summary = run_audits(resolve_audits(audit_name), config, build_clients(config))
    except Exception as exc:
        logger.error("Audit failed for %s: %s", audit_name, exc, exc_info=True)
        sys.exit(1)

    logger.info("Audit complete for %s: %s", audit_name, summary.results)
    if not summary.ok:
        logger.error("Audit failures for %s: %s", audit_name, summary.failures)
        sys.exit(1)


if __name__ == "__main__":
    main()
