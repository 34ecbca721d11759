"""APScheduler-based interval scheduling for recurring audits."""

from __future__ import annotations

import dataclasses
import logging

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler

from tenant_audit.config import AuditConfig, default_output_dir
from tenant_audit.logging_config import report_log

logger = logging.getLogger("audit.scheduler")


def _run_scheduled(audit_name: str, config: AuditConfig) -> None:
    """Run one audit group into a fresh report directory, with its own log file."""
    from tenant_audit.runner import build_clients, resolve_audits, run_audits

    reports = dataclasses.replace(config.reports, output_dir=default_output_dir())
    run_config = dataclasses.replace(config, reports=reports)
    with report_log(reports.output_dir):
        summary = run_audits(
            resolve_audits(audit_name), run_config, build_clients(run_config)
        )
    if summary.failures:
        logger.error("Scheduled audit %s had failures: %s", audit_name, summary.failures)


def _on_job_error(event) -> None:
    """Log job execution errors."""
    logger.error(
        "Job %s raised an exception: %s",
        event.job_id,
        event.exception,
    )


def schedule_jobs(scheduler, config: AuditConfig) -> list[str]:
    """Register one interval job per enabled audit group. Returns the job ids."""
    sched = config.scheduler
    intervals = {
        "inventory": sched.inventory_interval_hours,
        "group_memberships": sched.group_memberships_interval_hours,
        "shared_drives": sched.shared_drives_interval_hours,
        "apps_scripts": sched.apps_scripts_interval_hours,
    }
    job_ids = []
    for audit_name, hours in intervals.items():
        if hours <= 0:
            continue
        scheduler.add_job(
            _run_scheduled,
            "interval",
            hours=hours,
            args=[audit_name, config],
            id=audit_name,
            max_instances=1,
            misfire_grace_time=sched.misfire_grace_time,
        )
        job_ids.append(audit_name)
    return job_ids


def start_scheduler(config: AuditConfig) -> None:
    """Start the blocking scheduler with interval jobs for each audit group."""
    scheduler = BlockingScheduler()
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    job_ids = schedule_jobs(scheduler, config)
    logger.info("Starting scheduler with jobs: %s", job_ids)
    scheduler.start()
