"""CLI entry point: run, scheduler, analyze-users."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from tenant_audit.config import AuditConfig, load_config
from tenant_audit.logging_config import configure_logging
from tenant_audit.reports import analyze_users_csv
from tenant_audit.runner import AUDIT_CHOICES, build_clients, resolve_audits, run_audits

logger = logging.getLogger("audit.cli")


def apply_overrides(config: AuditConfig, args: argparse.Namespace) -> AuditConfig:
    """Layer command-line flags over the environment configuration."""
    google_changes = {}
    for flag, attr in (
        ("access_token", "access_token"),
        ("refresh_token", "refresh_token"),
        ("key_path", "sa_key_file"),
        ("customer_id", "customer_id"),
        ("client_secret", "client_secret_file"),
    ):
        value = getattr(args, flag, None)
        if value:
            google_changes[attr] = value

    report_changes = {}
    if getattr(args, "output_dir", None):
        report_changes["output_dir"] = args.output_dir
    if getattr(args, "no_upload", False):
        report_changes["upload"] = False

    return dataclasses.replace(
        config,
        google=dataclasses.replace(config.google, **google_changes),
        reports=dataclasses.replace(config.reports, **report_changes),
    )


def cmd_run(args: argparse.Namespace) -> None:
    """Run one audit (or audit group) and exit non-zero if any part failed."""
    config = apply_overrides(load_config(), args)
    configure_logging(config.log_level, report_dir=config.reports.output_dir)

    summary = run_audits(resolve_audits(args.audit), config, build_clients(config))
    logger.info("Audit results: %s", summary.results)
    if not summary.ok:
        logger.error("Audit failures: %s", summary.failures)
        sys.exit(1)


def cmd_scheduler(args: argparse.Namespace) -> None:
    """Start the APScheduler-based scheduling loop."""
    from tenant_audit.scheduler import start_scheduler

    config = apply_overrides(load_config(), args)
    configure_logging(config.log_level)
    start_scheduler(config)


def cmd_analyze_users(args: argparse.Namespace) -> None:
    """Expand the tokens column of a users.csv report, one row per token."""
    count = analyze_users_csv(args.users_csv, args.output)
    print(f"Wrote {count} token rows to {args.output}")


def _add_auth_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--access_token", "--access-token", dest="access_token",
                        help="OAuth access token")
    parser.add_argument("--refresh_token", "--refresh-token", dest="refresh_token",
                        help="OAuth refresh token")
    parser.add_argument("--client_secret", "--client-secret", dest="client_secret",
                        help="OAuth client secret JSON file")
    parser.add_argument("--key_path", "--key-path", dest="key_path",
                        help="Delegation service account key file")
    parser.add_argument("--customer_id", "--customer-id", dest="customer_id",
                        help="Workspace customer ID (default: my_customer)")
    parser.add_argument("--no-upload", dest="no_upload", action="store_true",
                        help="Keep reports local, skip zip + Drive upload")


def main() -> None:
    """Main CLI entry point."""
    configure_logging()

    parser = argparse.ArgumentParser(
        prog="tenant-audit",
        description="Google Workspace / Cloud tenant audit reports",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # run command
    run_parser = subparsers.add_parser("run", help="Run an audit once")
    run_parser.add_argument(
        "--audit", "-a",
        choices=AUDIT_CHOICES,
        default="inventory",
        help="Audit to run (default: inventory = projects, users, groups)",
    )
    run_parser.add_argument("--output-dir", "-o", dest="output_dir",
                            help="Report directory (default: output_<timestamp>)")
    _add_auth_flags(run_parser)
    run_parser.set_defaults(func=cmd_run)

    # scheduler command
    sched_parser = subparsers.add_parser("scheduler", help="Start scheduled audit loop")
    _add_auth_flags(sched_parser)
    sched_parser.set_defaults(func=cmd_scheduler)

    # analyze-users command
    analyze_parser = subparsers.add_parser(
        "analyze-users", help="Flatten the tokens of a users.csv report"
    )
    analyze_parser.add_argument("users_csv", help="users.csv produced by the users audit")
    analyze_parser.add_argument(
        "--output", "-o",
        default="userTokens.csv",
        help="Output CSV (default: userTokens.csv)",
    )
    analyze_parser.set_defaults(func=cmd_analyze_users)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
