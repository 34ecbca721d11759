"""CSV report writing, report directory packaging and token analysis."""

from __future__ import annotations

import csv
import json
import logging
import os
import time
import zipfile
from typing import Iterable, Optional, Sequence

from tenant_audit.models import UserRecord, UserTokenRecord

logger = logging.getLogger("audit.reports")


def write_report(path: str, headers: Sequence[str], rows: Iterable[Sequence[str]]) -> int:
    """Write a header row followed by ``rows``. Returns the number of data rows."""
    timer = time.monotonic()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(headers)
        for row in rows:
            writer.writerow(row)
            count += 1
    logger.info(
        "Finished writing %d rows to %s", count, path,
        extra={"records": count, "duration_s": round(time.monotonic() - timer, 3)},
    )
    return count


def write_records(report_dir: str, records: Sequence, record_cls: Optional[type] = None) -> int:
    """Write records of one report type into ``report_dir`` under its FILENAME."""
    cls = record_cls or (type(records[0]) if records else None)
    if cls is None:
        raise ValueError("record_cls is required when there are no records")
    path = os.path.join(report_dir, cls.FILENAME)
    return write_report(path, cls.HEADERS, (r.to_row() for r in records))


def zip_directory(source_dir: str, destination: Optional[str] = None) -> str:
    """Zip every non-hidden file below ``source_dir``. Returns the archive path."""
    source_dir = os.path.normpath(source_dir)
    destination = destination or source_dir + ".zip"
    base = os.path.dirname(source_dir)

    with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for dirpath, dirnames, filenames in os.walk(source_dir):
            dirnames.sort()
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                if name.startswith("."):
                    logger.info("Skipping file: %s", path)
                    continue
                logger.info("Zipping: %s", path)
                archive.write(path, arcname=os.path.relpath(path, base))

    logger.info("Archive created successfully: %s", destination)
    return destination


def expand_user_tokens(rows: Iterable[dict]) -> list[UserTokenRecord]:
    """One record per OAuth token found in the ``tokens`` column of users.csv rows.

    Users without tokens produce no record.
    """
    records: list[UserTokenRecord] = []
    for row in rows:
        raw = row.get("tokens") or ""
        if not raw or raw == "null":
            continue
        try:
            tokens = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"Malformed tokens for {row.get('primary_email', '?')}: {exc}"
            ) from exc
        for token in tokens or []:
            records.append(UserTokenRecord(
                user_email=row.get("primary_email", ""),
                archived=row.get("archived", ""),
                is_admin=row.get("is_admin", ""),
                is_delegated_admin=row.get("is_delegated_admin", ""),
                suspended=row.get("is_suspended", ""),
                last_login_time=row.get("last_login_time", ""),
                is_mailbox_setup=row.get("is_mailbox_setup", ""),
                client_id=token.get("clientId", ""),
                display_text=token.get("displayText", ""),
                kind=token.get("kind", ""),
                scopes=list(token.get("scopes") or []),
            ))
    return records


def analyze_users_csv(users_csv: str, output_csv: str) -> int:
    """Flatten the tokens of a users.csv report into one row per token."""
    with open(users_csv, newline="", encoding="utf-8") as fh:
        reader = csv.DictReader(fh)
        missing = {"primary_email", "tokens"} - set(reader.fieldnames or ())
        if missing:
            raise ValueError(
                f"{users_csv} is not a {UserRecord.FILENAME} report, missing {sorted(missing)}"
            )
        records = expand_user_tokens(reader)
    return write_report(output_csv, UserTokenRecord.HEADERS, (r.to_row() for r in records))
