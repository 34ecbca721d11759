"""Credential construction for the audit run.

Three sources, tried in order:
  - a service account key file (optionally impersonating GOOGLE_ADMIN_EMAIL
    through domain-wide delegation)
  - OAuth user tokens (access/refresh token plus the OAuth client secret)
  - Application Default Credentials (Cloud Run / Workload Identity)

Acquiring OAuth tokens interactively is not handled here.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

import google.auth
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account

from tenant_audit.config import ConfigError, GoogleConfig

logger = logging.getLogger("audit.auth")

ADMIN_SCOPES = [
    "https://www.googleapis.com/auth/admin.directory.user.readonly",
    "https://www.googleapis.com/auth/admin.directory.group.readonly",
    "https://www.googleapis.com/auth/admin.directory.group.member.readonly",
    "https://www.googleapis.com/auth/admin.directory.resource.calendar.readonly",
    "https://www.googleapis.com/auth/admin.directory.user.security",
]
DRIVE_FILE_SCOPE = "https://www.googleapis.com/auth/drive.file"
DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

SCOPES = [*ADMIN_SCOPES, DRIVE_FILE_SCOPE, DRIVE_READONLY_SCOPE, CLOUD_PLATFORM_SCOPE]

_TOKEN_URI = "https://oauth2.googleapis.com/token"


def build_credentials(google_config: GoogleConfig, scopes: Sequence[str] = SCOPES):
    """Return credentials for the run according to ``google_config``."""
    if google_config.sa_key_file:
        creds = service_account.Credentials.from_service_account_file(
            google_config.sa_key_file, scopes=list(scopes)
        )
        if google_config.admin_email:
            creds = creds.with_subject(google_config.admin_email)
        logger.info("Using service account key %s", google_config.sa_key_file)
        return creds

    if google_config.access_token or google_config.refresh_token:
        client_id, client_secret, token_uri = _read_client_secret(
            google_config.client_secret_file
        )
        logger.info("Using OAuth user tokens")
        return user_credentials.Credentials(
            token=google_config.access_token,
            refresh_token=google_config.refresh_token,
            client_id=client_id,
            client_secret=client_secret,
            token_uri=token_uri,
            scopes=list(scopes),
        )

    # Cloud Run / Workload Identity: use Application Default Credentials
    creds, _ = google.auth.default(scopes=list(scopes))
    logger.info("Using Application Default Credentials")
    return creds


def delegated_credentials(key_file: str, subject: str, scopes: Sequence[str]):
    """Credentials acting as ``subject`` through domain-wide delegation."""
    creds = service_account.Credentials.from_service_account_file(
        key_file, scopes=list(scopes)
    )
    return creds.with_subject(subject)


def _read_client_secret(path: Optional[str]) -> tuple[Optional[str], Optional[str], str]:
    if not path:
        # Without a client secret the access token cannot be refreshed.
        return None, None, _TOKEN_URI
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Unable to read client secret file {path}: {exc}") from exc
    section = data.get("installed") or data.get("web") or data
    return (
        section.get("client_id"),
        section.get("client_secret"),
        section.get("token_uri", _TOKEN_URI),
    )
