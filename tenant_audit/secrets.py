"""Secret Manager lookups for OAuth tokens and delegation keys.

A config value of the form "gcp-secret://..." names a secret version;
anything else is taken literally. Key files can be kept in Secret
Manager too: ``secret_file`` writes the payload to a private temp file
and returns its path.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Optional

logger = logging.getLogger("audit.secrets")

SECRET_PREFIX = "gcp-secret://"
_METADATA_PROJECT_URL = "http://metadata.google.internal/computeMetadata/v1/project/project-id"


def is_secret_ref(value: Optional[str]) -> bool:
    return bool(value) and value.startswith(SECRET_PREFIX)


def secret_version_name(ref: str, project: Optional[str] = None) -> str:
    """Expand a reference into a full secret version resource name.

      "projects/P/secrets/N/versions/V" -> unchanged
      "N/versions/V"                    -> "projects/<project>/secrets/N/versions/V"
      "N"                               -> "projects/<project>/secrets/N/versions/latest"
    """
    if ref.startswith("projects/"):
        return ref
    if not project:
        raise ValueError(f"Secret {ref!r} needs a project: set GCP_PROJECT_ID")
    name, _, version = ref.partition("/versions/")
    return f"projects/{project}/secrets/{name}/versions/{version or 'latest'}"


def resolve_secret(value: str) -> str:
    """Return the plaintext behind ``value`` (or ``value`` itself when literal)."""
    if not is_secret_ref(value):
        return value
    return _access(value[len(SECRET_PREFIX):]).decode("UTF-8")


def secret_file(value: str, suffix: str = ".json") -> str:
    """Return a local path holding the key material ``value`` points at."""
    if not is_secret_ref(value):
        return value
    payload = _access(value[len(SECRET_PREFIX):])
    fd, path = tempfile.mkstemp(prefix="tenant-audit-", suffix=suffix)
    with os.fdopen(fd, "wb") as fh:
        fh.write(payload)
    logger.info("Secret written to %s", path)
    return path


def _access(ref: str) -> bytes:
    from google.cloud import secretmanager

    project = None
    if not ref.startswith("projects/"):
        project = os.environ.get("GCP_PROJECT_ID", "") or _project_from_metadata()
    name = secret_version_name(ref, project)

    logger.info("Resolving secret %s", name)
    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": name})
    return response.payload.data


def _project_from_metadata() -> str:
    """Project ID from the metadata server (Cloud Run/GCE only)."""
    import requests

    try:
        resp = requests.get(
            _METADATA_PROJECT_URL, headers={"Metadata-Flavor": "Google"}, timeout=2
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise RuntimeError(
            "Cannot determine GCP project ID. Set GCP_PROJECT_ID env var."
        ) from exc
    return resp.text
