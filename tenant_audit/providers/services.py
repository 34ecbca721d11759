"""Discovery API clients, one per thread.

googleapiclient services share an httplib2 transport that must not be
used from several threads at once, so each worker thread gets its own.
"""

from __future__ import annotations

import threading
from typing import Any

from googleapiclient.discovery import build


class ServiceFactory:
    def __init__(self, credentials: Any) -> None:
        self._credentials = credentials
        self._local = threading.local()

    def get(self, name: str, version: str) -> Any:
        cache = getattr(self._local, "services", None)
        if cache is None:
            cache = self._local.services = {}
        key = (name, version)
        if key not in cache:
            cache[key] = build(
                name, version, credentials=self._credentials, cache_discovery=False
            )
        return cache[key]
