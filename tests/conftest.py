from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httplib2
import pytest
from googleapiclient.errors import HttpError

from tenant_audit.config import AuditConfig, ReportConfig
from tenant_audit.pagination import Page


class SleepRecorder:
    """Stand-in for time.sleep that only records the requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def http_error(status: int, message: str, uri: str) -> HttpError:
    """HttpError shaped like a real discovery client failure."""
    content = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(httplib2.Response({"status": status}), content, uri=uri)


class ScriptedPages:
    """page_fn replaying a script of Page objects and exceptions."""

    def __init__(self, script: list[Any]) -> None:
        self.script = list(script)
        self.cursors: list[str] = []

    def __call__(self, cursor: str) -> Page:
        self.cursors.append(cursor)
        step = self.script.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step

    @property
    def calls(self) -> int:
        return len(self.cursors)


class FakeServices:
    """ServiceFactory stand-in returning one mock service for every API."""

    def __init__(self, service: Any) -> None:
        self.service = service
        self.requested: list[tuple[str, str]] = []

    def get(self, name: str, version: str) -> Any:
        self.requested.append((name, version))
        return self.service


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def audit_config(tmp_path: Path) -> AuditConfig:
    return AuditConfig(reports=ReportConfig(output_dir=str(tmp_path / "out"), upload=False))


@pytest.fixture
def restore_audit_logger():
    """Undo configure_logging() so later tests see the default audit logger."""
    logger = logging.getLogger("audit")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]
