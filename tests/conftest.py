# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for the BeaconKit suite",
#   "sections": [
#     {"id": "globals", "name": "Globals", "anchor": "GLB", "kind": "infra"},
#     {"id": "isolated-settings", "name": "isolated_settings", "anchor": "fixture-isolated-settings", "kind": "fixture"},
#     {"id": "beacon-file", "name": "beacon_file", "anchor": "fixture-beacon-file", "kind": "fixture"},
#     {"id": "error-log", "name": "error_log", "anchor": "fixture-error-log", "kind": "fixture"}
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Adds ``src`` to ``sys.path`` and provides fixtures shared by the BeaconKit
tests: environment isolation for settings, a factory writing BEACON documents
to temporary files, and a recording error handler.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Callable, Iterator, List, Tuple

import pytest

# --- Globals ---

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from BeaconKit.logging_utils import LOGGER_NAME  # noqa: E402
from BeaconKit.settings import invalidate_settings_cache  # noqa: E402

ErrorRecord = Tuple[str, int, str]


@pytest.fixture
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Path]:
    """Drop ``BEACON_*`` variables and point the collection store at ``tmp_path``."""

    for key in list(os.environ):
        if key.upper().startswith("BEACON_"):
            monkeypatch.delenv(key, raising=False)
    db_path = tmp_path / "collections.sqlite"
    monkeypatch.setenv("BEACON_COLLECTION__DB_PATH", str(db_path))
    invalidate_settings_cache()
    yield db_path
    invalidate_settings_cache()
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_beacon_managed", False):
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def beacon_file(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory writing BEACON text into ``tmp_path``."""

    def _write(text: str, name: str = "links.txt", encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding=encoding)
        return path

    return _write


@pytest.fixture
def error_log() -> Tuple[List[ErrorRecord], Callable[[str, int, str], None]]:
    """Return a list and an error handler appending ``(message, line, raw)`` to it."""

    errors: List[ErrorRecord] = []

    def _record(message: str, line_number: int, raw_line: str) -> None:
        errors.append((message, line_number, raw_line))

    return errors, _record
