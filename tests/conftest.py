"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

Time is driven by a ManualClock so updated_at ordering, reminder due times
and timer schedules are deterministic. Persistence uses pytest's tmp_path.
"""

from collections.abc import Generator
from datetime import datetime
from pathlib import Path

import pytest

from memos.app import MemoApplication
from memos.core.timers import ManualClock, TimerService
from memos.persistence.snapshot_store import SnapshotStore
from memos.schemas.sync import SyncOperation
from memos.services.document_store import DocumentStore
from memos.services.notifications import LoggingDispatcher
from memos.services.session import LocalSession

START = datetime(2024, 1, 1, 9, 0, 0)


# =============================================================================
# Time
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """A clock frozen at 2024-01-01 09:00 UTC until advanced."""
    return ManualClock(START)


@pytest.fixture
def timers(clock: ManualClock) -> TimerService:
    return TimerService(clock)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def store(clock: ManualClock) -> DocumentStore:
    return DocumentStore(clock=clock)


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "memo_app_data.json"


@pytest.fixture
def persistence(snapshot_path: Path, clock: ManualClock) -> SnapshotStore:
    return SnapshotStore(snapshot_path, clock=clock)


@pytest.fixture
def dispatcher() -> LoggingDispatcher:
    return LoggingDispatcher()


@pytest.fixture
def user_session() -> LocalSession:
    session = LocalSession()
    session.sign_in("user-1", "user@example.com", "User")
    return session


@pytest.fixture
def guest_session() -> LocalSession:
    session = LocalSession()
    session.sign_in_guest()
    return session


# =============================================================================
# Remote replica doubles
# =============================================================================


class RecordingRemote:
    """
    Remote replica double that records applied operations.

    ``fail_on`` holds operation ids that are rejected; ``raise_on`` holds ids
    whose application raises instead.
    """

    def __init__(self) -> None:
        self.applied: list[SyncOperation] = []
        self.fail_on: set[str] = set()
        self.raise_on: set[str] = set()

    async def apply(self, op: SyncOperation) -> bool:
        if op.id in self.raise_on:
            raise ConnectionError(f"network down while applying {op.id}")
        if op.id in self.fail_on:
            return False
        self.applied.append(op)
        return True


@pytest.fixture
def remote() -> RecordingRemote:
    return RecordingRemote()


# =============================================================================
# Project layout for config-driven code
# =============================================================================


CONFIG_FILES = {
    "application.yaml": (
        "name: memos\n"
        "version: 9.9.9\n"
        "description: test\n"
        "environment: test\n"
        "debug: false\n"
        "share_base_url: https://share.test\n"
    ),
    "logging.yaml": (
        "level: WARNING\n"
        "format: json\n"
        "handlers:\n"
        "  console:\n"
        "    enabled: false\n"
        "  file:\n"
        "    enabled: false\n"
        "    path: logs/system.jsonl\n"
        "    max_bytes: 1048576\n"
        "    backup_count: 1\n"
    ),
    "storage.yaml": (
        "snapshot_path: data/memo_app_data.json\n"
        "max_bytes: 5242880\n"
        "quarantine_corrupt: true\n"
    ),
    "sync.yaml": (
        "enabled: false\n"
        "endpoint: https://sync.test/apply\n"
        "timeout_seconds: 5\n"
        "interval_seconds: 300\n"
        "circuit_breaker:\n"
        "  fail_max: 3\n"
        "  timeout_duration: 30\n"
    ),
    "reminders.yaml": "scan_interval_seconds: 60\n",
}


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """
    A throwaway project root with its own config and data directory.

    The working directory is switched into it and cached config is cleared
    before and after, so each test loads exactly these files.
    """
    from memos.core import logging as memos_logging
    from memos.core.config import get_app_config, get_settings

    root = tmp_path / "project"
    settings_dir = root / "config" / "settings"
    settings_dir.mkdir(parents=True)
    (root / ".project_root").touch()
    for name, body in CONFIG_FILES.items():
        (settings_dir / name).write_text(body)

    monkeypatch.chdir(root)
    monkeypatch.setattr(memos_logging, "_logging_config", None)
    get_settings.cache_clear()
    get_app_config.cache_clear()
    yield root
    get_settings.cache_clear()
    get_app_config.cache_clear()


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def make_app(persistence, dispatcher, clock, timers, remote):
    """
    Factory for a fully wired MemoApplication on the shared test doubles.

    Pass ``remote=None`` for an app without cloud sync.
    """
    def _make(session: LocalSession, online: bool = False, **overrides) -> MemoApplication:
        options = {
            "persistence": persistence,
            "session": session,
            "remote": remote,
            "dispatcher": dispatcher,
            "clock": clock,
            "timers": timers,
            "share_base_url": "https://memos.test",
            "online": online,
        }
        options.update(overrides)
        return MemoApplication(**options)

    return _make
