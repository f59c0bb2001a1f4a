# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from sd_workflow.core.state import AppState
from sd_workflow.sync.local_store import LocalTaskStore

from .fakes import MemoryPersistence


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the store factory.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's .env.
    """
    return SimpleNamespace(
        app_name="sd-workflow-test",
        log_level="DEBUG",
        # Remote store (off by default)
        supabase_url="",
        supabase_anon_key="",
        access_token=None,
        user_id=None,
        remote_configured=False,
        # Sync
        poll_interval_seconds=2.0,
        request_timeout_seconds=5.0,
        # Paths (tmp per test run)
        data_dir=tmp_path / "data",
        snapshot_db_path=tmp_path / "data" / "snapshots.sqlite3",
        seed_example=False,
        current_user="sup",
    )


@pytest.fixture()
def persistence() -> MemoryPersistence:
    return MemoryPersistence()


@pytest.fixture()
def state(settings: SimpleNamespace, persistence: MemoryPersistence) -> AppState:
    """AppState over a local store with in-memory persistence (no seed row)."""
    store = LocalTaskStore(persistence, seed_example=False)
    store.load_snapshot()
    return AppState(settings=settings, store=store, current_user="sup")
