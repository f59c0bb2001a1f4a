# tests/test_factory.py

from __future__ import annotations

import pytest

from sd_workflow.cli.bootstrap import create_initial_state
from sd_workflow.config import Settings
from sd_workflow.remote.postgrest import PostgrestGateway
from sd_workflow.storage.snapshot_store import SnapshotStore
from sd_workflow.sync.factory import create_store
from sd_workflow.sync.local_store import LocalTaskStore
from sd_workflow.sync.remote_store import RemoteTaskStore

from .fakes import FakeGateway


def test_local_store_when_remote_missing(settings) -> None:
    store = create_store(settings)
    assert isinstance(store, LocalTaskStore)
    assert store.mode == "local"


def test_half_configured_remote_falls_back_to_local_with_warning(settings, caplog) -> None:
    settings.supabase_url = "https://demo.supabase.co"
    with caplog.at_level("WARNING", logger="sd_workflow.sync.factory"):
        store = create_store(settings)
    assert isinstance(store, LocalTaskStore)
    assert "using the local store" in caplog.text


@pytest.mark.asyncio
async def test_remote_store_builds_postgrest_gateway(settings) -> None:
    settings.remote_configured = True
    settings.supabase_url = "https://demo.supabase.co"
    settings.supabase_anon_key = "anon"
    settings.access_token = "jwt"
    settings.poll_interval_seconds = 5.0

    store = create_store(settings)
    try:
        assert isinstance(store, RemoteTaskStore)
        assert isinstance(store.gateway, PostgrestGateway)
        assert store.poll_interval_seconds == 5.0
        assert (await store.gateway.get_session()).access_token == "jwt"
    finally:
        await store.gateway.aclose()


def test_injected_gateway_is_used(settings) -> None:
    settings.remote_configured = True
    gw = FakeGateway()
    store = create_store(settings, gateway=gw)
    assert isinstance(store, RemoteTaskStore)
    assert store.gateway is gw


def test_create_initial_state_makes_data_dir(settings) -> None:
    state = create_initial_state(settings=settings)
    assert settings.data_dir.is_dir()
    assert state.current_user == "sup"
    assert isinstance(state.store, LocalTaskStore)
    assert isinstance(state.store._persistence, SnapshotStore)


def test_settings_from_env(monkeypatch, tmp_path) -> None:
    for name in ("SDWF_SUPABASE_URL", "SUPABASE_URL", "SDWF_SUPABASE_ANON_KEY", "SUPABASE_ANON_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SDWF_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("SDWF_POLL_INTERVAL_SECONDS", "not-a-number")

    s = Settings.from_env()
    assert s.mode == "local"
    assert s.poll_interval_seconds == 2.0
    assert s.snapshot_db_path == tmp_path / "snapshots.sqlite3"

    monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
    monkeypatch.setenv("SDWF_SUPABASE_ANON_KEY", "anon")
    s = Settings.from_env()
    assert s.remote_configured and s.mode == "remote"
