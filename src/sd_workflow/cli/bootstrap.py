# src/sd_workflow/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the concrete store (remote or local) into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import Clock, LocalPersistence, RemoteGateway
from ..core.state import AppState
from ..sync.factory import create_store

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.snapshot_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    gateway: RemoteGateway | None = None,
    persistence: LocalPersistence | None = None,
    clock: Clock | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = create_store(settings, gateway=gateway, persistence=persistence, clock=clock)
    state = AppState(
        settings=settings,
        store=store,
        current_user=getattr(settings, "current_user", "") or "",
    )
    logger.info("State ready mode=%s user=%s", store.mode, state.current_user or "-")
    return state
