# src/sd_workflow/sync/factory.py

from __future__ import annotations

import logging

from ..core.ports import Clock, LocalPersistence, RemoteGateway, Session
from ..remote.postgrest import PostgrestGateway, SessionAuthGate
from ..storage.snapshot_store import SnapshotStore
from .base import TaskStateStore
from .local_store import LocalTaskStore
from .remote_store import RemoteTaskStore

logger = logging.getLogger(__name__)


def create_store(
    settings,
    *,
    gateway: RemoteGateway | None = None,
    persistence: LocalPersistence | None = None,
    clock: Clock | None = None,
) -> TaskStateStore:
    """
    Pick the store implementation once, from settings.

    - Supabase URL + anon key configured -> RemoteTaskStore
    - otherwise -> LocalTaskStore (offline snapshot)

    gateway/persistence/clock can be injected (tests); otherwise the concrete
    implementations are built from settings.
    """
    if settings.remote_configured:
        if gateway is None:
            session = (
                Session(access_token=settings.access_token, user_id=settings.user_id)
                if settings.access_token
                else None
            )
            gateway = PostgrestGateway(
                settings.supabase_url,
                settings.supabase_anon_key,
                session=session,
                timeout_seconds=settings.request_timeout_seconds,
            )
        logger.info("Store mode: remote (%s)", settings.supabase_url)
        return RemoteTaskStore(
            gateway,
            auth_gate=SessionAuthGate(gateway),
            clock=clock,
            poll_interval_seconds=settings.poll_interval_seconds,
        )

    if settings.supabase_url or settings.supabase_anon_key:
        logger.warning(
            "Only one of SDWF_SUPABASE_URL / SDWF_SUPABASE_ANON_KEY is set; using the local store."
        )

    if persistence is None:
        persistence = SnapshotStore(settings.snapshot_db_path)
    logger.info("Store mode: local (offline snapshot)")
    return LocalTaskStore(persistence, seed_example=settings.seed_example)
