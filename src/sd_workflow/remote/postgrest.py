# src/sd_workflow/remote/postgrest.py

"""
Remote backing store over PostgREST (Supabase REST API).

Only what the store contract needs:
- fetch projects + non-archived tasks
- insert project / tasks
- patch one task by id and report how many rows matched

Transport errors and non-2xx responses are raised as RemoteReadFailed
(reads) or RemoteWriteFailed (writes). Row-level security denials that
PostgREST answers with 200 + [] surface as "0 affected rows".
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..core.errors import RemoteReadFailed, RemoteWriteFailed, StoreError
from ..core.ports import AuthCheck, RemoteSnapshot, Row, Session

logger = logging.getLogger(__name__)

PROJECTS_TABLE = "projects"
TASKS_TABLE = "tasks"


def make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


def _error_message(resp: httpx.Response) -> str:
    """PostgREST puts a human-readable reason in the `message` field."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        msg = body.get("message") or body.get("error_description") or body.get("error")
        if msg:
            return str(msg)
    text = (resp.text or "").strip()
    return text[:300] if text else f"HTTP {resp.status_code}"


class PostgrestGateway:
    """RemoteGateway implementation backed by httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        *,
        session: Session | None = None,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not base_url or not anon_key:
            raise ValueError("base_url and anon_key are required")

        self._anon_key = anon_key
        self._session = session
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=make_timeout(connect_s=min(5.0, timeout_seconds), read_s=timeout_seconds),
        )
        logger.info("PostgrestGateway ready base_url=%s session=%s", base_url, session is not None)

    # ---- session ----

    async def get_session(self) -> Session | None:
        return self._session

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---- low-level helpers ----

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        token = self._session.access_token if self._session else self._anon_key
        headers = {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        *,
        error_cls: type[StoreError],
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        try:
            resp = await self._client.request(
                method,
                f"/rest/v1/{table}",
                params=params,
                json=json,
                headers=self._headers(prefer),
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, table, e)
            raise error_cls(f"{table}: {e.__class__.__name__}: {e}") from e

        if resp.is_error:
            msg = _error_message(resp)
            logger.warning("%s %s -> %s %s", method, table, resp.status_code, msg)
            raise error_cls(msg)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise error_cls(f"{table}: response is not JSON") from e

    # ---- RemoteGateway ----

    async def _select(self, table: str, params: dict[str, str]) -> list[Row]:
        data = await self._request("GET", table, error_cls=RemoteReadFailed, params=params)
        if not isinstance(data, list):
            raise RemoteReadFailed(f"{table}: expected a list of rows")
        return [r for r in data if isinstance(r, dict)]

    async def fetch_all(self) -> RemoteSnapshot:
        # Fetch both datasets first so the caller can swap them in together.
        projects, tasks = await asyncio.gather(
            self._select(PROJECTS_TABLE, {"select": "*", "order": "created_at.desc"}),
            self._select(
                TASKS_TABLE,
                {"select": "*", "archived": "eq.false", "order": "created_at.desc"},
            ),
        )
        return RemoteSnapshot(projects=projects, tasks=tasks)

    async def insert_project(self, row: Row) -> str:
        data = await self._request(
            "POST",
            PROJECTS_TABLE,
            error_cls=RemoteWriteFailed,
            params={"select": "*"},
            json=[row],
            prefer="return=representation",
        )
        first = data[0] if isinstance(data, list) and data else None
        project_id = (first or {}).get("project_id") or (first or {}).get("id")
        if not project_id:
            raise RemoteWriteFailed(
                "Project was created but its id could not be read back (check permissions)."
            )
        return str(project_id)

    async def insert_tasks(self, rows: list[Row]) -> None:
        if not rows:
            return
        await self._request(
            "POST",
            TASKS_TABLE,
            error_cls=RemoteWriteFailed,
            json=rows,
            prefer="return=minimal",
        )

    async def insert_task(self, row: Row) -> Row | None:
        data = await self._request(
            "POST",
            TASKS_TABLE,
            error_cls=RemoteWriteFailed,
            params={"select": "*"},
            json=[row],
            prefer="return=representation",
        )
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
        return None

    async def update_task(self, task_id: str, patch: Row) -> int:
        data = await self._request(
            "PATCH",
            TASKS_TABLE,
            error_cls=RemoteWriteFailed,
            params={"id": f"eq.{task_id}", "select": "id"},
            json=patch,
            prefer="return=representation",
        )
        return len(data) if isinstance(data, list) else 0


class SessionAuthGate:
    """AuthGate for remote mode: writes need a session on the gateway."""

    def __init__(self, gateway: PostgrestGateway | Any) -> None:
        self._gateway = gateway

    async def ensure_authenticated(self) -> AuthCheck:
        session = await self._gateway.get_session()
        if session is None:
            logger.info("Write refused: no remote session")
            return AuthCheck(ok=False)
        return AuthCheck(ok=True, session=session)
