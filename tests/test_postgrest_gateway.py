# tests/test_postgrest_gateway.py

from __future__ import annotations

import json

import httpx
import pytest

from sd_workflow.core.errors import RemoteReadFailed, RemoteWriteFailed
from sd_workflow.core.ports import Session
from sd_workflow.remote.postgrest import PostgrestGateway, SessionAuthGate

from .fakes import U1

BASE = "https://demo.supabase.co"


class Recorder:
    """MockTransport handler: records requests, answers from a route table."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response] | None = None) -> None:
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.routes.get((request.method, request.url.path), httpx.Response(404, json={"message": "no route"}))


def _gateway(recorder, *, session: Session | None = Session(access_token="user-jwt")) -> PostgrestGateway:
    client = httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(recorder))
    return PostgrestGateway(BASE, "anon-key", session=session, client=client)


@pytest.mark.asyncio
async def test_fetch_all_selects_projects_and_live_tasks() -> None:
    rec = Recorder(
        {
            ("GET", "/rest/v1/projects"): httpx.Response(200, json=[{"project_id": "p1", "title": "Camp"}]),
            ("GET", "/rest/v1/tasks"): httpx.Response(200, json=[{"id": U1}, "junk"]),
        }
    )
    gw = _gateway(rec)
    snap = await gw.fetch_all()

    assert snap.projects == [{"project_id": "p1", "title": "Camp"}]
    assert snap.tasks == [{"id": U1}]

    tasks_req = next(r for r in rec.requests if r.url.path.endswith("/tasks"))
    assert tasks_req.url.params["archived"] == "eq.false"
    assert tasks_req.url.params["order"] == "created_at.desc"
    assert tasks_req.headers["apikey"] == "anon-key"
    assert tasks_req.headers["authorization"] == "Bearer user-jwt"


@pytest.mark.asyncio
async def test_anonymous_requests_use_anon_key_as_bearer() -> None:
    rec = Recorder(
        {
            ("GET", "/rest/v1/projects"): httpx.Response(200, json=[]),
            ("GET", "/rest/v1/tasks"): httpx.Response(200, json=[]),
        }
    )
    gw = _gateway(rec, session=None)
    await gw.fetch_all()
    assert all(r.headers["authorization"] == "Bearer anon-key" for r in rec.requests)


@pytest.mark.asyncio
async def test_fetch_error_status_raises_read_failed_with_server_message() -> None:
    rec = Recorder(
        {
            ("GET", "/rest/v1/projects"): httpx.Response(401, json={"message": "JWT expired"}),
            ("GET", "/rest/v1/tasks"): httpx.Response(200, json=[]),
        }
    )
    gw = _gateway(rec)
    with pytest.raises(RemoteReadFailed) as exc:
        await gw.fetch_all()
    assert exc.value.message == "JWT expired"


@pytest.mark.asyncio
async def test_transport_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("network down", request=request)

    client = httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(handler))
    gw = PostgrestGateway(BASE, "anon-key", client=client)
    with pytest.raises(RemoteWriteFailed) as exc:
        await gw.update_task(U1, {"status": "done"})
    assert "ConnectError" in exc.value.message


@pytest.mark.asyncio
async def test_update_task_reports_affected_rows() -> None:
    rec = Recorder({("PATCH", "/rest/v1/tasks"): httpx.Response(200, json=[{"id": U1}])})
    gw = _gateway(rec)
    assert await gw.update_task(U1, {"status": "done"}) == 1

    req = rec.requests[0]
    assert req.url.params["id"] == f"eq.{U1}"
    assert req.url.params["select"] == "id"
    assert req.headers["prefer"] == "return=representation"
    assert json.loads(req.content) == {"status": "done"}

    rec.routes[("PATCH", "/rest/v1/tasks")] = httpx.Response(200, json=[])
    assert await gw.update_task(U1, {"status": "done"}) == 0


@pytest.mark.asyncio
async def test_insert_project_returns_generated_id() -> None:
    rec = Recorder({("POST", "/rest/v1/projects"): httpx.Response(201, json=[{"project_id": "p-42"}])})
    gw = _gateway(rec)
    assert await gw.insert_project({"kind": "DC", "title": "Camp"}) == "p-42"
    assert json.loads(rec.requests[0].content) == [{"kind": "DC", "title": "Camp"}]

    rec.routes[("POST", "/rest/v1/projects")] = httpx.Response(201, json=[{"id": "p-43"}])
    assert await gw.insert_project({"kind": "DC"}) == "p-43"

    rec.routes[("POST", "/rest/v1/projects")] = httpx.Response(201, json=[])
    with pytest.raises(RemoteWriteFailed):
        await gw.insert_project({"kind": "DC"})


@pytest.mark.asyncio
async def test_insert_tasks_uses_minimal_return() -> None:
    rec = Recorder({("POST", "/rest/v1/tasks"): httpx.Response(201)})
    gw = _gateway(rec)
    await gw.insert_tasks([{"task": "a"}, {"task": "b"}])
    assert rec.requests[0].headers["prefer"] == "return=minimal"
    assert len(json.loads(rec.requests[0].content)) == 2

    await gw.insert_tasks([])
    assert len(rec.requests) == 1


@pytest.mark.asyncio
async def test_insert_task_returns_stored_row_or_none() -> None:
    rec = Recorder({("POST", "/rest/v1/tasks"): httpx.Response(201, json=[{"id": U1, "task": "a"}])})
    gw = _gateway(rec)
    assert await gw.insert_task({"task": "a"}) == {"id": U1, "task": "a"}

    rec.routes[("POST", "/rest/v1/tasks")] = httpx.Response(201, json=[])
    assert await gw.insert_task({"task": "a"}) is None

    rec.routes[("POST", "/rest/v1/tasks")] = httpx.Response(409, text="duplicate key")
    with pytest.raises(RemoteWriteFailed) as exc:
        await gw.insert_task({"task": "a"})
    assert exc.value.message == "duplicate key"


@pytest.mark.asyncio
async def test_session_auth_gate() -> None:
    anon = _gateway(Recorder(), session=None)
    assert not (await SessionAuthGate(anon).ensure_authenticated()).ok

    gw = _gateway(Recorder(), session=Session(access_token="jwt", user_id="u1"))
    check = await SessionAuthGate(gw).ensure_authenticated()
    assert check.ok and check.session.user_id == "u1"


def test_gateway_requires_url_and_key() -> None:
    with pytest.raises(ValueError):
        PostgrestGateway("", "anon-key")
