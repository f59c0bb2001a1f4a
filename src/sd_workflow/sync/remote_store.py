# src/sd_workflow/sync/remote_store.py

"""
Remote-backed store with a polling refresh loop.

Writes are optimistic: the in-memory collections change before the network
round-trip, and a failed write is reported without rolling back (the user's
edit stays visible; the next successful poll reconciles).

Every task id with a write in flight is "pending". A poll result never
replaces a task whose write started before that poll completed: the locally
edited version is kept until a poll that started after the write resolved.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from ..core.errors import (
    ActionRejected,
    InvalidId,
    OpResult,
    RemoteNoRowsAffected,
    RemoteReadFailed,
    RemoteWriteFailed,
)
from ..core.ports import AuthGate, Clock, RemoteGateway, Row
from ..tasks.task_models import Project, Task
from ..tasks.workflow import ProjectForm, build_workflow_tasks, is_uuid, strip_invalid_uuid_ids
from .base import AsyncioClock, TaskStateStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0


def merge_preserving_pending(
    current: tuple[Task, ...], fetched: list[Task], protected: frozenset[str]
) -> list[Task]:
    """
    Full-list replace with overrides: take the fetched list, but for every
    protected id keep the in-memory task instead of the fetched row.

    Protected tasks the fetch did not return (inserted after the snapshot was
    taken) stay at the front, in their current order.
    """
    if not protected:
        return fetched
    by_id = {t.id: t for t in current if t.id is not None}
    fetched_ids = {t.id for t in fetched}
    missing = [t for t in current if t.id in protected and t.id not in fetched_ids]
    return missing + [by_id.get(t.id, t) if t.id in protected else t for t in fetched]


class RemoteTaskStore(TaskStateStore):
    mode = "remote"

    def __init__(
        self,
        gateway: RemoteGateway,
        *,
        auth_gate: AuthGate,
        clock: Clock | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        super().__init__(auth_gate=auth_gate)
        self._gateway = gateway
        self._clock = clock or AsyncioClock()
        self._interval = max(0.1, float(poll_interval_seconds))
        # id -> number of writes in flight
        self._inflight: Counter[str] = Counter()
        # Monotonic write counter; id -> sequence of its latest write.
        self._write_seq = 0
        self._last_write: dict[str, int] = {}
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def pending_ids(self) -> frozenset[str]:
        return frozenset(k for k, n in self._inflight.items() if n > 0)

    @property
    def gateway(self) -> RemoteGateway:
        return self._gateway

    @property
    def poll_interval_seconds(self) -> float:
        return self._interval

    # ---- lifecycle ----

    async def start(self) -> None:
        """
        Start the poll loop (first refresh runs immediately).

        Collections start empty rather than from any stale snapshot.
        """
        if self._poll_task is not None:
            return
        self._alive = True
        self._poll_task = asyncio.create_task(self._run_poll_loop(), name="sd_workflow-poll")
        logger.info("Remote store started interval=%.1fs", self._interval)

    async def stop(self) -> None:
        self._alive = False
        task, self._poll_task = self._poll_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Remote store stopped")

    async def _run_poll_loop(self) -> None:
        """
        Every interval: fetch projects + non-archived tasks and merge them.

        To stop the loop, cancel the task (stop() does this).
        """
        while True:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("poll refresh crashed")
            await self._clock.sleep(self._interval)

    def _next_write_seq(self) -> int:
        self._write_seq += 1
        return self._write_seq

    def _protected_ids(self, started_at: int, pending_at_start: frozenset[str]) -> frozenset[str]:
        """
        Ids a poll that began at write sequence `started_at` must not overwrite.

        Any id pending now or at the start is protected, as is any id written
        since the request went out.
        """
        newer = {tid for tid, seq in self._last_write.items() if seq > started_at}
        return self.pending_ids | pending_at_start | newer

    async def refresh(self) -> OpResult:
        started_at = self._write_seq
        pending_at_start = self.pending_ids
        try:
            snapshot = await self._gateway.fetch_all()
        except RemoteReadFailed as e:
            logger.warning("Poll failed, keeping current state: %s", e.message)
            return OpResult.failure(e)

        if not self._alive:
            return OpResult.success()

        projects = [Project.from_row(r) for r in snapshot.projects]
        fetched = [Task.from_row(r) for r in snapshot.tasks]
        protected = self._protected_ids(started_at, pending_at_start)
        tasks = merge_preserving_pending(self._tasks, fetched, protected)
        self._commit(tasks=tasks, projects=projects)

        # A later poll starts after these writes resolved and may replace them.
        pending = self.pending_ids
        self._last_write = {
            tid: seq for tid, seq in self._last_write.items() if seq > started_at or tid in pending
        }
        logger.debug(
            "Poll merged projects=%d tasks=%d protected=%d", len(projects), len(tasks), len(protected)
        )
        return OpResult.success()

    # ---- operations ----

    async def add_task(self, task: Task) -> OpResult:
        denied = await self._require_auth()
        if denied is not None:
            return denied

        # uuid-typed columns reject readable local ids.
        safe_row = strip_invalid_uuid_ids(task.to_row())
        seq = self._next_write_seq()
        try:
            stored = await self._gateway.insert_task(safe_row)
        except RemoteWriteFailed as e:
            logger.warning("insert task failed: %s", e.message)
            if self._alive:
                # Show the unsaved row; the next poll reconciles.
                self._prepend_tasks([Task.from_row(safe_row)])
            return OpResult.failure(e)

        # Server row carries the authoritative id; if it could not be read
        # back, keep the sent row until the next poll.
        saved = Task.from_row(stored or safe_row)
        if saved.id is not None:
            self._last_write[saved.id] = seq
        if self._alive:
            self._prepend_tasks([saved])
        logger.info("Task inserted id=%s", saved.id)
        return OpResult.success(saved.id)

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> OpResult:
        denied = await self._require_auth()
        if denied is not None:
            return denied
        if not is_uuid(task_id):
            return OpResult.failure(InvalidId(task_id))

        payload: Row = dict(patch)
        self._last_write[task_id] = self._next_write_seq()
        self._inflight[task_id] += 1
        try:
            if self._alive:
                tasks, _found = self._patched_tasks(task_id, payload)
                self._commit(tasks=tasks)

            try:
                affected = await self._gateway.update_task(task_id, payload)
            except RemoteWriteFailed as e:
                logger.warning("update task id=%s failed: %s", task_id, e.message)
                return OpResult.failure(e)

            if affected == 0:
                logger.warning("update task id=%s matched no rows", task_id)
                return OpResult.failure(RemoteNoRowsAffected())
            return OpResult.success(task_id)
        finally:
            self._inflight[task_id] -= 1
            if self._inflight[task_id] <= 0:
                del self._inflight[task_id]

    async def create_project(self, form: ProjectForm) -> OpResult:
        denied = await self._require_auth()
        if denied is not None:
            return denied

        try:
            project, _ = self._plan_project(form, None, include_task_id=False)
        except ActionRejected as e:
            return OpResult.failure(e)

        insert_row = project.to_row()
        # Remote schema keeps the display name in `title`.
        insert_row.pop("name", None)

        try:
            project_id = await self._gateway.insert_project(insert_row)
        except RemoteWriteFailed as e:
            logger.warning("insert project failed: %s", e.message)
            return OpResult.failure(e)

        project = replace(project, id=project_id)
        tasks = build_workflow_tasks(form, project_id=project_id, include_task_id=False)
        if self._alive:
            self._commit(projects=(project, *self._projects))

        rows = [strip_invalid_uuid_ids(t.to_row()) for t in tasks]
        try:
            await self._gateway.insert_tasks(rows)
        except RemoteWriteFailed as e:
            logger.warning("insert workflow tasks for project=%s failed: %s", project_id, e.message)
            return OpResult.failure(e, value=project_id)

        logger.info("Project created id=%s kind=%s tasks=%d", project_id, form.kind, len(rows))
        return OpResult.success(project_id)
