# src/sd_workflow/sync/base.py

"""
Task/project state store: shared read side.

The store exclusively owns the canonical tasks/projects collections. Readers
get immutable tuples; every state transition swaps whole tuples, so a reader
never observes a half-applied change. Writes go through the async operations
of the concrete store (LocalTaskStore / RemoteTaskStore).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, ClassVar

from ..core.errors import ActionRejected, AuthRequired, OpResult
from ..core.ports import AuthCheck, AuthGate
from ..tasks.ordering import group_and_sort
from ..tasks.task_models import Project, Task
from ..tasks.workflow import ProjectForm, build_workflow_tasks

logger = logging.getLogger(__name__)

Listener = Callable[["TaskStateStore"], None]
TaskFilter = Callable[[Task], bool]


class AsyncioClock:
    """Default Clock: plain asyncio.sleep (cancellable)."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class AlwaysAuthenticated:
    """AuthGate for local mode: there is nothing to log in to."""

    async def ensure_authenticated(self) -> AuthCheck:
        return AuthCheck(ok=True)


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


class TaskStateStore(ABC):
    mode: ClassVar[str]

    def __init__(self, *, auth_gate: AuthGate) -> None:
        self._auth_gate = auth_gate
        self._tasks: tuple[Task, ...] = ()
        self._projects: tuple[Project, ...] = ()
        self._listeners: list[Listener] = []
        # Set by start(); after stop() late results must not touch state.
        self._alive = False

    # ---- read side ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self._tasks

    @property
    def projects(self) -> tuple[Project, ...]:
        return self._projects

    @property
    def pending_ids(self) -> frozenset[str]:
        return frozenset()

    @property
    def is_alive(self) -> bool:
        return self._alive

    def live_tasks(self) -> list[Task]:
        return [t for t in self._tasks if not t.archived]

    def sorted_tasks(self, ascending: bool = True, where: TaskFilter | None = None) -> list[Task]:
        items: Iterable[Task] = self.live_tasks()
        if where is not None:
            items = [t for t in items if where(t)]
        return group_and_sort(items, ascending)

    def get_task(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def get_project(self, project_id: str) -> Project | None:
        for p in self._projects:
            if p.id == project_id:
                return p
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ---- state transitions ----

    def _commit(
        self,
        *,
        tasks: Iterable[Task] | None = None,
        projects: Iterable[Project] | None = None,
    ) -> None:
        if tasks is not None:
            self._tasks = tuple(tasks)
        if projects is not None:
            self._projects = tuple(projects)
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Store listener failed")

    def _prepend_tasks(self, new: Iterable[Task]) -> None:
        self._commit(tasks=(*new, *self._tasks))

    def _patched_tasks(self, task_id: str, patch: Mapping[str, Any]) -> tuple[tuple[Task, ...], bool]:
        found = False
        out: list[Task] = []
        for t in self._tasks:
            if t.id == task_id:
                out.append(t.with_patch(patch))
                found = True
            else:
                out.append(t)
        return tuple(out), found

    async def _require_auth(self) -> OpResult | None:
        check = await self._auth_gate.ensure_authenticated()
        if not check.ok:
            return OpResult.failure(AuthRequired())
        return None

    @staticmethod
    def _plan_project(
        form: ProjectForm, project_id: str | None, include_task_id: bool
    ) -> tuple[Project, list[Task]]:
        """Build the project record and its template tasks, or raise ActionRejected."""
        if not form.kind or not form.name.strip():
            raise ActionRejected("Project kind and name are required.")
        try:
            tasks = build_workflow_tasks(
                form, project_id=project_id, include_task_id=include_task_id
            )
        except ValueError as e:
            raise ActionRejected(f"Dates must be YYYY-MM-DD: {e}") from e

        project = Project(
            id=project_id,
            kind=form.kind,
            name=form.name.strip(),
            bu=form.bu,
            supervisor=form.supervisor,
            doer_default=form.doer_default,
            support_default=form.support_default,
            start_date=form.start_date,
            event_date=form.event_date or None,
            created_at=now_iso(),
        )
        return project, tasks

    # ---- write side ----

    @abstractmethod
    async def add_task(self, task: Task) -> OpResult: ...

    @abstractmethod
    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> OpResult: ...

    @abstractmethod
    async def create_project(self, form: ProjectForm) -> OpResult:
        """Create a project and its workflow tasks; OpResult.value is the project id (or None)."""

    @abstractmethod
    async def refresh(self) -> OpResult: ...

    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...
