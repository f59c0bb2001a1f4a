# src/sd_workflow/sync/local_store.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..core.errors import ActionRejected, OpResult, TaskNotFound
from ..core.ports import AuthGate, LocalPersistence
from ..tasks.task_models import Project, Task, TaskStatus
from ..tasks.workflow import ProjectForm, new_id
from .base import AlwaysAuthenticated, TaskStateStore

logger = logging.getLogger(__name__)

TASKS_KEY = "sdwf_tasks_v1"
PROJECTS_KEY = "sdwf_projects_v1"


def example_task() -> Task:
    """Seed row shown on a fresh local install so the board is not empty."""
    return Task(
        id="task_seed_1",
        task="Answer customer chat (SD Folio)",
        project_id="DC-SEED",
        project="DC",
        bu="BU1",
        type="routine",
        focus="high",
        tag="workflow",
        created_by="supervisor",
        doer="doer",
        status=TaskStatus.ONGOING,
        assigned_date="2025-12-25",
        deadline="2025-12-29",
    )


def _rows_to(kind: type[Task] | type[Project], raw: Any, key: str) -> list[Any]:
    if not isinstance(raw, list):
        logger.warning("Snapshot %s is not a list (%s); starting empty", key, type(raw).__name__)
        return []
    out = []
    for row in raw:
        if isinstance(row, Mapping):
            out.append(kind.from_row(row))
        else:
            logger.debug("Skipping malformed row in %s: %r", key, row)
    return out


class LocalTaskStore(TaskStateStore):
    """
    Offline store: the in-memory collections are written through to a
    key/value snapshot after every change. Any id shape is accepted.
    """

    mode = "local"

    def __init__(
        self,
        persistence: LocalPersistence,
        *,
        auth_gate: AuthGate | None = None,
        seed_example: bool = True,
    ) -> None:
        super().__init__(auth_gate=auth_gate or AlwaysAuthenticated())
        self._persistence = persistence
        self._seed_example = seed_example

    # ---- lifecycle ----

    async def start(self) -> None:
        if self._alive:
            return
        self.load_snapshot()
        self._alive = True
        logger.info("Local store started tasks=%d projects=%d", len(self._tasks), len(self._projects))

    async def stop(self) -> None:
        if not self._alive:
            return
        self._persist()
        self._alive = False
        logger.info("Local store stopped")

    def load_snapshot(self) -> None:
        raw_tasks = self._persistence.load(TASKS_KEY, None)
        if raw_tasks is None:
            tasks = [example_task()] if self._seed_example else []
        else:
            tasks = _rows_to(Task, raw_tasks, TASKS_KEY)
        projects = _rows_to(Project, self._persistence.load(PROJECTS_KEY, []), PROJECTS_KEY)
        self._commit(tasks=tasks, projects=projects)

    def _persist(self) -> None:
        try:
            self._persistence.save(TASKS_KEY, [t.to_row() for t in self._tasks])
            self._persistence.save(PROJECTS_KEY, [p.to_row() for p in self._projects])
        except Exception:
            # In-memory state stays authoritative; next change retries the write.
            logger.exception("Failed to persist local snapshot")

    # ---- operations ----

    async def add_task(self, task: Task) -> OpResult:
        denied = await self._require_auth()
        if denied is not None:
            return denied
        self._prepend_tasks([task])
        self._persist()
        logger.debug("Task added locally id=%s", task.id)
        return OpResult.success(task.id)

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> OpResult:
        denied = await self._require_auth()
        if denied is not None:
            return denied
        tasks, found = self._patched_tasks(task_id, patch)
        if not found:
            return OpResult.failure(TaskNotFound(task_id))
        self._commit(tasks=tasks)
        self._persist()
        logger.debug("Task updated locally id=%s fields=%s", task_id, sorted(patch))
        return OpResult.success(task_id)

    async def create_project(self, form: ProjectForm) -> OpResult:
        denied = await self._require_auth()
        if denied is not None:
            return denied

        project_id = f"{form.kind}-{new_id('P')}"
        try:
            project, tasks = self._plan_project(form, project_id, include_task_id=True)
        except ActionRejected as e:
            return OpResult.failure(e)

        # One transition: readers see the project and its tasks together.
        self._commit(tasks=(*tasks, *self._tasks), projects=(project, *self._projects))
        self._persist()
        logger.info("Project created locally id=%s kind=%s tasks=%d", project_id, form.kind, len(tasks))
        return OpResult.success(project_id)

    async def refresh(self) -> OpResult:
        return OpResult.success()
