# src/sd_workflow/tasks/task_actions.py

"""
Task lifecycle actions.

Each action checks who is acting and what state the task is in, then returns
the patch to hand to store.update_task(). They never touch the store
themselves. A rejected action raises ActionRejected.

Role model:
- doer: changes status, submits the result
- doer or support: schedules work_at
- the task's creator (supervisor): confirms, ticks follow-ups, archives
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any

from ..core.errors import ActionRejected
from .datekey import deadline_key, month_range
from .task_models import FOLLOWUP_SLOTS, NO_SUPPORT, Task, TaskStatus
from .workflow import DEFAULT_BU, add_days, new_id

logger = logging.getLogger(__name__)

Patch = dict[str, Any]


def _now_iso(now: datetime | None) -> str:
    return (now or datetime.now(UTC)).isoformat()


def _require_open(task: Task) -> None:
    if task.confirmed:
        raise ActionRejected("Task is already confirmed and can no longer be edited.")


# Fields only the lifecycle actions may change, with the command that does it.
LIFECYCLE_FIELDS: dict[str, str] = {
    "id": "",
    "status": "/status-set",
    "result": "/result",
    "result_submitted": "/submit",
    "confirmed": "/confirm",
    "followup_done": "/followup",
    "work_at": "/workat",
    "work_at_history": "/workat",
    "archived": "/archive",
    "archived_at": "/archive",
    "archived_by": "/archive",
    "created_by": "",
}


def edit_fields(task: Task, patch: Patch) -> Patch:
    """Free-form edit of descriptive fields (title, deadline, doer, ...) on an open task."""
    _require_open(task)
    for field in patch:
        if field in LIFECYCLE_FIELDS:
            via = LIFECYCLE_FIELDS[field]
            hint = f" Use {via}." if via else ""
            raise ActionRejected(f"{field!r} cannot be set directly.{hint}")
    return dict(patch)


def set_work_at(task: Task, new_dt: str, actor: str, *, now: datetime | None = None) -> Patch | None:
    """Reschedule work_at and prepend the change to work_at_history. None if unchanged."""
    _require_open(task)
    if not task.involves(actor):
        raise ActionRejected("Only the doer or support can schedule work on this task.")

    old = task.work_at or ""
    new = new_dt or ""
    if old == new:
        return None

    entry = {"from": old or "-", "to": new or "-", "changed_at": _now_iso(now), "changed_by": actor}
    history = [entry] + [h.to_row() for h in task.work_at_history]
    return {"work_at": new, "work_at_history": history}


def change_status(task: Task, next_status: TaskStatus | str, actor: str) -> Patch:
    _require_open(task)
    if actor != task.doer:
        raise ActionRejected("Only the doer can change the status.")

    status = TaskStatus.from_db(str(next_status))
    if status is TaskStatus.DONE:
        return {"status": status.value, "confirmed": False}
    # Leaving "done" withdraws any submitted result.
    return {
        "status": status.value,
        "result": "",
        "result_submitted": False,
        "confirmed": False,
    }


def submit_result(task: Task, actor: str) -> Patch:
    _require_open(task)
    if actor != task.doer:
        raise ActionRejected("Only the doer can submit the result.")
    if task.status is not TaskStatus.DONE:
        raise ActionRejected("Set the task to done before submitting the result.")
    if not task.result.strip():
        raise ActionRejected("Fill in the result first.")
    return {"result_submitted": True}


def confirm_done(task: Task, actor: str) -> Patch:
    if task.created_by != actor:
        raise ActionRejected("Only the supervisor who created this task can confirm it.")
    if task.status is not TaskStatus.DONE:
        raise ActionRejected("Task is not done yet.")
    if not task.result.strip():
        raise ActionRejected("Task has no result yet.")
    return {
        "confirmed": True,
        "followup_done": [True] * FOLLOWUP_SLOTS,
        "result_submitted": True,
    }


def toggle_followup(task: Task, index: int, actor: str) -> Patch:
    if task.created_by != actor:
        raise ActionRejected("Only the supervisor who created this task can tick follow-ups.")
    _require_open(task)
    if not 0 <= index < FOLLOWUP_SLOTS:
        raise ActionRejected(f"Follow-up index must be between 0 and {FOLLOWUP_SLOTS - 1}.")
    flags = list(task.followup_done)
    flags[index] = not flags[index]
    return {"followup_done": flags}


def followup_plan(assigned: str, deadline: str) -> list[str] | None:
    """
    Three follow-up dates at roughly 33%, 66% and 90% of the assigned->deadline span.

    Dates on or after the deadline are pulled back to the day before it.
    """
    if not assigned or not deadline:
        return None
    try:
        a = date.fromisoformat(assigned)
        d = date.fromisoformat(deadline)
    except ValueError:
        return None

    total = max(1, (d - a).days)
    # Half-up rounding, not banker's rounding.
    plan = [add_days(assigned, max(1, int(total * ratio + 0.5))) for ratio in (0.33, 0.66, 0.9)]
    day_before = add_days(deadline, -1)
    return [x if x < deadline else day_before for x in plan]


def archive_candidates(tasks: Iterable[Task], from_month: str, to_month: str) -> list[Task]:
    """Confirmed, not yet archived tasks whose deadline falls in the month range (inclusive)."""
    lo = month_range(from_month)
    hi = month_range(to_month)
    if lo is None or hi is None:
        raise ActionRejected("Pick both months as YYYY-MM.")

    start = min(lo[0], hi[0])
    end = max(lo[1], hi[1])

    out: list[Task] = []
    for t in tasks:
        if not t.confirmed or t.archived:
            continue
        key = deadline_key(t.deadline)
        if key is not None and start <= key <= end:
            out.append(t)
    return out


def archive_patch(actor: str, *, now: datetime | None = None) -> Patch:
    return {"archived": True, "archived_at": _now_iso(now), "archived_by": actor}


def new_task(
    *,
    created_by: str,
    title: str,
    assigned_date: str,
    deadline: str,
    doer: str,
    support: str = NO_SUPPORT,
    project: str = "",
    bu: str = DEFAULT_BU,
    task_type: str = "routine",
    status: TaskStatus = TaskStatus.NOT_STARTED,
) -> Task:
    """Build an ad-hoc task (not part of a workflow template)."""
    if not assigned_date:
        raise ActionRejected("Pick the assigned date.")
    if not title or not title.strip():
        raise ActionRejected("Fill in the task title.")
    if not deadline:
        raise ActionRejected("Pick a deadline.")

    task = Task(
        id=new_id(),
        task=title.strip(),
        project=project,
        bu=bu,
        type=task_type,
        created_by=created_by,
        doer=doer,
        support=support or NO_SUPPORT,
        status=status,
        assigned_date=assigned_date,
        deadline=deadline,
    )
    logger.debug("Built task id=%s doer=%s deadline=%s", task.id, doer, deadline)
    return task
