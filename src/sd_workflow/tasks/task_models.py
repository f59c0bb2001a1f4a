# src/sd_workflow/tasks/task_models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import StrEnum
from typing import Any

NO_SUPPORT = "-"
FOLLOWUP_SLOTS = 3


class TaskStatus(StrEnum):
    """Task lifecycle status as stored in the `status` column."""

    NOT_STARTED = "not started"
    ONGOING = "ongoing"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.NOT_STARTED
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.NOT_STARTED


def _as_bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "y", "on"}
    return bool(v)


def _as_opt_str(v: Any) -> str | None:
    if v is None:
        return None
    return str(v)


def normalize_followups(raw: Any) -> tuple[bool, ...]:
    """Always exactly FOLLOWUP_SLOTS booleans (pad with False, drop extras)."""
    vals = [_as_bool(x) for x in raw] if isinstance(raw, (list, tuple)) else []
    vals = vals[:FOLLOWUP_SLOTS]
    vals.extend([False] * (FOLLOWUP_SLOTS - len(vals)))
    return tuple(vals)


@dataclass(slots=True, frozen=True)
class WorkAtChange:
    """One entry of Task.work_at_history (newest first in the list)."""

    from_value: str
    to_value: str
    changed_at: str
    changed_by: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> WorkAtChange:
        # Older snapshots used "at"/"by".
        return cls(
            from_value=str(row.get("from") or "-"),
            to_value=str(row.get("to") or "-"),
            changed_at=str(row.get("changed_at") or row.get("at") or ""),
            changed_by=str(row.get("changed_by") or row.get("by") or ""),
        )

    def to_row(self) -> dict[str, str]:
        return {
            "from": self.from_value,
            "to": self.to_value,
            "changed_at": self.changed_at,
            "changed_by": self.changed_by,
        }


@dataclass(slots=True, frozen=True)
class Task:
    id: str | None
    task: str = ""
    project_id: str | None = None
    project: str = ""
    bu: str = ""
    type: str = "routine"
    focus: str = ""
    tag: str = ""

    created_by: str = ""
    doer: str = ""
    support: str = NO_SUPPORT

    status: TaskStatus = TaskStatus.NOT_STARTED
    result: str = ""
    result_submitted: bool = False
    confirmed: bool = False
    archived: bool = False
    archived_at: str | None = None
    archived_by: str | None = None

    assigned_date: str = ""
    deadline: str = ""
    work_at: str = ""
    work_at_history: tuple[WorkAtChange, ...] = ()
    followup_done: tuple[bool, ...] = (False, False, False)
    created_at: str | None = None

    # Columns the backing store returns that the model does not know about.
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Task:
        history_raw = row.get("work_at_history")
        history = tuple(
            WorkAtChange.from_row(h)
            for h in (history_raw if isinstance(history_raw, (list, tuple)) else [])
            if isinstance(h, Mapping)
        )
        raw_id = row.get("id")
        return cls(
            id=str(raw_id) if raw_id not in (None, "") else None,
            task=str(row.get("task") or ""),
            project_id=_as_opt_str(row.get("project_id")),
            project=str(row.get("project") or ""),
            bu=str(row.get("bu") or ""),
            type=str(row.get("type") or "routine"),
            focus=str(row.get("focus") or ""),
            tag=str(row.get("tag") or ""),
            created_by=str(row.get("created_by") or ""),
            doer=str(row.get("doer") or ""),
            support=str(row.get("support") or NO_SUPPORT),
            status=TaskStatus.from_db(row.get("status")),
            result=str(row.get("result") or ""),
            result_submitted=_as_bool(row.get("result_submitted")),
            confirmed=_as_bool(row.get("confirmed")),
            archived=_as_bool(row.get("archived")),
            archived_at=_as_opt_str(row.get("archived_at")),
            archived_by=_as_opt_str(row.get("archived_by")),
            assigned_date=str(row.get("assigned_date") or ""),
            deadline=str(row.get("deadline") or ""),
            work_at=str(row.get("work_at") or ""),
            work_at_history=history,
            followup_done=normalize_followups(row.get("followup_done")),
            created_at=_as_opt_str(row.get("created_at")),
            extra={k: v for k, v in row.items() if k not in _TASK_FIELDS},
        )

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = dict(self.extra)
        for f in fields(self):
            if f.name == "extra":
                continue
            row[f.name] = getattr(self, f.name)
        if row["id"] is None:
            del row["id"]
        if row["created_at"] is None:
            del row["created_at"]
        row["status"] = self.status.value
        row["work_at_history"] = [h.to_row() for h in self.work_at_history]
        row["followup_done"] = list(self.followup_done)
        return row

    def with_patch(self, patch: Mapping[str, Any]) -> Task:
        """Return a new Task with `patch` merged in (unknown keys go to `extra`)."""
        merged = self.to_row()
        merged.update(patch)
        return Task.from_row(merged)

    @property
    def has_support(self) -> bool:
        return bool(self.support) and self.support != NO_SUPPORT

    def involves(self, user: str) -> bool:
        return bool(user) and user in (self.doer, self.support)


_TASK_FIELDS = frozenset(f.name for f in fields(Task)) - {"extra"}


@dataclass(slots=True, frozen=True)
class Project:
    id: str | None
    kind: str
    name: str = ""
    bu: str = ""
    supervisor: str = ""
    doer_default: str = ""
    support_default: str = NO_SUPPORT
    start_date: str = ""
    event_date: str | None = None
    created_at: str | None = None

    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def effective_event_date(self) -> str:
        return self.event_date or self.start_date

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Project:
        raw_id = row.get("id") or row.get("project_id") or row.get("projectId")
        name = row.get("name") or row.get("title") or row.get("project_name") or row.get("projectTitle")
        known = {
            "id", "project_id", "projectId", "kind", "name", "title", "project_name", "projectTitle",
            "bu", "supervisor", "doer", "doer_default", "support_default", "start_date",
            "event_date", "created_at",
        }
        return cls(
            id=str(raw_id) if raw_id else None,
            kind=str(row.get("kind") or ""),
            name=str(name or ""),
            bu=str(row.get("bu") or ""),
            supervisor=str(row.get("supervisor") or ""),
            doer_default=str(row.get("doer_default") or row.get("doer") or ""),
            support_default=str(row.get("support_default") or NO_SUPPORT),
            start_date=str(row.get("start_date") or ""),
            event_date=str(row.get("event_date")) if row.get("event_date") else None,
            created_at=_as_opt_str(row.get("created_at")),
            extra={k: v for k, v in row.items() if k not in known},
        )

    def to_row(self) -> dict[str, Any]:
        """
        Column dict for the backing store.

        `title` and `doer` mirror `name` and `doer_default` because the remote
        schema declares them NOT NULL.
        """
        row: dict[str, Any] = dict(self.extra)
        if self.id is not None:
            row["id"] = self.id
        row.update(
            {
                "kind": self.kind,
                "name": self.name,
                "title": self.name,
                "bu": self.bu,
                "supervisor": self.supervisor,
                "doer": self.doer_default,
                "doer_default": self.doer_default,
                "support_default": self.support_default,
                "start_date": self.start_date,
                "event_date": self.event_date or "",
            }
        )
        if self.created_at is not None:
            row["created_at"] = self.created_at
        return row
