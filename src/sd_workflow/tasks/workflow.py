# src/sd_workflow/tasks/workflow.py

"""
Workflow templates: the fixed set of tasks generated when a project is created.

Generation is a pure function of the project form. With include_task_id=False
(remote mode, the backing store assigns ids) it is fully deterministic.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from .task_models import NO_SUPPORT, Task, TaskStatus

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

DEFAULT_BU = "BU1"


def new_id(prefix: str = "") -> str:
    """Random uuid; a prefix makes a readable id for local mode only."""
    value = str(uuid.uuid4())
    return f"{prefix}_{value}" if prefix else value


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def strip_invalid_uuid_ids(
    row: Mapping[str, Any], id_fields: Iterable[str] = ("id", "project_id")
) -> dict[str, Any]:
    """Drop id columns that would be rejected by uuid-typed remote columns."""
    out = dict(row)
    for name in id_fields:
        v = out.get(name)
        if isinstance(v, str) and not is_uuid(v):
            del out[name]
    return out


def add_days(ymd: str, days: int) -> str:
    return (date.fromisoformat(ymd) + timedelta(days=days)).isoformat()


@dataclass(slots=True, frozen=True)
class ProjectForm:
    kind: str
    name: str
    supervisor: str
    start_date: str
    doer_default: str
    support_default: str = NO_SUPPORT
    bu: str = DEFAULT_BU
    event_date: str | None = None

    @property
    def effective_event_date(self) -> str:
        return self.event_date or self.start_date


@dataclass(slots=True, frozen=True)
class TemplateStep:
    title: str
    offset_days: int
    # Anchor is the event date, otherwise the start date.
    from_event: bool = True
    # Done by the support owner when there is one.
    support_leads: bool = False


TEMPLATES: dict[str, tuple[TemplateStep, ...]] = {
    "DCP": (
        TemplateStep("Coordinate with the school (confirm schedule and contact person)", -21),
        TemplateStep(
            "Prepare registration, welfare and documents (name lists, forms)", -14, support_leads=True
        ),
        TemplateStep("Prepare activity plan, slides and equipment (with checklist)", -10),
        TemplateStep("Team rehearsal / run-through (onsite roles)", -7),
        TemplateStep("Prepare venue, travel and onsite logistics", -2),
        TemplateStep("Onsite: run the activity at the school (event day)", 0),
        TemplateStep("Summarize results and report (photos, numbers, feedback)", 2),
        TemplateStep("Follow-up and upsell (DCP -> DC / other programs)", 7),
    ),
}

DEFAULT_TEMPLATE: tuple[TemplateStep, ...] = (
    TemplateStep("Collect requirements / brief and define scope", 2, from_event=False),
    TemplateStep("Prepare main content and activities (draft)", 7, from_event=False),
    TemplateStep("Review, revise and finalize", 14, from_event=False),
    TemplateStep("Deliver, summarize results and next action", 16, from_event=False),
)


def template_for(kind: str) -> tuple[TemplateStep, ...]:
    return TEMPLATES.get(kind, DEFAULT_TEMPLATE)


def build_workflow_tasks(
    form: ProjectForm,
    *,
    project_id: str | None = None,
    include_task_id: bool = True,
) -> list[Task]:
    """
    Generate the template tasks for a project.

    Deadlines are offsets from the event date (or the start date for
    start-anchored steps). Raises ValueError if a date is not YYYY-MM-DD.
    """
    event = form.effective_event_date
    doer = form.doer_default
    support = form.support_default or NO_SUPPORT

    out: list[Task] = []
    for step in template_for(form.kind):
        anchor = event if step.from_event else form.start_date
        step_doer = support if step.support_leads and support != NO_SUPPORT else doer
        out.append(
            Task(
                id=new_id("task") if include_task_id else None,
                task=step.title,
                project_id=project_id,
                project=form.kind,
                bu=form.bu,
                type="routine",
                focus="high",
                tag="workflow",
                created_by=form.supervisor,
                doer=step_doer,
                support=support,
                status=TaskStatus.NOT_STARTED,
                assigned_date=form.start_date,
                deadline=add_days(anchor, step.offset_days),
            )
        )
    return out
