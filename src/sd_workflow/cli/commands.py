# src/sd_workflow/cli/commands.py

from __future__ import annotations

import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import date

from ..core.errors import ActionRejected, OpResult
from ..core.state import AppState
from ..tasks import task_actions
from ..tasks.ordering import Bucket, bucket_of
from ..tasks.task_models import NO_SUPPORT, Task, TaskStatus
from ..tasks.workflow import ProjectForm

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return await handler(state, args, emit)
        except ActionRejected as e:
            state.last_error = e.message
            return f"Not allowed: {e.message}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----

_BUCKET_LABEL = {Bucket.ACTIVE: "  ", Bucket.PENDING: "P ", Bucket.CONFIRMED: "C "}


def _short_id(task_id: str | None) -> str:
    return (task_id or "?")[:8]


def format_task_line(task: Task) -> str:
    """One line per task: bucket marker, short id, deadline, doer/support, status, title."""
    who = task.doer if not task.has_support else f"{task.doer}+{task.support}"
    return (
        f"{_BUCKET_LABEL[bucket_of(task)]}{_short_id(task.id):<8} "
        f"{task.deadline or '-':<10} {who:<14} {task.status.value:<11} {task.task}"
    )


def _report(state: AppState, result: OpResult, ok_text: str) -> str:
    if result.ok:
        state.last_error = None
        return ok_text
    state.last_error = result.message
    return f"Error: {result.message}"


def resolve_task(state: AppState, token: str) -> Task:
    """Find a live task by full id or by a unique id prefix."""
    exact = state.store.get_task(token)
    if exact is not None:
        return exact
    matches = [t for t in state.store.live_tasks() if (t.id or "").startswith(token)]
    if not matches:
        raise ActionRejected(f"No task matches {token!r}.")
    if len(matches) > 1:
        raise ActionRejected(f"{token!r} matches {len(matches)} tasks; use more characters.")
    return matches[0]


def _require_user(state: AppState) -> str:
    if not state.current_user:
        raise ActionRejected("Set who you are first: /whoami <name>.")
    return state.current_user


def _parse_value(raw: str) -> object:
    low = raw.lower()
    if low in ("true", "false"):
        return low == "true"
    if raw == "-":
        return ""
    return raw


def _parse_status(raw: str) -> TaskStatus:
    norm = raw.replace("-", " ").replace("_", " ").strip().lower()
    try:
        return TaskStatus(norm)
    except ValueError as e:
        allowed = ", ".join(s.value.replace(" ", "-") for s in TaskStatus)
        raise ActionRejected(f"Unknown status {raw!r}; use one of: {allowed}.") from e


# ---- commands ----


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    store = state.store
    return (
        "Status:\n"
        f"  Mode: {store.mode}\n"
        f"  User: {state.current_user or '-'}\n"
        f"  Tasks: {len(store.live_tasks())} live / {len(store.tasks)} total\n"
        f"  Projects: {len(store.projects)}\n"
        f"  Pending writes: {len(store.pending_ids)}\n"
        f"  Last error: {state.last_error or '-'}"
    )


async def cmd_whoami(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return f"You are {state.current_user or '(nobody)'}. Use /whoami <name> to change."
    state.current_user = args[0]
    return f"Acting as {state.current_user}."


async def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /tasks            -> all live tasks, current sort direction
    /tasks asc|desc   -> set the active-bucket sort direction
    /tasks mine       -> only tasks where you are doer or support
    """
    opts = {a.lower() for a in args}
    if "asc" in opts:
        state.sort_ascending = True
    elif "desc" in opts:
        state.sort_ascending = False

    where = None
    if "mine" in opts:
        user = _require_user(state)
        where = lambda t: t.involves(user)  # noqa: E731

    tasks = state.store.sorted_tasks(state.sort_ascending, where=where)
    if not tasks:
        return "No tasks."
    direction = "earliest->latest" if state.sort_ascending else "latest->earliest"
    lines = [f"Tasks ({direction}; P = pending review, C = confirmed):"]
    lines.extend(format_task_line(t) for t in tasks)
    return "\n".join(lines)


async def cmd_projects(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    projects = state.store.projects
    if not projects:
        return "No projects."
    lines = ["Projects:"]
    for p in projects:
        lines.append(
            f"  {p.id or '?'} {p.kind} {p.name} (start {p.start_date}, event {p.effective_event_date}, "
            f"owner {p.doer_default}/{p.support_default})"
        )
    return "\n".join(lines)


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/add <deadline> <doer> <title...>"""
    if len(args) < 3:
        return "Usage: /add <deadline YYYY-MM-DD> <doer> <title...>"
    user = _require_user(state)
    task = task_actions.new_task(
        created_by=user,
        title=" ".join(args[2:]),
        assigned_date=date.today().isoformat(),
        deadline=args[0],
        doer=args[1],
    )
    result = await state.store.add_task(task)
    return _report(state, result, f"Task added: {_short_id(result.value)}")


async def cmd_set(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/set <id> field=value ... (descriptive fields only; lifecycle fields have their own commands)"""
    if len(args) < 2:
        return "Usage: /set <id> field=value [field=value ...]"
    task = resolve_task(state, args[0])
    patch: dict[str, object] = {}
    for pair in args[1:]:
        if "=" not in pair:
            return f"Bad assignment {pair!r}; expected field=value."
        key, raw = pair.split("=", 1)
        patch[key.strip()] = _parse_value(raw.strip())
    patch = task_actions.edit_fields(task, patch)
    result = await state.store.update_task(task.id or "", patch)
    return _report(state, result, f"Updated {_short_id(task.id)}: {', '.join(sorted(patch))}")


async def cmd_set_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/status-set <id> <not-started|ongoing|done>"""
    if len(args) < 2:
        return "Usage: /status-set <id> <not-started|ongoing|done>"
    user = _require_user(state)
    task = resolve_task(state, args[0])
    patch = task_actions.change_status(task, _parse_status(args[1]), user)
    result = await state.store.update_task(task.id or "", patch)
    return _report(state, result, f"{_short_id(task.id)} -> {patch['status']}")


async def cmd_result(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/result <id> <text...>"""
    if len(args) < 2:
        return "Usage: /result <id> <text...>"
    user = _require_user(state)
    task = resolve_task(state, args[0])
    if task.confirmed:
        raise ActionRejected("Task is already confirmed and can no longer be edited.")
    if user != task.doer:
        raise ActionRejected("Only the doer can write the result.")
    result = await state.store.update_task(task.id or "", {"result": " ".join(args[1:])})
    return _report(state, result, f"Result saved for {_short_id(task.id)}.")


async def cmd_submit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /submit <id>"
    user = _require_user(state)
    task = resolve_task(state, args[0])
    patch = task_actions.submit_result(task, user)
    result = await state.store.update_task(task.id or "", patch)
    return _report(state, result, f"Result submitted for {_short_id(task.id)}.")


async def cmd_confirm(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /confirm <id>"
    user = _require_user(state)
    task = resolve_task(state, args[0])
    patch = task_actions.confirm_done(task, user)
    result = await state.store.update_task(task.id or "", patch)
    return _report(state, result, f"Confirmed {_short_id(task.id)}.")


async def cmd_followup(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/followup <id> <1|2|3>"""
    if len(args) < 2 or not args[1].isdigit():
        return "Usage: /followup <id> <1|2|3>"
    user = _require_user(state)
    task = resolve_task(state, args[0])
    patch = task_actions.toggle_followup(task, int(args[1]) - 1, user)
    result = await state.store.update_task(task.id or "", patch)
    flags = "".join("x" if f else "." for f in patch["followup_done"])
    return _report(state, result, f"Follow-ups for {_short_id(task.id)}: [{flags}]")


async def cmd_followups(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/followups <id>: planned follow-up dates and which ones are ticked."""
    if not args:
        return "Usage: /followups <id>"
    task = resolve_task(state, args[0])
    plan = task_actions.followup_plan(task.assigned_date, task.deadline)
    if plan is None:
        return f"No follow-up plan for {_short_id(task.id)}: needs YYYY-MM-DD assigned date and deadline."
    lines = [f"Follow-ups for {_short_id(task.id)} (deadline {task.deadline}):"]
    for n, (day, done) in enumerate(zip(plan, task.followup_done), start=1):
        lines.append(f"  {n}. {day} [{'x' if done else ' '}]")
    return "\n".join(lines)


async def cmd_workat(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/workat <id> <YYYY-MM-DDTHH:MM|->"""
    if len(args) < 2:
        return "Usage: /workat <id> <YYYY-MM-DDTHH:MM|->"
    user = _require_user(state)
    task = resolve_task(state, args[0])
    new_dt = "" if args[1] == "-" else args[1]
    patch = task_actions.set_work_at(task, new_dt, user)
    if patch is None:
        return "Work time unchanged."
    result = await state.store.update_task(task.id or "", patch)
    return _report(state, result, f"Work time for {_short_id(task.id)}: {new_dt or '-'}")


async def cmd_project(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/project <kind> <start> <event|-> <doer> <support|-> <name...>"""
    if len(args) < 6:
        return "Usage: /project <kind> <start YYYY-MM-DD> <event YYYY-MM-DD|-> <doer> <support|-> <name...>"
    user = _require_user(state)
    kind, start, event, doer, support = args[:5]
    form = ProjectForm(
        kind=kind.upper(),
        name=" ".join(args[5:]),
        supervisor=user,
        start_date=start,
        event_date=None if event == "-" else event,
        doer_default=doer,
        support_default=support or NO_SUPPORT,
    )
    result = await state.store.create_project(form)
    if not result.ok and result.value:
        state.last_error = result.message
        return f"Project {result.value} created, but its tasks were not: {result.message}"
    return _report(state, result, f"Project created: {result.value}")


async def cmd_archive(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/archive <from YYYY-MM> <to YYYY-MM> -- hide confirmed tasks in that deadline range"""
    if len(args) < 2:
        return "Usage: /archive <from YYYY-MM> <to YYYY-MM>"
    user = _require_user(state)
    candidates = task_actions.archive_candidates(state.store.live_tasks(), args[0], args[1])
    if not candidates:
        return "No confirmed tasks in that range."
    mine = [t for t in candidates if t.created_by == user]
    if not mine:
        raise ActionRejected("Only the supervisor who created the tasks can archive them.")

    failed = 0
    patch = task_actions.archive_patch(user)
    for t in mine:
        result = await state.store.update_task(t.id or "", patch)
        if not result.ok:
            failed += 1
            state.last_error = result.message
        if emit:
            with contextlib.suppress(Exception):
                emit(f"[archive] {_short_id(t.id)} {'ok' if result.ok else result.message}")
    done = len(mine) - failed
    return f"Archived {done} confirmed task(s)" + (f", {failed} failed." if failed else ".")


async def cmd_refresh(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    result = await state.store.refresh()
    return _report(state, result, f"Refreshed: {len(state.store.live_tasks())} live tasks.")


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show store mode, counts and last error.")
registry.register("whoami", cmd_whoami, help_text="Show or set the acting user: /whoami <name>.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [asc|desc] [mine].", aliases=["ls"])
registry.register("projects", cmd_projects, help_text="List projects.")
registry.register("add", cmd_add, help_text="Add a task: /add <deadline> <doer> <title...>.")
registry.register("set", cmd_set, help_text="Edit task details: /set <id> field=value ... (title, deadline, doer, ...)")
registry.register(
    "status-set",
    cmd_set_status,
    help_text="Change status: /status-set <id> <not-started|ongoing|done>.",
    aliases=["mark"],
)
registry.register("result", cmd_result, help_text="Write the result: /result <id> <text...>.")
registry.register("submit", cmd_submit, help_text="Submit the result for review: /submit <id>.")
registry.register("confirm", cmd_confirm, help_text="Confirm a submitted task: /confirm <id>.")
registry.register("followup", cmd_followup, help_text="Tick a follow-up: /followup <id> <1|2|3>.")
registry.register("followups", cmd_followups, help_text="Show planned follow-up dates: /followups <id>.")
registry.register("workat", cmd_workat, help_text="Schedule work: /workat <id> <datetime|->.")
registry.register(
    "project",
    cmd_project,
    help_text="Create a project: /project <kind> <start> <event|-> <doer> <support|-> <name...>.",
)
registry.register("archive", cmd_archive, help_text="Archive confirmed tasks: /archive <from> <to> (YYYY-MM).")
registry.register("refresh", cmd_refresh, help_text="Poll the backing store now.")
