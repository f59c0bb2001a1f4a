# tests/test_commands.py

from __future__ import annotations

import pytest

from sd_workflow.cli.commands import CommandRegistry, registry
from sd_workflow.tasks.task_models import Task, TaskStatus


async def _run(state, line: str, emit=None) -> str:
    reply = await registry.handle(state, line, emit=emit)
    assert reply is not None
    return reply


@pytest.mark.asyncio
async def test_command_registry_routes_with_emit(state) -> None:
    reg = CommandRegistry()
    notes: list[str] = []

    async def h(state, args, emit):
        if emit is not None:
            emit("note")
        return "h:" + ",".join(args)

    reg.register("a", h, "a", aliases=["alpha"])

    assert await reg.handle(state, "/a x y", emit=notes.append) == "h:x,y"
    assert await reg.handle(state, "/ALPHA z") == "h:z"
    assert notes == ["note"]
    assert "/a - a" in reg.build_help()


@pytest.mark.asyncio
async def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert await reg.handle(state, "hello") is None
    assert "Unknown command" in (await reg.handle(state, "/nope") or "")
    assert "Empty command" in (await reg.handle(state, "/") or "")


@pytest.mark.asyncio
async def test_whoami_and_status(state) -> None:
    assert "sup" in await _run(state, "/whoami")
    assert await _run(state, "/whoami dana") == "Acting as dana."
    assert state.current_user == "dana"

    status = await _run(state, "/status")
    assert "Mode: local" in status
    assert "User: dana" in status


@pytest.mark.asyncio
async def test_task_lifecycle_through_commands(state) -> None:
    reply = await _run(state, "/add 2025-01-09 dana Call the school")
    assert reply.startswith("Task added: ")
    task = state.store.tasks[0]
    short = task.id[:8]
    assert task.task == "Call the school" and task.created_by == "sup"

    await _run(state, "/whoami dana")
    assert "-> done" in await _run(state, f"/mark {short} done")
    assert "saved" in await _run(state, f"/result {short} slides and photos")
    assert "submitted" in await _run(state, f"/submit {short}")

    await _run(state, "/whoami sup")
    assert "Confirmed" in await _run(state, f"/confirm {short}")

    done = state.store.get_task(task.id)
    assert done.status is TaskStatus.DONE
    assert done.result == "slides and photos"
    assert done.confirmed and done.followup_done == (True, True, True)

    listing = await _run(state, "/tasks")
    assert f"C {short}" in listing


@pytest.mark.asyncio
async def test_rejected_action_sets_last_error(state) -> None:
    await _run(state, "/add 2025-01-09 dana Call the school")
    short = state.store.tasks[0].id[:8]

    await _run(state, "/whoami sam")
    reply = await _run(state, f"/mark {short} ongoing")
    assert reply.startswith("Not allowed:")
    assert state.last_error == "Only the doer can change the status."
    assert state.store.tasks[0].status is TaskStatus.NOT_STARTED


@pytest.mark.asyncio
async def test_ambiguous_and_unknown_ids(state) -> None:
    await state.store.add_task(Task(id="abc1", deadline="2025-01-01", doer="dana", created_by="sup"))
    await state.store.add_task(Task(id="abc2", deadline="2025-01-02", doer="dana", created_by="sup"))

    assert "matches 2 tasks" in await _run(state, "/confirm ab")
    assert "No task matches" in await _run(state, "/confirm zz")
    assert "Follow-ups for abc1: [x..]" in await _run(state, "/followup abc1 1")


@pytest.mark.asyncio
async def test_set_edits_descriptive_fields(state) -> None:
    await state.store.add_task(Task(id="t-1", deadline="2025-01-01", support="sam"))
    reply = await _run(state, "/set t-1 focus=high deadline=2025-02-01 support=-")
    assert reply.startswith("Updated t-1")
    task = state.store.get_task("t-1")
    assert task.focus == "high"
    assert task.deadline == "2025-02-01"
    assert not task.has_support

    assert "Bad assignment" in await _run(state, "/set t-1 focus")


@pytest.mark.asyncio
async def test_set_cannot_change_lifecycle_fields(state) -> None:
    await state.store.add_task(Task(id="t-1", created_by="sup", doer="dana"))

    reply = await _run(state, "/set t-1 confirmed=true")
    assert reply.startswith("Not allowed") and "/confirm" in reply
    reply = await _run(state, "/set t-1 focus=high result_submitted=true")
    assert "/submit" in reply

    task = state.store.get_task("t-1")
    assert task.confirmed is False
    assert task.result_submitted is False
    assert task.focus != "high"


@pytest.mark.asyncio
async def test_followups_shows_planned_dates_and_ticks(state) -> None:
    await state.store.add_task(
        Task(
            id="t-1",
            assigned_date="2025-01-01",
            deadline="2025-01-11",
            followup_done=(True, False, False),
        )
    )
    reply = await _run(state, "/followups t-1")
    assert reply.splitlines() == [
        "Follow-ups for t-1 (deadline 2025-01-11):",
        "  1. 2025-01-04 [x]",
        "  2. 2025-01-08 [ ]",
        "  3. 2025-01-10 [ ]",
    ]

    await state.store.add_task(Task(id="t-2", assigned_date="2025-01-01", deadline="soon"))
    assert "No follow-up plan" in await _run(state, "/followups t-2")


@pytest.mark.asyncio
async def test_workat_records_history(state) -> None:
    await state.store.add_task(Task(id="t-1", doer="dana", support="sam"))
    await _run(state, "/whoami sam")
    assert "2025-01-07T14:00" in await _run(state, "/workat t-1 2025-01-07T14:00")
    assert await _run(state, "/workat t-1 2025-01-07T14:00") == "Work time unchanged."

    task = state.store.get_task("t-1")
    assert task.work_at == "2025-01-07T14:00"
    assert task.work_at_history[0].changed_by == "sam"


@pytest.mark.asyncio
async def test_tasks_sorting_and_mine_filter(state) -> None:
    await state.store.add_task(Task(id="a-task", deadline="2025-01-01", doer="dana", task="first"))
    await state.store.add_task(Task(id="b-task", deadline="2025-01-05", doer="sam", task="second"))

    asc = await _run(state, "/tasks")
    assert asc.index("first") < asc.index("second")

    desc = await _run(state, "/tasks desc")
    assert state.sort_ascending is False
    assert desc.index("second") < desc.index("first")

    await _run(state, "/whoami dana")
    mine = await _run(state, "/tasks mine")
    assert "first" in mine and "second" not in mine


@pytest.mark.asyncio
async def test_project_and_archive(state) -> None:
    reply = await _run(state, "/project dc 2025-01-01 - dana - Summer camp")
    assert reply.startswith("Project created: DC-P_")
    assert len(state.store.tasks) == 4
    assert "Summer camp" in await _run(state, "/projects")

    first = state.store.tasks[0]
    await state.store.update_task(
        first.id, {"status": "done", "result": "ok", "result_submitted": True, "confirmed": True}
    )

    notes: list[str] = []
    reply = await _run(state, "/archive 2025-01 2025-01", emit=notes.append)
    assert reply == "Archived 1 confirmed task(s)."
    assert len(notes) == 1
    assert first.id not in {t.id for t in state.store.live_tasks()}

    assert await _run(state, "/archive 2025-01 2025-01") == "No confirmed tasks in that range."


@pytest.mark.asyncio
async def test_commands_need_a_user(state) -> None:
    state.current_user = ""
    reply = await _run(state, "/add 2025-01-09 dana Call")
    assert "whoami" in reply
    assert state.store.tasks == ()


@pytest.mark.asyncio
async def test_usage_messages(state) -> None:
    assert (await _run(state, "/add x")).startswith("Usage:")
    assert (await _run(state, "/project DC")).startswith("Usage:")
    assert "Available commands" in await _run(state, "/help")
