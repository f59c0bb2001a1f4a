# src/sd_workflow/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..sync.base import TaskStateStore

logger = logging.getLogger(__name__)

EXIT_COMMANDS = frozenset({"/exit", "/quit"})


def _stamp(text: str) -> str:
    return f"[{datetime.now().astimezone():%H:%M:%S}] {text}"


def _say(text: str) -> None:
    print(_stamp(text), flush=True)


class _SyncNotifier:
    """
    Store listener that prints one line when the live task count changes.

    Polls that bring nothing new stay silent.
    """

    def __init__(self, store: TaskStateStore) -> None:
        self._live = len(store.live_tasks())
        self._projects = len(store.projects)

    def __call__(self, store: TaskStateStore) -> None:
        live, projects = len(store.live_tasks()), len(store.projects)
        if (live, projects) == (self._live, self._projects):
            return
        self._live, self._projects = live, projects
        pending = len(store.pending_ids)
        _say(f"[sync] {live} live tasks, {projects} projects" + (f", {pending} saving" if pending else ""))


async def _read_line(prompt: str) -> str | None:
    """input() in a worker thread; None on EOF / Ctrl+C."""
    try:
        return (await asyncio.to_thread(input, prompt)).strip()
    except EOFError:
        logger.info("Console EOF received, exiting.")
    except KeyboardInterrupt:
        print()
        logger.info("Console interrupted, exiting.")
    return None


async def run_console_loop(state: AppState) -> None:
    """
    Read slash commands until /exit or EOF.

    The prompt waits in a worker thread, so the store's poll loop keeps
    running on the event loop in between commands.
    """
    logger.info("Console connector started (mode=%s).", state.store.mode)
    _say("Type /help for commands, /exit to quit.")

    unsubscribe = state.store.subscribe(_SyncNotifier(state.store))
    try:
        while True:
            line = await _read_line(f"{state.current_user or 'anon'}> ")
            if line is None or line.lower() in EXIT_COMMANDS:
                break
            if not line:
                continue
            if not line.startswith("/"):
                _say("Commands start with '/'. Use /help to list them.")
                continue

            try:
                reply = await command_registry.handle(state, line, emit=_say)
            except Exception:
                logger.exception("Command handler crashed: %s", line.split()[0])
                reply = "Internal error while handling a command."
            if reply is not None:
                _say(reply)
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
