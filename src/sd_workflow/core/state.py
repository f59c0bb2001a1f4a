# src/sd_workflow/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field

from ..sync.base import TaskStateStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    store: TaskStateStore

    # Who is acting in the console (doer / support / supervisor name).
    current_user: str = ""
    # Sort toggle for /tasks when no direction is given.
    sort_ascending: bool = True

    # Last error message shown to the user (for /status).
    last_error: str | None = field(default=None)
