# src/sd_workflow/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the store.

The store depends on Protocols instead of concrete implementations.
This keeps the remote backend and the offline snapshot swappable and makes
testing with fakes easy.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Protocol

Row = dict[str, Any]


@dataclass(slots=True, frozen=True)
class Session:
    """An authenticated remote session (how it was obtained is not our concern)."""

    access_token: str
    user_id: str | None = None
    email: str | None = None


@dataclass(slots=True, frozen=True)
class AuthCheck:
    ok: bool
    session: Session | None = None


@dataclass(slots=True)
class RemoteSnapshot:
    """One poll result: full projects list and non-archived tasks, newest first."""

    projects: list[Row] = field(default_factory=list)
    tasks: list[Row] = field(default_factory=list)


class RemoteGateway(Protocol):
    """
    Remote backing store.

    Failures are raised as RemoteReadFailed (fetch) or RemoteWriteFailed (writes).
    """

    def fetch_all(self) -> Awaitable[RemoteSnapshot]: ...

    def insert_project(self, row: Row) -> Awaitable[str]:
        """Insert a project and return the id generated by the backing store."""
        ...

    def insert_tasks(self, rows: list[Row]) -> Awaitable[None]: ...

    def insert_task(self, row: Row) -> Awaitable[Row | None]:
        """Insert a task; returns the stored row, or None if it could not be read back."""
        ...

    def update_task(self, task_id: str, patch: Row) -> Awaitable[int]:
        """Patch a task by id; returns the number of affected rows (0 = not found / denied)."""
        ...

    def get_session(self) -> Awaitable[Session | None]: ...


class LocalPersistence(Protocol):
    """Synchronous key/value snapshot store."""

    def load(self, key: str, default: Any = None) -> Any: ...
    def save(self, key: str, value: Any) -> None: ...


class AuthGate(Protocol):
    def ensure_authenticated(self) -> Awaitable[AuthCheck]: ...


class Clock(Protocol):
    """Timer used by the poll loop; cancel the awaiting task to stop it."""

    def sleep(self, seconds: float) -> Awaitable[None]: ...
