# src/sd_workflow/core/errors.py

"""
Error taxonomy of the task/project store.

Gateways and persistence raise these; the store catches them at its boundary
and reports them through OpResult.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class StoreError(Exception):
    """Base class for conditions reported to the caller instead of crashing."""

    default_message = "Store operation failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthRequired(StoreError):
    default_message = "Login required before creating or editing projects and tasks."


class InvalidId(StoreError):
    default_message = "Task id is not a valid uuid; cannot update it on the remote store."

    def __init__(self, task_id: Any = None, message: str | None = None) -> None:
        self.task_id = task_id
        super().__init__(message or f"Task id {task_id!r} is not a valid uuid.")


class RemoteWriteFailed(StoreError):
    default_message = "Remote write failed."


class RemoteNoRowsAffected(StoreError):
    default_message = (
        "Update did not change any row (row not found, or permission denied by row-level security)."
    )


class RemoteReadFailed(StoreError):
    default_message = "Remote fetch failed."


class ParseFailure(StoreError):
    default_message = "Malformed persisted JSON."


class TaskNotFound(StoreError):
    def __init__(self, task_id: Any = None) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id!r} not found.")


class ActionRejected(StoreError):
    default_message = "Action not allowed."


@dataclass(slots=True, frozen=True)
class OpResult:
    """
    Outcome of a store operation.

    - ok=True: value holds the operation's result (e.g. a project id)
    - ok=False: error holds the StoreError; value may still be set when the
      operation partially succeeded (project inserted, task batch failed)
    """

    ok: bool
    value: Any = None
    error: StoreError | None = None

    @classmethod
    def success(cls, value: Any = None) -> OpResult:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: StoreError, value: Any = None) -> OpResult:
        return cls(ok=False, value=value, error=error)

    @property
    def message(self) -> str:
        if self.error is None:
            return "ok"
        return self.error.message
