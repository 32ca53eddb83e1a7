# src/tasktrack/core/errors.py

from __future__ import annotations


class TaskTrackError(Exception):
    """Base class for errors raised by tasktrack."""


class NotFound(TaskTrackError):
    """
    A task or user id is absent from the store.

    Task update/delete treat this as a no-op instead of raising, so this is
    only raised by explicit lookups (e.g. console commands resolving an id).
    """


class StoreUnavailable(TaskTrackError):
    """The entity or preference store could not be read or written."""


class InvalidState(TaskTrackError):
    """An internal invariant was broken (e.g. the user set became empty)."""
