"""Exception hierarchy for scopestore."""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for all scopestore errors."""


class ConfigurationError(StoreError):
    """Invalid store setup: duplicate reducers, malformed selectors, type tags."""


class ReentrancyError(StoreError):
    """dispatch() was called synchronously from inside a reducer."""

    def __init__(self, action) -> None:
        self.action = action
        super().__init__(
            f"Reducers may not dispatch actions (attempted {getattr(action, 'type', action)!r})"
        )


class TypeMismatchWarning(UserWarning):
    """A listener's declared type does not match the value stored at its key.

    Never raised. The store logs it and skips the delivery.
    """
