"""Change filters — decide whether a transition is worth a notification.

A filter receives the old and new value at the listener's granularity: the
whole State, the raw scope value, or the projected value.
"""

from __future__ import annotations

from typing import Any, Callable

Filter = Callable[[Any, Any], bool]


def DEFAULT(old: Any, new: Any) -> bool:
    """Notify only if the value changed (identity or equality)."""
    return old is not new and old != new


EQUALS = DEFAULT


def IDENTITY(old: Any, new: Any) -> bool:
    """Notify whenever a new object was produced, even if it compares equal."""
    return old is not new


def ANY(old: Any, new: Any) -> bool:
    return True
