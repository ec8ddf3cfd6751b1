"""Actions — immutable messages describing an intended state change.

An action carries a type tag, used to look up the reducers responsible for
it, and a payload that is opaque to the store.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, ParamSpec

P = ParamSpec("P")


@dataclass(frozen=True)
class Action:
    """A typed message. Only `type` and `payload` matter to the store."""

    type: str
    payload: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, str) or not self.type:
            raise TypeError(f"Action type must be a non-empty string, got {self.type!r}")


def action_creator(action_type: str) -> Callable[[Callable[P, Any]], Callable[P, Action]]:
    """Decorator: turn a payload factory into an action factory.

    Usage:
        @action_creator("ADD_TODO")
        def add_todo(text):
            return {"text": text, "done": False}

        store.dispatch(add_todo("write tests"))
        # Action(type="ADD_TODO", payload={"text": "write tests", "done": False})
    """

    def decorator(fn: Callable[P, Any]) -> Callable[P, Action]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> Action:
            return Action(action_type, fn(*args, **kwargs))

        wrapper.action_type = action_type  # type: ignore[attr-defined]
        return wrapper

    return decorator
