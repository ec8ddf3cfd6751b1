"""Match specifications — which part of the state a listener observes.

Every subscription carries exactly one of these records:

- AllState(): the whole State.
- Key(key): the raw value of one scope.
- TypeKey(cls): the scope tagged for cls, which must hold a cls instance.
- KeyAndType(key, cls): the scope at key, which must hold a cls instance.
- Projection(fn): a value derived from the whole State.

Listeners and projections get a copy of the State, never the published
snapshot itself.

A record answers two questions during a notification pass: does this state
transition concern me (is_affected), and what value do I observe in a given
State (extract). A typed record whose scope holds the wrong type extracts
MISMATCH, which the listener registry reports and never delivers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from scopestore.exceptions import ConfigurationError
from scopestore.state import State


class _Mismatch:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISMATCH"

    def __bool__(self) -> bool:
        return False


MISMATCH: Any = _Mismatch()


class Selector:
    """Base class for match specifications."""

    def is_affected(self, state: State, changed_keys: frozenset[str]) -> bool:
        return bool(changed_keys)

    def extract(self, state: State) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class AllState(Selector):
    def extract(self, state: State) -> Any:
        return state.copy()


@dataclass(frozen=True)
class Key(Selector):
    key: str

    def is_affected(self, state: State, changed_keys: frozenset[str]) -> bool:
        return self.key in changed_keys

    def extract(self, state: State) -> Any:
        return state.get(self.key)


def _typed(state: State, key: str, cls: type) -> Any:
    if key not in state:
        return None
    value = state.get(key)
    return value if isinstance(value, cls) else MISMATCH


@dataclass(frozen=True)
class TypeKey(Selector):
    cls: type

    def is_affected(self, state: State, changed_keys: frozenset[str]) -> bool:
        return state.type_keys.key_for(self.cls) in changed_keys

    def extract(self, state: State) -> Any:
        return _typed(state, state.type_keys.key_for(self.cls), self.cls)


@dataclass(frozen=True)
class KeyAndType(Selector):
    key: str
    cls: type

    def is_affected(self, state: State, changed_keys: frozenset[str]) -> bool:
        return self.key in changed_keys

    def extract(self, state: State) -> Any:
        return _typed(state, self.key, self.cls)


@dataclass(frozen=True)
class Projection(Selector):
    fn: Callable[[State], Any]

    def extract(self, state: State) -> Any:
        return self.fn(state.copy())


def selector_for(
    key: str | None = None,
    cls: type | None = None,
    projection: Callable[[State], Any] | None = None,
) -> Selector:
    """Build the match specification for an add_listener call."""
    if projection is not None:
        if key is not None or cls is not None:
            raise ConfigurationError("A projection cannot be combined with a key or type")
        if not callable(projection):
            raise ConfigurationError(f"Projection must be callable, got {projection!r}")
        return Projection(projection)
    if cls is not None and not isinstance(cls, type):
        raise ConfigurationError(f"Listener type must be a class, got {cls!r}")
    if key is not None and (not isinstance(key, str) or not key):
        raise ConfigurationError(f"Listener key must be a non-empty string, got {key!r}")
    if key is not None and cls is not None:
        return KeyAndType(key, cls)
    if key is not None:
        return Key(key)
    if cls is not None:
        return TypeKey(cls)
    return AllState()
