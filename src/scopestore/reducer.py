"""Reducers — the only code allowed to compute a scope's next value.

A reducer owns one scope (a string key or a type) and optionally declares
the action types it handles. For every dispatched action the registry runs
each reducer registered for that action type against the current value of
its scope. All scopes are reduced into one new State before the store
publishes it, so readers never see a partially reduced snapshot.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable

from scopestore.action import Action
from scopestore.exceptions import ConfigurationError
from scopestore.state import State, TypeKeys


class Reducer:
    """Contract for update logic.

    Subclasses set `state_key` (str or type) and, optionally, `action_types`.
    `reduce` returns the scope's next value, or None when nothing changed.
    Returning the very same object also counts as unchanged.
    """

    state_key: str | type = ""
    action_types: frozenset[str] | None = None

    def initial_state(self) -> Any:
        return None

    def reduce(self, state: Any, action: Action) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.state_key!r})"


class FunctionReducer(Reducer):
    """Reducer built from a plain `(state, action) -> new_state` function."""

    def __init__(
        self,
        fn: Callable[[Any, Action], Any],
        state_key: str | type,
        action_types: Iterable[str] = (),
        initial: Any = None,
    ) -> None:
        self._fn = fn
        self._initial = initial
        self.state_key = state_key
        types = frozenset((action_types,)) if isinstance(action_types, str) else frozenset(action_types)
        self.action_types = types or None

    def initial_state(self) -> Any:
        return self._initial

    def reduce(self, state: Any, action: Action) -> Any:
        return self._fn(state, action)

    def __repr__(self) -> str:
        return f"FunctionReducer({self._fn.__name__}, {self.state_key!r})"


def reducer(state_key: str | type, *action_types: str, initial: Any = None):
    """Decorator: register a plain function as a reducer for one scope.

    Usage:
        @reducer("counter", "INCREMENT", "DECREMENT", initial=0)
        def counter(state, action):
            if action.type == "INCREMENT":
                return state + 1
            return state - 1

    Without action types the reducer sees every action and must return the
    old value (or None) for actions it ignores.
    """

    def decorator(fn: Callable[[Any, Action], Any]) -> FunctionReducer:
        return FunctionReducer(fn, state_key, action_types, initial)

    return decorator


class ReducerRegistry:
    """Maps action types to the reducers that handle them."""

    def __init__(
        self,
        reducers: Iterable[Reducer] = (),
        *,
        type_keys: TypeKeys | None = None,
    ) -> None:
        self._type_keys = type_keys if type_keys is not None else TypeKeys()
        self._reducers: list[tuple[str, Reducer]] = []
        # (scope key, action type or None for catch-all) -> reducer
        self._claims: dict[tuple[str, str | None], Reducer] = {}
        self._by_type: dict[str, list[tuple[str, Reducer]]] = {}
        self._catch_all: list[tuple[str, Reducer]] = []
        self._frozen = False
        for r in reducers:
            self.register(r)

    @property
    def type_keys(self) -> TypeKeys:
        return self._type_keys

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def _scope_key(self, reducer: Reducer) -> str:
        key = reducer.state_key
        if isinstance(key, type):
            return self._type_keys.key_for(key)
        if not isinstance(key, str) or not key:
            raise ConfigurationError(f"{reducer!r} has no usable state_key")
        return key

    def register(self, reducer: Reducer) -> None:
        """Add a reducer. Overlapping (scope, action type) claims are rejected."""
        if self._frozen:
            raise ConfigurationError("Reducers cannot be registered once the store is built")
        key = self._scope_key(reducer)
        types = reducer.action_types
        if isinstance(types, str):
            types = frozenset((types,))

        if types is None:
            clash = next((r for (k, _), r in self._claims.items() if k == key), None)
            if clash is not None:
                raise ConfigurationError(
                    f"{reducer!r} handles every action on {key!r} but {clash!r} already reduces it"
                )
            self._claims[(key, None)] = reducer
            self._catch_all.append((key, reducer))
        else:
            for action_type in types:
                clash = self._claims.get((key, action_type)) or self._claims.get((key, None))
                if clash is not None:
                    raise ConfigurationError(
                        f"Duplicate reducer for scope {key!r} and action {action_type!r}: "
                        f"{clash!r} and {reducer!r}"
                    )
            for action_type in types:
                self._claims[(key, action_type)] = reducer
                self._by_type.setdefault(action_type, []).append((key, reducer))
        self._reducers.append((key, reducer))

    def keys(self) -> frozenset[str]:
        return frozenset(key for key, _ in self._reducers)

    def initial_state(self) -> State:
        state = State(type_keys=self._type_keys)
        for key, r in self._reducers:
            if key not in state:
                state.update_key(key, r.initial_state())
        return state

    def reduce(self, state: State, action: Action) -> tuple[State, frozenset[str]]:
        """Run every reducer that handles action. Returns (new state, changed keys).

        The incoming state is never mutated.
        """
        handlers = self._by_type.get(action.type, []) + self._catch_all
        if not handlers:
            return state, frozenset()

        new_state = state.copy()
        changed: set[str] = set()
        for key, r in handlers:
            old = state.get(key)
            new = r.reduce(old, action)
            if new is None or new is old:
                continue
            new_state.update_key(key, new)
            changed.add(key)

        if not changed:
            return state, frozenset()
        return new_state, frozenset(changed)

    def __len__(self) -> int:
        return len(self._reducers)
