"""Middleware — an ordered chain that sees every action before the reducers.

Each link is called as on_action(action, store, next). Calling next(action)
hands the (possibly replaced) action to the following link; the last link
reduces and notifies. A link that never calls next drops the action, which
is how validation and throttling middleware work.

`next` is only valid while the link runs. Work that finishes later, such as
an async request, must store.dispatch() a new action instead, which starts
a fresh trip through the whole chain.
"""

from __future__ import annotations

import logging
from threading import Thread
from typing import Any, Callable, Iterable, Protocol

from scopestore.action import Action
from scopestore.exceptions import ConfigurationError

logger = logging.getLogger("scopestore.middleware")

Next = Callable[[Action], None]


class StoreAccessor(Protocol):
    def get_state(self, key: Any = None, cls: type | None = None) -> Any: ...

    def dispatch(self, action: Action) -> None: ...


MiddlewareFn = Callable[[Action, StoreAccessor, Next], None]


class Middleware:
    """Base class for middleware. The default passes every action through."""

    def on_action(self, action: Action, store: StoreAccessor, next: Next) -> None:
        next(action)


class MiddlewareChain:
    """Runs middleware strictly in registration order."""

    def __init__(self, middleware: Iterable[Middleware | MiddlewareFn] = ()) -> None:
        self._links: list[MiddlewareFn] = []
        for m in middleware:
            link = m.on_action if isinstance(m, Middleware) else m
            if not callable(link):
                raise ConfigurationError(f"Middleware must be callable, got {m!r}")
            self._links.append(link)

    def __len__(self) -> int:
        return len(self._links)

    def run(self, action: Action, store: StoreAccessor, terminal: Next) -> None:
        """Send action down the chain; terminal runs if every link forwards it."""
        finished = [False]
        try:
            self._call(0, action, store, terminal, finished)
        finally:
            finished[0] = True

    def _call(self, index: int, action: Action, store, terminal: Next, finished: list[bool]) -> None:
        if index == len(self._links):
            terminal(action)
            return

        link = self._links[index]
        called = [False]

        def next_(forwarded: Action) -> None:
            if finished[0]:
                logger.warning(
                    "%r called next() after the chain finished; dispatch a new action instead",
                    link,
                )
                return
            if called[0]:
                logger.warning("%r called next() twice for %r; ignoring", link, forwarded)
                return
            called[0] = True
            self._call(index + 1, forwarded, store, terminal, finished)

        link(action, store, next_)


class LoggerMiddleware(Middleware):
    """Logs each action and the state it produced."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG) -> None:
        self._logger = logger or logging.getLogger("scopestore.actions")
        self._level = level

    def on_action(self, action: Action, store: StoreAccessor, next: Next) -> None:
        self._logger.log(self._level, "Action %s payload=%r", action.type, action.payload)
        next(action)
        self._logger.log(self._level, "State after %s: %r", action.type, store.get_state())


THUNK = "@@scopestore/THUNK"


def thunk(fn: Callable[[Callable[[Action], None], Callable[..., Any]], None]) -> Action:
    """Wrap fn(dispatch, get_state) in an action handled by ThunkMiddleware.

    Usage:
        def load_profile(dispatch, get_state):
            profile = api.fetch(get_state("user_id"))
            dispatch(Action("PROFILE_LOADED", profile))

        store.dispatch(thunk(load_profile))
    """
    if not callable(fn):
        raise TypeError(f"thunk() needs a callable, got {fn!r}")
    return Action(THUNK, fn)


class ThunkMiddleware(Middleware):
    """Runs thunk actions, by default on a daemon thread, and swallows them.

    Other actions pass through untouched.
    """

    def __init__(self, run_async: bool = True) -> None:
        self._run_async = run_async

    def on_action(self, action: Action, store: StoreAccessor, next: Next) -> None:
        if action.type != THUNK:
            next(action)
            return
        if self._run_async:
            Thread(target=self._run, args=(action.payload, store), daemon=True).start()
        else:
            self._run(action.payload, store)

    @staticmethod
    def _run(fn, store: StoreAccessor) -> None:
        try:
            fn(store.dispatch, store.get_state)
        except Exception:
            logger.exception("Thunk %r failed", fn)
