"""Store — owns the state and runs the dispatch/reduce/notify pipeline.

Every dispatch goes through the same cycle:

    IDLE -> INTERCEPTING -> REDUCING -> NOTIFYING -> IDLE

The middleware chain sees the action first. If it reaches the end of the
chain, the reducers produce a new State, the store publishes it with a
single reference swap, and the listeners whose part of the state changed
are notified. reset() skips straight to NOTIFYING with every key counted as
changed.

Single writer: dispatch() and reset() only enqueue a job. The thread that
finds the store idle drains the queue in FIFO order, so dispatches made from
listeners, middleware or other threads run as new cycles after the current
one. get_state() is safe from any thread and sees either the state before
or after a dispatch, never one in between. A slow listener delays every
later dispatch; keeping callbacks short is up to the caller, or pass a
BackgroundScheduler or MarshalingScheduler to run them elsewhere.
"""

from __future__ import annotations

import enum
import functools
import logging
import threading
from collections import deque
from typing import Any, Callable, Iterable, Mapping

from scopestore.action import Action
from scopestore.exceptions import ConfigurationError, ReentrancyError
from scopestore.filters import DEFAULT, Filter
from scopestore.listeners import (
    ActionListeners,
    Listener,
    ListenerRegistry,
    Scheduler,
    StateSubscription,
    Subscription,
    call_now,
)
from scopestore.middleware import Middleware, MiddlewareChain, MiddlewareFn
from scopestore.reducer import Reducer, ReducerRegistry
from scopestore.selectors import Selector, selector_for
from scopestore.state import State, TypeKeys

logger = logging.getLogger("scopestore.store")


class Phase(enum.Enum):
    IDLE = "idle"
    INTERCEPTING = "intercepting"
    REDUCING = "reducing"
    NOTIFYING = "notifying"


class Store:
    """Central state container with reducers, middleware and listeners."""

    def __init__(
        self,
        reducers: ReducerRegistry | Iterable[Reducer] = (),
        *,
        middleware: Iterable[Middleware | MiddlewareFn] = (),
        initial_state: State | Mapping[str, object] | None = None,
        default_filter: Filter = DEFAULT,
        scheduler: Scheduler | None = None,
        type_keys: TypeKeys | None = None,
    ) -> None:
        if not isinstance(reducers, ReducerRegistry):
            reducers = ReducerRegistry(reducers, type_keys=type_keys)
        elif type_keys is not None and type_keys is not reducers.type_keys:
            raise ConfigurationError("type_keys differs from the ReducerRegistry's own registry")
        reducers.freeze()
        self._reducers = reducers
        self._chain = MiddlewareChain(middleware)
        self._scheduler = scheduler or call_now
        self._state = self._with_initial_values(initial_state)

        self._listeners = ListenerRegistry(
            lambda: self._state,
            default_filter=default_filter,
            scheduler=self._scheduler,
        )
        self._action_listeners = ActionListeners(self._scheduler)

        self._lock = threading.Lock()
        self._queue: deque[Callable[[], None]] = deque()
        self._draining = False
        self._closed = False
        self._reducing_thread: int | None = None
        self._phase = Phase.IDLE

    def _with_initial_values(self, state: State | Mapping[str, object] | None) -> State:
        return State.merge(self._reducers.initial_state(), state or {})

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def type_keys(self) -> TypeKeys:
        return self._reducers.type_keys

    # --- Read surface ---

    def get_state(self, key: str | type | None = None, cls: type | None = None) -> Any:
        """Full snapshot, or one scope by key, by type, or by key and type."""
        state = self._state
        if key is None and cls is None:
            return state.copy()
        if key is None:
            return state.get(cls)
        if cls is None:
            return state.get(key)
        return state.get(key, cls)

    # --- Dispatch surface ---

    def dispatch(self, action: Action) -> None:
        """Queue action for a full middleware/reduce/notify cycle."""
        if not isinstance(action, Action):
            raise TypeError(f"Can only dispatch Action instances, got {action!r}")
        self._check_reentrancy(action)
        self._enqueue(functools.partial(self._run_dispatch, action))

    def reset(self, state: State | Mapping[str, object]) -> None:
        """Replace the whole state and notify listeners as if every scope changed."""
        self._check_reentrancy(state)
        new_state = self._with_initial_values(state)
        self._enqueue(functools.partial(self._run_reset, new_state))

    def _check_reentrancy(self, action) -> None:
        if self._reducing_thread == threading.get_ident():
            raise ReentrancyError(action)

    def _enqueue(self, job: Callable[[], None]) -> None:
        with self._lock:
            if self._closed:
                logger.debug("Store closed, ignoring %r", job)
                return
            self._queue.append(job)
            if self._draining:
                return
            self._draining = True
        self._drain()

    def _drain(self) -> None:
        """Run queued jobs until the queue is empty.

        A ReentrancyError aborts only its own cycle; it is raised to the
        draining caller once the queue is empty.
        """
        fatal: ReentrancyError | None = None
        completed = False
        try:
            while True:
                with self._lock:
                    if not self._queue:
                        self._draining = False
                        completed = True
                        break
                    job = self._queue.popleft()
                try:
                    job()
                except ReentrancyError as exc:
                    fatal = fatal or exc
        finally:
            if not completed:
                with self._lock:
                    self._draining = False
        if fatal is not None:
            raise fatal

    def _run_dispatch(self, action: Action) -> None:
        logger.debug("Dispatching %s", action.type)
        self._phase = Phase.INTERCEPTING
        try:
            self._chain.run(action, self, self._reduce_and_notify)
        except ReentrancyError:
            logger.error("Reducer dispatched during %r; cycle aborted", action)
            raise
        except Exception:
            logger.exception("Dispatch of %r aborted; state left unchanged", action)
        finally:
            self._phase = Phase.NOTIFYING
            self._action_listeners.notify(action)
            self._phase = Phase.IDLE

    def _reduce_and_notify(self, action: Action) -> None:
        if not isinstance(action, Action):
            raise TypeError(f"Middleware forwarded a non-Action: {action!r}")
        self._phase = Phase.REDUCING
        old_state = self._state
        self._reducing_thread = threading.get_ident()
        try:
            new_state, changed = self._reducers.reduce(old_state, action)
        finally:
            self._reducing_thread = None
        self._state = new_state

        self._phase = Phase.NOTIFYING
        if changed:
            self._listeners.notify(old_state, new_state, changed)

    def _run_reset(self, new_state: State) -> None:
        logger.debug("Resetting state to %r", new_state)
        old_state = self._state
        self._state = new_state
        self._phase = Phase.NOTIFYING
        try:
            self._listeners.notify(old_state, new_state, old_state.keys() | new_state.keys())
        finally:
            self._phase = Phase.IDLE

    # --- Subscription surface ---

    def subscribe(
        self, selector: Selector, listener: Listener, filter: Filter | None = None
    ) -> StateSubscription:
        """Register listener for the part of state described by selector."""
        return self._listeners.add(selector, listener, filter)

    def add_listener(
        self,
        listener: Listener,
        *,
        key: str | type | None = None,
        cls: type | None = None,
        projection: Callable[[State], Any] | None = None,
        filter: Filter | None = None,
    ) -> StateSubscription:
        """Register listener for the whole state, a key, a type, or a projection.

        Usage:
            store.add_listener(render)                            # whole State
            store.add_listener(show_count, key="counter")         # raw value
            store.add_listener(show_user, key=User)               # by type tag
            store.add_listener(show_user, key="me", cls=User)     # key + type
            store.add_listener(show_total, projection=lambda s: sum(s.get("cart")))
        """
        if isinstance(key, type) and cls is None:
            key, cls = None, key
        return self.subscribe(selector_for(key, cls, projection), listener, filter)

    def add_action_listener(self, listener: Listener) -> Subscription:
        """Call listener with every dispatched action, even ones middleware dropped."""
        return self._action_listeners.add(listener)

    def remove_listener(self, listener: Listener) -> None:
        """Cancel every subscription whose callback is listener."""
        removed = self._listeners.remove_listener(listener)
        removed += self._action_listeners.remove_listener(listener)
        if not removed:
            logger.debug("remove_listener: %r was not registered", listener)

    # --- Lifecycle ---

    def close(self) -> None:
        """Release all subscriptions. Later dispatches are ignored."""
        with self._lock:
            self._closed = True
            self._queue.clear()
        self._listeners.clear()
        self._action_listeners.clear()
        dispose = getattr(self._scheduler, "dispose", None)
        if dispose is not None:
            dispose()

    def __repr__(self) -> str:
        return f"Store({self._state!r}, phase={self._phase.value})"


def create_store(
    *reducers: Reducer,
    middleware: Iterable[Middleware | MiddlewareFn] = (),
    initial_state: State | Mapping[str, object] | None = None,
    default_filter: Filter = DEFAULT,
    scheduler: Scheduler | None = None,
    type_keys: TypeKeys | None = None,
) -> Store:
    """Build a Store from reducers given as positional arguments."""
    return Store(
        reducers,
        middleware=middleware,
        initial_state=initial_state,
        default_filter=default_filter,
        scheduler=scheduler,
        type_keys=type_keys,
    )
