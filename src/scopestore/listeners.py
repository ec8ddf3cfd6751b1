"""Listener registry — who gets told about which state transition.

A notification pass works on a snapshot of the registry taken when the pass
starts. Subscriptions added during the pass wait for the next one;
subscriptions cancelled during the pass are skipped if their callback has
not run yet. Each subscription is delivered at most once per pass.

Failures stay local: a selector, filter or callback that raises is logged
and the pass moves on to the next subscription.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from scopestore.exceptions import TypeMismatchWarning
from scopestore.filters import DEFAULT, Filter
from scopestore.selectors import MISMATCH, Selector
from scopestore.state import State

logger = logging.getLogger("scopestore.listeners")

Listener = Callable[[Any], None]
Scheduler = Callable[[Callable[[], None]], Any]


def call_now(fn: Callable[[], None]) -> None:
    """Synchronous scheduler: run the delivery on the notifying thread."""
    fn()


class Subscription:
    """Handle for one registered callback. cancel() is immediate and idempotent."""

    __slots__ = ("_owner", "listener", "_active")

    def __init__(self, owner, listener: Listener) -> None:
        self._owner = owner
        self.listener = listener
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        self._owner._remove(self)

    def resume(self) -> None:
        """Re-activate a cancelled subscription."""
        self._owner._add(self)

    def __repr__(self) -> str:
        name = getattr(self.listener, "__qualname__", repr(self.listener))
        state = "active" if self._active else "cancelled"
        return f"{type(self).__name__}({name}, {state})"


class StateSubscription(Subscription):
    __slots__ = ("selector", "filter")

    def __init__(self, owner, selector: Selector, listener: Listener, filter: Filter | None) -> None:
        super().__init__(owner, listener)
        self.selector = selector
        self.filter = filter

    def inform_with_current_state(self) -> None:
        """Deliver the current value once, bypassing the filter."""
        self._owner._inform(self)


class _Registry:
    """Shared bookkeeping for state and action listeners."""

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []
        self._scheduler = scheduler or call_now

    def _add(self, sub: Subscription) -> None:
        with self._lock:
            if not sub._active:
                sub._active = True
                self._subscriptions.append(sub)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            sub._active = False
            try:
                self._subscriptions.remove(sub)
            except ValueError:
                pass  # already removed

    def snapshot(self) -> list[Subscription]:
        with self._lock:
            return list(self._subscriptions)

    def remove_listener(self, listener: Listener) -> int:
        """Cancel every subscription whose callback is listener. Returns the count."""
        matches = [s for s in self.snapshot() if s.listener == listener]
        for sub in matches:
            sub.cancel()
        return len(matches)

    def clear(self) -> None:
        with self._lock:
            for sub in self._subscriptions:
                sub._active = False
            self._subscriptions.clear()

    def _deliver(self, sub: Subscription, value: Any) -> None:
        self._scheduler(lambda: self._invoke(sub, value))

    @staticmethod
    def _invoke(sub: Subscription, value: Any) -> None:
        if not sub._active:
            return
        try:
            sub.listener(value)
        except Exception:
            logger.exception("Listener %r failed", sub)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)


class ListenerRegistry(_Registry):
    """State listeners, matched by selector and gated by filter."""

    def __init__(
        self,
        get_state: Callable[[], State],
        *,
        default_filter: Filter = DEFAULT,
        scheduler: Scheduler | None = None,
    ) -> None:
        super().__init__(scheduler)
        self._get_state = get_state
        self.default_filter = default_filter

    def add(self, selector: Selector, listener: Listener, filter: Filter | None = None) -> StateSubscription:
        sub = StateSubscription(self, selector, listener, filter)
        self._add(sub)
        return sub

    def notify(self, old_state: State, new_state: State, changed_keys: frozenset[str]) -> None:
        """Run one notification pass for the old -> new transition."""
        for sub in self.snapshot():
            if not sub._active:
                continue
            try:
                value = self._match(sub, old_state, new_state, changed_keys)
            except Exception:
                logger.exception("Selector or filter of %r failed", sub)
                continue
            if value is not MISMATCH:
                self._deliver(sub, value)

    def _match(self, sub: StateSubscription, old_state: State, new_state: State, changed_keys) -> Any:
        selector = sub.selector
        if not selector.is_affected(new_state, changed_keys):
            return MISMATCH
        new = selector.extract(new_state)
        if new is MISMATCH:
            self._warn_mismatch(sub, new_state)
            return MISMATCH
        old = selector.extract(old_state)
        if old is MISMATCH:
            old = None
        check = sub.filter or self.default_filter
        return new if check(old, new) else MISMATCH

    def _inform(self, sub: StateSubscription) -> None:
        if not sub._active:
            return
        state = self._get_state()
        value = sub.selector.extract(state)
        if value is MISMATCH:
            self._warn_mismatch(sub, state)
            return
        self._deliver(sub, value)

    @staticmethod
    def _warn_mismatch(sub: StateSubscription, state: State) -> None:
        selector = sub.selector
        key = getattr(selector, "key", None) or state.type_keys.key_for(selector.cls)
        logger.warning(
            "%s: %r expects %s at %r but the store holds %s; not notified",
            TypeMismatchWarning.__name__,
            sub,
            selector.cls.__name__,
            key,
            type(state.get(key)).__name__,
        )


class ActionListeners(_Registry):
    """Listeners told about every dispatched action, state change or not."""

    def add(self, listener: Listener) -> Subscription:
        sub = Subscription(self, listener)
        self._add(sub)
        return sub

    def notify(self, action: Any) -> None:
        for sub in self.snapshot():
            if sub._active:
                self._deliver(sub, action)
