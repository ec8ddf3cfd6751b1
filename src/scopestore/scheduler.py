"""Schedulers — run listener deliveries off the dispatching thread.

BackgroundScheduler delivers on a managed daemon thread. MarshalingScheduler
hands deliveries to the thread that owns an event loop. Pass either as a
Store's scheduler. Deliveries run one at a time in the order they were
scheduled, so a listener never sees dispatch N+1 before dispatch N.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from threading import Thread
from typing import Callable

logger = logging.getLogger("scopestore.scheduler")

_STOP = object()


class BackgroundScheduler:
    """FIFO executor backed by one daemon thread."""

    def __init__(self, name: str = "scopestore-notify") -> None:
        self._queue: queue.Queue = queue.Queue()
        self._disposed = False
        self._thread = Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def __call__(self, fn: Callable[[], None]) -> None:
        if self._disposed:
            logger.debug("Scheduler disposed, dropping %r", fn)
            return
        self._queue.put(fn)

    def _run(self) -> None:
        while True:
            fn = self._queue.get()
            try:
                if fn is _STOP:
                    return
                fn()
            except Exception:
                logger.exception("Scheduled callback failed")
            finally:
                self._queue.task_done()

    def join(self) -> None:
        """Block until everything scheduled so far has run."""
        self._queue.join()

    def dispose(self) -> None:
        """Stop the thread after the already queued callbacks."""
        if self._disposed:
            return
        self._disposed = True
        self._queue.put(_STOP)


class MarshalingScheduler:
    """Deliver notifications on the thread that created the scheduler.

    For UI loops and other event loops that only accept work on their own
    thread. call_from_thread is the loop's hand-off function, e.g. a Textual
    app's call_from_thread. Create the scheduler on the owning thread:

        store = Store(reducers, scheduler=MarshalingScheduler(app.call_from_thread))

    Deliveries go through one FIFO buffer. A delivery made on the owning
    thread first runs everything still waiting for a hand-off, so a listener
    never sees dispatch N+1 before dispatch N.
    """

    def __init__(self, call_from_thread: Callable[[Callable[[], None]], object]) -> None:
        self._call_from_thread = call_from_thread
        self._owner = threading.get_ident()
        self._lock = threading.Lock()
        self._pending: deque[Callable[[], None]] = deque()

    def __call__(self, fn: Callable[[], None]) -> None:
        with self._lock:
            self._pending.append(fn)
        if threading.get_ident() == self._owner:
            self._flush()
        else:
            self._call_from_thread(self._flush)

    def _flush(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    return
                fn = self._pending.popleft()
            try:
                fn()
            except Exception:
                logger.exception("Marshaled callback failed")
