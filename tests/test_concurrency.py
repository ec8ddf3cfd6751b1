"""Tests for the single-writer queue and concurrent readers."""

import threading

from scopestore import Action, BackgroundScheduler, Store, reducer


@reducer("a", "BUMP", initial=0)
def a(state, action):
    return state + 1


@reducer("b", "BUMP", initial=0)
def b(state, action):
    return state + 1


@reducer("trace", "TRACE", initial=())
def trace(state, action):
    return state + (action.payload,)


def _run_threads(target, count):
    threads = [threading.Thread(target=target, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


class TestSingleWriter:
    def test_readers_never_see_partial_snapshot(self):
        store = Store([a, b])
        stop = threading.Event()
        torn = []

        def reader():
            while not stop.is_set():
                state = store.get_state()
                if state.get("a") != state.get("b"):
                    torn.append(state)

        r = threading.Thread(target=reader)
        r.start()
        try:
            _run_threads(lambda i: [store.dispatch(Action("BUMP")) for _ in range(200)], 4)
        finally:
            stop.set()
            r.join()

        assert torn == []
        assert store.get_state("a") == store.get_state("b") == 800

    def test_per_thread_fifo(self):
        store = Store([trace])

        def writer(tid):
            for i in range(100):
                store.dispatch(Action("TRACE", (tid, i)))

        _run_threads(writer, 4)

        entries = store.get_state("trace")
        assert len(entries) == 400
        for tid in range(4):
            assert [i for t, i in entries if t == tid] == list(range(100))

    def test_listener_sees_every_change_once(self):
        store = Store([a, b])
        seen = []
        store.add_listener(seen.append, key="a")
        _run_threads(lambda i: [store.dispatch(Action("BUMP")) for _ in range(50)], 4)
        assert seen == list(range(1, 201))


class TestAsyncNotification:
    def test_ordered_delivery_on_scheduler_thread(self):
        scheduler = BackgroundScheduler()
        store = Store([a, b], scheduler=scheduler)
        seen = []
        threads = set()

        def listener(value):
            seen.append(value)
            threads.add(threading.current_thread().name)

        store.add_listener(listener, key="a")
        for _ in range(50):
            store.dispatch(Action("BUMP"))
        scheduler.join()

        assert seen == list(range(1, 51))
        assert threads == {"scopestore-notify"}
        store.close()
        assert scheduler.disposed

    def test_cancel_before_scheduled_delivery_runs(self):
        scheduler = BackgroundScheduler()
        gate = threading.Event()
        scheduler(gate.wait)  # hold the thread so deliveries queue up
        store = Store([a], scheduler=scheduler)
        seen = []
        sub = store.add_listener(seen.append, key="a")

        store.dispatch(Action("BUMP"))
        sub.cancel()
        gate.set()
        scheduler.join()

        assert seen == []
        assert store.get_state("a") == 1
        scheduler.dispose()
