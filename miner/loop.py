"""
Single-threaded event loop.

Key bindings, subtitle notifications and completion continuations are all
queued here and run one after another on the thread that calls run_forever()
(or run_pending()/drain() in tests). Slow work (AnkiConnect writes, ffmpeg)
goes to a worker lane; only its completion callback comes back to the loop,
so capture state is never touched from two threads. Each lane is one worker
thread, so calls sent down the same lane (e.g. AnkiConnect writes) keep their
order.
"""

import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable


class EventLoop:
    def __init__(self):
        self._calls: queue.Queue = queue.Queue()
        self._lanes: dict[str, ThreadPoolExecutor] = {}
        self._outstanding = 0
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    # ── Scheduling ────────────────────────────────────────────────────────────

    def call_soon(self, fn: Callable, *args) -> None:
        """Queue fn(*args) to run on the loop thread. Safe to call from any thread."""
        self._calls.put((fn, args))

    def run_in_background(self, fn: Callable, on_done: Callable[[Future], None] | None = None,
                          lane: str = 'default') -> Future:
        """Run fn() on the given lane; on_done(future) is then queued back on the loop."""
        with self._lock:
            self._outstanding += 1
            if lane not in self._lanes:
                self._lanes[lane] = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f'miner-{lane}')
            pool = self._lanes[lane]

        def _finished(future: Future):
            # Queue the continuation before releasing the slot so drain() never
            # sees an idle loop in between.
            if on_done is not None:
                self.call_soon(on_done, future)
            with self._lock:
                self._outstanding -= 1

        future = pool.submit(fn)
        future.add_done_callback(_finished)
        return future

    # ── Running ───────────────────────────────────────────────────────────────

    def _run_one(self, timeout: float | None) -> bool:
        try:
            fn, args = self._calls.get(timeout=timeout) if timeout else self._calls.get_nowait()
        except queue.Empty:
            return False
        try:
            fn(*args)
        except Exception as e:
            # A failing callback must not take the whole player session down.
            print(f'[loop] Callback {getattr(fn, "__name__", fn)!r} failed: {e}')
        return True

    def run_pending(self, timeout: float | None = None) -> int:
        """Run everything queued right now. Returns the number of callbacks run."""
        count = 0
        if self._run_one(timeout):
            count += 1
            while self._run_one(None):
                count += 1
        return count

    def busy(self) -> bool:
        with self._lock:
            return self._outstanding > 0 or not self._calls.empty()

    def drain(self, timeout: float = 10.0) -> None:
        """Run until no background work and no queued callbacks remain."""
        waited = 0.0
        step = 0.01
        while self.busy():
            if not self.run_pending(timeout=step):
                waited += step
                if waited >= timeout:
                    raise TimeoutError('Event loop did not settle in time.')

    def run_forever(self) -> None:
        self._stopped.clear()
        while not self._stopped.is_set():
            self.run_pending(timeout=0.1)

    def stop(self) -> None:
        self._stopped.set()

    def shutdown(self) -> None:
        self.stop()
        with self._lock:
            lanes, self._lanes = list(self._lanes.values()), {}
        for pool in lanes:
            pool.shutdown(wait=False)
