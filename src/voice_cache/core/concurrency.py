"""
Concurrency primitives shared by the store and the services.

    Once         - one-time initialization, safe under concurrent first calls
    KeyedLocks   - a lock per key, created on demand and dropped when idle
    SerialLanes  - shared executor, at most one running task per lane
    SingleFlight - collapses concurrent calls for one key into one execution

Locks for different keys are independent, so two owners never wait on
each other. SingleFlight runs the shared work on its own executor: a
caller that stops waiting (timeout, asyncio cancellation, disconnect)
does not stop the work, and later callers still receive its result.

Work queued behind a busy lane waits in the lane, not in a pool worker,
so a backlog for one owner never occupies the threads other owners need.

Usage:
    locks = KeyedLocks()
    with locks.hold("msg_42"):
        ...read, generate, write...

    flights = SingleFlight(executor, lane_of=lambda key: key[1])
    future, leader = flights.submit(("get", "msg_42", key), work)
    audio = future.result(timeout=60)
"""
from __future__ import annotations

import threading
from collections import deque
from concurrent.futures import Executor, Future
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Hashable, Iterator, List, Optional, Tuple

from voice_cache.core.logging import debug, get_logger

_LOG = get_logger("voice-cache.concurrency")


class Once:
    """
    Run an initializer exactly once.

    If the initializer raises, the guard stays open and the next call
    retries.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def run(self, fn: Callable[[], Any]) -> bool:
        """Call fn unless it already completed. Returns True if it ran now."""
        if self._done:
            return False
        with self._lock:
            if self._done:
                return False
            fn()
            self._done = True
            return True


class KeyedLocks:
    """
    Mutual exclusion per key.

    Entries are reference counted so the table only holds keys that
    currently have a holder or a waiter.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._slots: Dict[Hashable, List[Any]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._lock:
            slot = self._slots.get(key)
            if slot is None:
                slot = [threading.Lock(), 0]
                self._slots[key] = slot
            slot[1] += 1

        try:
            with slot[0]:
                yield
        finally:
            with self._lock:
                slot[1] -= 1
                if slot[1] == 0:
                    self._slots.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)


class SerialLanes:
    """
    Run tasks on a shared executor, one at a time per lane.

    The first task for an idle lane is handed to the executor; tasks
    submitted while the lane is busy are queued and run by that same
    worker once the current task finishes. Lanes never block each other.
    """

    def __init__(self, executor: Executor) -> None:
        self._executor = executor
        self._lock = threading.Lock()
        self._pending: Dict[Hashable, Deque[Tuple[Future, Callable[[], Any]]]] = {}

    def submit(self, lane: Hashable, fn: Callable[[], Any]) -> Future:
        future: Future = Future()
        with self._lock:
            queue = self._pending.get(lane)
            if queue is not None:
                queue.append((future, fn))
                debug(_LOG, "lane_queued", lane=str(lane), depth=len(queue))
                return future
            self._pending[lane] = deque()
        try:
            self._executor.submit(self._drain, lane, future, fn)
        except RuntimeError:
            # executor already shut down
            with self._lock:
                self._pending.pop(lane, None)
            raise
        return future

    def busy(self, lane: Hashable) -> bool:
        with self._lock:
            return lane in self._pending

    def _drain(self, lane: Hashable, future: Future, fn: Callable[[], Any]) -> None:
        while True:
            if future.set_running_or_notify_cancel():
                try:
                    result = fn()
                except BaseException as e:
                    future.set_exception(e)
                else:
                    future.set_result(result)
            with self._lock:
                queue = self._pending[lane]
                if not queue:
                    del self._pending[lane]
                    return
                future, fn = queue.popleft()


@dataclass
class SingleFlightStats:
    started: int
    joined: int
    in_flight: int


class SingleFlight:
    """
    At most one running execution per key.

    The first caller for a key starts the work on `executor`; callers
    arriving while it runs get the same Future. The key is released as
    soon as the work finishes, successfully or not, so a later call
    starts fresh.

    With `lane_of`, flights whose keys map to the same lane run one after
    another (see SerialLanes); flights in different lanes run in parallel.
    """

    def __init__(
        self,
        executor: Executor,
        lane_of: Optional[Callable[[Hashable], Hashable]] = None,
    ) -> None:
        self._executor = executor
        self._lanes = SerialLanes(executor) if lane_of is not None else None
        self._lane_of = lane_of
        self._lock = threading.Lock()
        self._inflight: Dict[Hashable, Future] = {}
        self._started = 0
        self._joined = 0

    def submit(self, key: Hashable, fn: Callable[[], Any]) -> Tuple[Future, bool]:
        """
        Join or start the flight for `key`.

        Returns:
            (future, leader) where leader is True if this call started it.
        """
        with self._lock:
            future = self._inflight.get(key)
            if future is not None:
                self._joined += 1
                debug(_LOG, "flight_joined", key=str(key))
                return future, False

            # _run pops under the same lock, so registration always happens first
            if self._lanes is not None:
                future = self._lanes.submit(self._lane_of(key), lambda: self._run(key, fn))
            else:
                future = self._executor.submit(self._run, key, fn)
            self._inflight[key] = future
            self._started += 1
            return future, True

    def _run(self, key: Hashable, fn: Callable[[], Any]) -> Any:
        try:
            return fn()
        finally:
            with self._lock:
                self._inflight.pop(key, None)

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._inflight

    def stats(self) -> SingleFlightStats:
        with self._lock:
            return SingleFlightStats(
                started=self._started,
                joined=self._joined,
                in_flight=len(self._inflight),
            )
