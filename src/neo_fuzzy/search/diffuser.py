"""Serialized executor for search tasks.

The diffuser owns a FIFO queue of pending tasks and at most one worker draining it. The
worker takes the whole queue at once, releases the lock, and runs each task in order,
merging its result into the shared state before starting the next one. Once the queue is
empty the worker exits; the next ``enqueue`` starts a new one.

No lock is held while a task runs, so tasks are free to await subprocesses and file I/O.
"""

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Generic, TypeVar

from neo_fuzzy.logger import logging
from neo_fuzzy.search.messages import TaskResult
from neo_fuzzy.search.state import SearchStateCell

logger = logging.getLogger(__name__)

TaskT = TypeVar("TaskT")


class Diffuser(Generic[TaskT]):
    state: SearchStateCell

    def __init__(
        self,
        state: SearchStateCell,
        execute: Callable[[TaskT], Awaitable[TaskResult]],
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.state = state
        self._execute = execute
        self._loop = loop
        self._lock = threading.Lock()
        self._queue: list[TaskT] = []
        self._running = False
        self._worker: asyncio.Task | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def _resolve_loop(self) -> tuple[asyncio.AbstractEventLoop, bool]:
        """Return the worker loop and whether the caller is running on it."""
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if self._loop is None:
            if current is None:
                raise RuntimeError("Diffuser needs a running event loop or an explicit loop")
            self._loop = current

        return self._loop, current is self._loop

    def enqueue(self, tasks: Iterable[TaskT]):
        """
        Append tasks to the queue, keeping their order, and make sure a worker is running.

        Never runs a task inline. Safe to call from threads other than the worker loop.
        """
        tasks = list(tasks)
        if not tasks:
            return

        loop, on_loop = self._resolve_loop()

        with self._lock:
            self._queue.extend(tasks)
            if self._running:
                return
            self._running = True

        if on_loop:
            self._spawn_worker()
        else:
            loop.call_soon_threadsafe(self._spawn_worker)

    def _spawn_worker(self):
        self._idle.clear()
        self._worker = self._loop.create_task(self._run(), name="diffuser-worker")

    async def _run(self):
        try:
            while True:
                with self._lock:
                    if not self._queue:
                        self._running = False
                        return
                    batch, self._queue = self._queue, []

                for task in batch:
                    await self._handle(task)
        except asyncio.CancelledError:
            with self._lock:
                self._running = False
            raise
        finally:
            self._idle.set()

    async def _handle(self, task: TaskT):
        name = type(task).__name__
        start = time.perf_counter()

        try:
            result = await self._execute(task)
        except Exception:
            logger.exception("Task %s failed", name)
            result = TaskResult()

        logger.debug("Elapsed %s: %.1fms", name, (time.perf_counter() - start) * 1000)
        self.state.apply(result)

    async def wait_idle(self):
        """Wait until every queued task has run and the worker has exited."""
        while self.is_running:
            if self._idle.is_set():
                # Worker scheduled from another thread but not spawned yet
                await asyncio.sleep(0)
            else:
                await self._idle.wait()

    async def stop(self):
        """Drop pending tasks and wait for the task in flight to finish."""
        with self._lock:
            dropped = len(self._queue)
            self._queue.clear()
        if dropped:
            logger.info("Dropped %d pending tasks", dropped)
        await self.wait_idle()
