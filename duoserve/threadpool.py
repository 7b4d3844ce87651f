"""A fixed-size pool of worker threads fed from a FIFO task queue."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Deque

logger = logging.getLogger(__name__)

Task = Callable[[], object]


class ThreadPool:
    """Run submitted callables on a fixed number of worker threads.

    Once the pool is shut down, new tasks are ignored and tasks still waiting
    in the queue are dropped.
    """

    def __init__(self, thread_count: int) -> None:
        if thread_count < 0:
            raise ValueError(f"thread count must not be negative, got {thread_count}")
        self._tasks: Deque[Task] = deque()
        self._cond = threading.Condition()
        self._stopped = False
        self._workers = [
            threading.Thread(target=self._work, name=f"pool-worker-{n}", daemon=True)
            for n in range(thread_count)
        ]
        for worker in self._workers:
            worker.start()

    def enqueue(self, task: Task) -> bool:
        """Queue a task; return False if the pool is already shut down."""
        with self._cond:
            if self._stopped:
                return False
            self._tasks.append(task)
            self._cond.notify()
        return True

    def shutdown(self) -> None:
        """Stop the workers and wait for them, except the calling thread itself."""
        with self._cond:
            self._stopped = True
            self._tasks.clear()
            self._cond.notify_all()
        current = threading.current_thread()
        for worker in self._workers:
            if worker is not current:
                worker.join()

    def __enter__(self) -> "ThreadPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _work(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._stopped or bool(self._tasks))
                if self._stopped:
                    return
                task = self._tasks.popleft()
            try:
                task()
            except Exception:
                logger.exception("task failed")