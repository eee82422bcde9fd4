"""Bounded worker pool with producer-driven completion.

Unlike concurrent.futures executors, tasks receive the id of the worker
running them, so callers can keep per-worker result slots without locking,
and completion is announced explicitly by the producer via done():

    pool = WorkerPool("indexer", threads=3)
    threading.Thread(target=produce, args=(pool,)).start()  # calls pool.done()
    pool.run()  # blocks until done() was called and the queue drained
"""

import queue
import threading
from collections.abc import Callable

from auditcore.errors import AuditError
from auditcore.utils.logging import logger

Task = Callable[[int], None]

_STOP = object()


class WorkerPool:
    """Fixed number of worker threads consuming a bounded task queue.

    A task raising an exception does not stop the pool; the exception is
    stored in the slot of the worker that ran it (see ``errors``).
    """

    def __init__(self, name: str, threads: int = 3, max_queued_tasks: int = 20000):
        self.name = name
        self.threads = max(1, threads)
        self._queue: queue.Queue = queue.Queue(maxsize=max_queued_tasks)
        self._done = threading.Event()
        self._done_lock = threading.Lock()
        self.errors: list[list[BaseException]] = [[] for _ in range(self.threads)]

    @property
    def is_done(self) -> bool:
        return self._done.is_set()

    def add_task(self, task: Task) -> None:
        """Queue a task, blocking while the queue is full.

        Raises:
            AuditError: If done() was already called
        """
        if self._done.is_set():
            raise AuditError(f"{self.name} pool no longer accepts tasks")
        self._queue.put(task)

    def done(self) -> None:
        """Announce that no more tasks will be added. Idempotent."""
        with self._done_lock:
            if self._done.is_set():
                return
            self._done.set()
        # Stop markers queue behind every task already added
        for _ in range(self.threads):
            self._queue.put(_STOP)

    def _work(self, worker_id: int) -> None:
        while True:
            task = self._queue.get()
            try:
                if task is _STOP:
                    return
                task(worker_id)
            except Exception as e:
                logger.debug(f"[{self.name} worker {worker_id}] task failed: {e}")
                self.errors[worker_id].append(e)
            finally:
                self._queue.task_done()

    def run(self) -> None:
        """Start the workers and block until done() was called and all tasks ran."""
        workers = [
            threading.Thread(target=self._work, args=(i,), name=f"{self.name}-{i}", daemon=True)
            for i in range(self.threads)
        ]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()

    def collect_errors(self) -> list[BaseException]:
        """All task errors, worker slot by worker slot. Call after run() returned."""
        return [err for slot in self.errors for err in slot]
