"""
=============================================================================
THREAD POOL
=============================================================================

Worker threads pulling connection-handling tasks off a bounded queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit()──► [ task queue (bounded) ] ──► Worker-0    │
    │                                      │                  Worker-1    │
    │                     full? → submit() returns False      ...         │
    │                     (server answers 503)                Worker-N    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

- min_workers threads start with the pool.
- While every worker is busy and tasks are waiting, one more is added, up
  to max_workers.
- shutdown(wait=True) lets queued and in-flight tasks finish (bounded by a
  timeout), then sends each worker a poison pill (None).

Handlers share no mutable state, so the only lock here guards the worker
list itself.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args, **kwargs)."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls tasks until it receives a poison pill or is told to stop.

    A task that raises is logged and counted; the worker keeps going.
    """

    def __init__(self, task_queue: queue.Queue, worker_id: int, idle_timeout: float = 60.0):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s"
            )
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after {time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Fixed-minimum, bounded-maximum pool of Worker threads.

        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        pool.submit(process_connection, args=(conn,))
        ...
        pool.shutdown(wait=True, timeout=30)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        max_queue_size: int = 100,
        idle_timeout: float = 1.0,
    ):
        """
        Args:
            min_workers: Threads started by start().
            max_workers: Ceiling for scale-up.
            max_queue_size: Tasks that may wait for a worker.
            idle_timeout: How often an idle worker wakes to check for shutdown.
        """
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = max_queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=max_queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()

        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        if self._started:
            return

        logger.debug(f"Starting thread pool with {self.min_workers} workers")
        self._shutdown = False
        for _ in range(self.min_workers):
            self._add_worker()
        self._started = True

    def _add_worker(self) -> Worker:
        """Caller must not hold self._lock (start) or must hold it (scale-up)."""
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = False,
        queue_timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: Pool not started, or shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            busy = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy == len(self._workers) and self._task_queue.qsize() > 0:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Stop the pool.

        Args:
            wait: Let queued and running tasks finish first.
            timeout: Cap on that wait, in seconds. None waits indefinitely.

        Returns:
            True if every task finished, False if the wait timed out (or
            wait=False and work was abandoned).
        """
        if not self._started:
            return True

        logger.debug("Shutting down thread pool...")
        self._shutdown = True

        drained = self._wait_for_drain(timeout) if wait else self._task_queue.unfinished_tasks == 0
        if not drained:
            logger.warning(
                f"Thread pool shutdown timed out with {self._task_queue.unfinished_tasks} tasks unfinished"
            )

        for worker in self._workers:
            worker.shutdown()
        for _ in self._workers:
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                break  # Workers also exit on their shutdown flag
        for worker in self._workers:
            worker.join(timeout=2.0)

        self._workers.clear()
        self._started = False
        logger.debug("Thread pool shutdown complete")
        return drained

    def _wait_for_drain(self, timeout: Optional[float]) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._task_queue.all_tasks_done:
            while self._task_queue.unfinished_tasks:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._task_queue.all_tasks_done.wait(remaining)
        return True

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def queue_size(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
