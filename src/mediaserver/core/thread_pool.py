"""
=============================================================================
THREAD POOL IMPLEMENTATION
=============================================================================

A fixed-size group of worker threads that process tasks from a shared,
unbounded queue. The server submits one task each time a connection has
a request ready; the worker serves that request and lets go of the
connection again.

=============================================================================
THREAD POOL ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Thread Pool                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │                      TASK QUEUE                              │   │
    │   │  [conn 1] [conn 2] [conn 3] ...                              │   │
    │   │                                                              │   │
    │   │  • queue.Queue, unbounded: submit() never blocks             │   │
    │   │  • FIFO order                                                │   │
    │   └──────────────────────┬──────────────────────────────────────┘   │
    │                          │ get()                                     │
    │                          ▼                                           │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  WORKERS (exactly `workers` daemon threads)                  │   │
    │   │                                                              │   │
    │   │  ┌──────────┐ ┌──────────┐ ┌──────────┐       ┌──────────┐  │   │
    │   │  │ Worker 0 │ │ Worker 1 │ │ Worker 2 │  ...  │ Worker 9 │  │   │
    │   │  └──────────┘ └──────────┘ └──────────┘       └──────────┘  │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The only backpressure is the pool size itself: when every worker is busy,
ready connections wait in the queue until a
worker frees up. There is no rejection and no auto-scaling.

=============================================================================
WORKER LIFECYCLE
=============================================================================

    while not shutdown:
        task = queue.get()      ← blocks (with timeout) until a task arrives
        if task is None:        ← "poison pill": exit
            break
        execute(task)           ← exceptions are logged, never propagated
        queue.task_done()

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field


logger = logging.getLogger(__name__)


@dataclass
class Task:
    """
    A deferred function call.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        submitted_at: Time the task was queued (for queue wait logging).
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """
    Worker thread that processes tasks from the queue.

    A failing task is logged and counted; the worker keeps running.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 1.0
    ):
        """
        Args:
            task_queue: Queue to pull tasks from.
            worker_id: Identifier used in the thread name and logs.
            idle_timeout: Seconds to wait for a task before re-checking
                          the shutdown flag.
        """
        # daemon=True: a stuck connection never keeps the process alive
        super().__init__(name=f"mediaserver-worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self._shutdown = threading.Event()

        # Metrics
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

        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        start_time = time.monotonic()

        waited = start_time - task.submitted_at
        if waited > 1.0:
            logger.debug(f"Worker {self.worker_id} picked up task after {waited:.2f}s in queue")

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
        except Exception as e:
            elapsed = time.monotonic() - start_time
            logger.exception(
                f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}"
            )
            self.tasks_failed += 1

    def shutdown(self):
        """Signal the worker to stop after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Fixed-size thread pool.

    Usage:
        pool = ThreadPool(workers=10)
        pool.start()
        pool.submit(handle_connection, args=(conn,))
        pool.shutdown(wait=True, timeout=5.0)
    """

    def __init__(self, workers: int = 10, idle_timeout: float = 1.0):
        """
        Args:
            workers: Number of worker threads, all created by start().
            idle_timeout: Seconds between shutdown checks of idle workers.

        Raises:
            ValueError: If workers is less than 1.
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")

        self.workers = workers
        self.idle_timeout = idle_timeout

        # Unbounded: the event loop never blocks on a busy pool
        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue()

        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    def start(self):
        """Create and start all worker threads. No-op when already started."""
        with self._lock:
            if self._started:
                return

            logger.info(f"Starting thread pool with {self.workers} workers")

            for worker_id in range(self.workers):
                worker = Worker(
                    task_queue=self._task_queue,
                    worker_id=worker_id,
                    idle_timeout=self.idle_timeout,
                )
                self._workers.append(worker)
                worker.start()

            self._started = True
            self._shutdown = False

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None
    ) -> None:
        """
        Queue a task for execution.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        self._task_queue.put(Task(func=func, args=args, kwargs=kwargs or {}))

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

            1. Reject new tasks
            2. If wait: let queued tasks drain (bounded by timeout)
            3. Send one poison pill per worker
            4. Join workers

        Args:
            wait: Whether to let pending tasks run first.
            timeout: Maximum seconds to wait for the queue to drain.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            while self._task_queue.unfinished_tasks:
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("Thread pool shutdown timeout, abandoning pending tasks")
                    break
                time.sleep(0.05)

        for _ in self._workers:
            self._task_queue.put(None)

        for worker in self._workers:
            worker.shutdown()
            worker.join(timeout=2.0)

        completed = sum(w.tasks_completed for w in self._workers)
        failed = sum(w.tasks_failed for w in self._workers)

        self._workers.clear()
        self._started = False
        logger.info(
            f"Thread pool shutdown complete: {completed} tasks completed, {failed} failed"
        )
