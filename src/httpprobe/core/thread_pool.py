"""
=============================================================================
THREAD POOL
=============================================================================

Worker threads that run connection handlers, one connection per worker
for its whole lifetime.

=============================================================================
WHY THREADS FIT THIS SERVER
=============================================================================

A paced /range response spends nearly all its time asleep between chunk
writes. A blocked worker costs one thread and nothing else, so pacing is
a plain time.sleep() and other clients are served by other workers:

    Worker-0   ██ write ░░░░ sleep ░░░░ ██ write ░░░░ sleep ░░░░ ...
    Worker-1   ██ digest 401 ██ digest 200 ██
    Worker-2   ██ range 206 (no pacing) ██
    Worker-3   (idle, waiting on the queue)

=============================================================================
QUEUE AND POISON PILLS
=============================================================================

    submit(func, args) ──► Queue[Task | None] ──► Worker.run()
                                                     │
                                   None ("poison pill") ──► thread exits

The pool starts min_workers threads and adds one whenever submitted but
unfinished tasks outnumber the workers, up to max_workers.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any, List
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: ``func(*args, **kwargs)``."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it receives None.

    A task that raises is logged and counted; the worker carries on.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0,
        on_task_done: Optional[Callable[[], None]] = None
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.on_task_done = on_task_done

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
                if self.on_task_done is not None:
                    self.on_task_done()
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()
        queued_for = start_time - task.submitted_at

        try:
            task.func(*task.args, **task.kwargs)
        except Exception as e:
            logger.exception(
                f"Worker {self.worker_id} task failed after "
                f"{time.time() - start_time:.3f}s: {e}"
            )
            self.tasks_failed += 1
        else:
            logger.debug(
                f"Worker {self.worker_id} finished task in "
                f"{time.time() - start_time:.3f}s (queued {queued_for:.3f}s)"
            )
            self.tasks_completed += 1
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Fixed-floor, bounded-ceiling pool of Worker threads.

        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        pool.submit(handle_connection, args=(conn,), block=False)
        ...
        pool.shutdown(wait=True, timeout=5.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 60.0
    ):
        """
        Args:
            min_workers: Threads started by start().
            max_workers: Ceiling for scale-up.
            queue_size: Tasks that may wait for a worker; beyond it
                        submit(block=False) returns False.
            idle_timeout: How often an idle worker re-checks for shutdown.
        """
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)

        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0
        self._outstanding = 0

    def start(self):
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        self._shutdown = False
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker()
        self._started = True

    def _add_worker(self) -> Worker:
        """Start one more worker. Caller holds self._lock."""
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
            on_task_done=self._task_done,
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
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue ``func(*args, **kwargs)`` for a worker.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool isn't running.
        """
        if not self._started or self._shutdown:
            raise RuntimeError("Thread pool is not running")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        with self._lock:
            self._outstanding += 1

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            self._task_done()
            return False

        self._maybe_scale_up()
        return True

    def _task_done(self):
        with self._lock:
            self._outstanding -= 1

    def _maybe_scale_up(self):
        """Add a worker while queued and running tasks outnumber workers."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            if self._outstanding > len(self._workers):
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop accepting tasks, optionally let queued ones finish, then stop
        every worker.

        Args:
            wait: Wait for queued tasks before stopping.
            timeout: Upper bound on that wait; None waits as long as it takes.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while not self._task_queue.empty():
                if deadline is not None and time.time() > deadline:
                    logger.warning("Shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        for worker in self._workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                break

        for worker in self._workers:
            worker.join(timeout=2.0)

        self._workers.clear()
        self._started = False
        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def stats(self) -> dict:
        """Worker and task counters."""
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "outstanding": self._outstanding,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
