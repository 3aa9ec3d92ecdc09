"""Background task helpers for SimpleFTP.

Provides BackgroundTask for running work off the caller's thread and
TaskScheduler, which runs keyed tasks so that at most one task per key
is in flight while tasks for different keys run concurrently.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, Deque, Dict, Generic, Hashable, List, Optional, TypeVar

logger = logging.getLogger("simpleftp.tasks")

T = TypeVar("T")


class TaskStatus(Enum):
    """Status of a background task."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class TaskResult(Generic[T]):
    """Result of a background task."""
    status: TaskStatus
    result: Optional[T] = None
    error: Optional[Exception] = None


class BackgroundTask(Generic[T]):
    """
    Runs work in a background thread.

    Either pass a target callable or subclass and override _execute().

    Usage:
        task = BackgroundTask(connection.list_files, args=("/pub",))
        task.start()
        result = task.get_result(timeout=30)
    """

    def __init__(
        self,
        target: Optional[Callable[..., T]] = None,
        args: tuple = (),
        kwargs: Optional[dict] = None,
        on_complete: Optional[Callable[[TaskResult[T]], None]] = None
    ):
        """
        Initialize a background task.

        Args:
            target: Callable to run in background
            args: Positional arguments for target
            kwargs: Keyword arguments for target
            on_complete: Callback when task finishes (called from worker thread)
        """
        self._target = target
        self._args = args
        self._kwargs = kwargs or {}
        self._on_complete = on_complete

        self._thread: Optional[threading.Thread] = None
        self._result: Optional[TaskResult[T]] = None
        self._cancelled = threading.Event()
        self._done = threading.Event()
        self._status = TaskStatus.PENDING
        self._callbacks: List[Callable[["BackgroundTask[T]"], None]] = []
        self._callbacks_lock = threading.Lock()

    @property
    def status(self) -> TaskStatus:
        """Current task status."""
        return self._status

    @property
    def is_running(self) -> bool:
        """True if task is currently running."""
        return self._status == TaskStatus.RUNNING

    @property
    def is_done(self) -> bool:
        """True once the task has finished (in any way)."""
        return self._done.is_set()

    @property
    def is_cancelled(self) -> bool:
        """True if cancellation was requested."""
        return self._cancelled.is_set()

    @property
    def result(self) -> Optional[TaskResult[T]]:
        """Result, or None while the task has not finished."""
        return self._result

    def start(self) -> None:
        """Start the background task."""
        if self._status != TaskStatus.PENDING:
            raise RuntimeError("Task already started")

        self._status = TaskStatus.RUNNING
        self._thread = threading.Thread(
            target=self._run,
            name=f"simpleftp-{type(self).__name__}",
            daemon=True
        )
        self._thread.start()

    def cancel(self) -> None:
        """Request cancellation of the task."""
        self._cancelled.set()

    def add_done_callback(self, callback: Callable[["BackgroundTask[T]"], None]) -> None:
        """
        Register a callback invoked with the task once it finishes.

        Runs immediately if the task has already finished.
        """
        with self._callbacks_lock:
            if not self._done.is_set():
                self._callbacks.append(callback)
                return
        callback(self)

    def _execute(self) -> T:
        """Work performed in the background thread."""
        if self._target is None:
            raise NotImplementedError("BackgroundTask needs a target or an _execute override")
        if self._cancelled.is_set():
            return None
        return self._target(*self._args, **self._kwargs)

    def _run(self) -> None:
        """Internal method that runs in the background thread."""
        try:
            result = self._execute()

            if self._cancelled.is_set():
                self._result = TaskResult(status=TaskStatus.CANCELLED, result=result)
            else:
                self._result = TaskResult(status=TaskStatus.COMPLETED, result=result)

        except Exception as e:
            logger.error(f"{type(self).__name__} failed: {e}")
            self._result = TaskResult(status=TaskStatus.FAILED, error=e)

        self._status = self._result.status
        self._finish()

    def _finish(self) -> None:
        with self._callbacks_lock:
            self._done.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        if self._on_complete:
            self._on_complete(self._result)

        for callback in callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Task completion callback failed: {e}")

    def get_result(self, timeout: Optional[float] = None) -> TaskResult[T]:
        """
        Wait for task completion and return result.

        Args:
            timeout: Maximum time to wait (None = forever)

        Returns:
            TaskResult with status and result/error

        Raises:
            TimeoutError: If timeout expires before task completes
        """
        if self._thread:
            if not self._done.wait(timeout=timeout):
                raise TimeoutError("Task did not complete within timeout")

        return self._result or TaskResult(status=TaskStatus.PENDING)


class TaskScheduler:
    """
    Runs keyed background tasks, one in flight per key.

    Tasks for the same key run in submission order. A dispatcher thread
    wakes when a task is scheduled, when one finishes, and every
    poll_interval seconds. Keys whose queue drains are dropped.
    """

    def __init__(self, poll_interval: float = 0.5, name: str = "simpleftp-scheduler"):
        """
        Initialize the scheduler.

        Args:
            poll_interval: Seconds between dispatcher wake-ups when idle
            name: Dispatcher thread name
        """
        if poll_interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {poll_interval}")
        self._poll_interval = poll_interval
        self._name = name
        self._queues: Dict[Hashable, Deque[BackgroundTask]] = {}
        self._running: Dict[Hashable, BackgroundTask] = {}
        self._cancelling = 0
        self._condition = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._stopped = False

    @property
    def is_running(self) -> bool:
        """True while the dispatcher thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def schedule(self, key: Hashable, task: BackgroundTask) -> None:
        """
        Queue a task behind any others for the same key.

        Raises:
            RuntimeError: If the scheduler was shut down
        """
        with self._condition:
            if self._stopped:
                raise RuntimeError("Scheduler has been shut down")
            self._queues.setdefault(key, deque()).append(task)
            if not self.is_running:
                self._thread = threading.Thread(
                    target=self._dispatch_loop, name=self._name, daemon=True
                )
                self._thread.start()
            self._condition.notify_all()
        logger.debug(f"Scheduled {type(task).__name__} for {key!r}")

    def cancel(self, key: Hashable, task: BackgroundTask) -> bool:
        """
        Drop a queued task that has not started.

        Returns:
            True if the task was removed from the queue
        """
        with self._condition:
            queue = self._queues.get(key)
            if not queue or task not in queue:
                return False
            queue.remove(task)
            if not queue:
                del self._queues[key]
        task.cancel()
        return True

    def pending(self, key: Hashable) -> List[BackgroundTask]:
        """Tasks queued (not yet started) for a key."""
        with self._condition:
            return list(self._queues.get(key, ()))

    def running(self, key: Hashable) -> Optional[BackgroundTask]:
        """Task in flight for a key, if any."""
        with self._condition:
            return self._running.get(key)

    def has_key(self, key: Hashable) -> bool:
        """True if the key has queued or running work."""
        with self._condition:
            return key in self._queues or key in self._running

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until no task is queued or running.

        Returns:
            True if idle, False on timeout
        """
        with self._condition:
            return self._condition.wait_for(
                lambda: not self._queues and not self._running and not self._cancelling, timeout
            )

    def shutdown(self, wait: bool = True, timeout: Optional[float] = 5.0) -> None:
        """
        Stop the dispatcher. Queued tasks are cancelled and never started.

        Args:
            wait: Join the dispatcher thread
            timeout: Join timeout
        """
        with self._condition:
            self._stopped = True
            abandoned = [task for queue in self._queues.values() for task in queue]
            self._queues.clear()
            self._condition.notify_all()

        for task in abandoned:
            task.cancel()

        if wait and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _dispatch_loop(self) -> None:
        with self._condition:
            while not self._stopped:
                self._dispatch_ready()
                self._condition.wait(self._poll_interval)

    def _dispatch_ready(self) -> None:
        """Start the head task of every key with nothing in flight."""
        for key in list(self._queues):
            if key in self._running:
                continue

            queue = self._queues[key]
            task = queue.popleft()
            if not queue:
                del self._queues[key]

            self._running[key] = task
            task.add_done_callback(partial(self._on_task_done, key))
            try:
                task.start()
            except RuntimeError as e:
                logger.error(f"Could not start task for {key!r}: {e}")
                self._running.pop(key, None)

    def _on_task_done(self, key: Hashable, task: BackgroundTask) -> None:
        with self._condition:
            if self._running.get(key) is task:
                del self._running[key]
            abandoned = self._task_finished(key, task)
            self._cancelling += len(abandoned)

        # Cancelling runs completion callbacks, which must not hold the lock
        try:
            for pending in abandoned:
                pending.cancel()
        finally:
            with self._condition:
                self._cancelling -= len(abandoned)
                self._condition.notify_all()

    def _task_finished(self, key: Hashable, task: BackgroundTask) -> List[BackgroundTask]:
        """
        Hook run under the scheduler lock when a task finishes.

        Returns:
            Queued tasks to cancel once the lock is released
        """
        return []

    def _drop_queue(self, key: Hashable) -> List[BackgroundTask]:
        """Remove and return all queued tasks for a key (caller holds the lock)."""
        return list(self._queues.pop(key, ()))
