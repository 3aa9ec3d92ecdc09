"""Per-target save scheduling for SimpleFTP.

Saves for one target (for example an open editor session) run one at a
time in the order they were requested, so a backup-then-replace write is
never interleaved with another write to the same file. Saves for
different targets run concurrently.
"""

import logging
from typing import Dict, Hashable, List, Optional

from simpleftp.config.settings import AppSettings
from simpleftp.uploads.uploader import FileUploader, UploadState
from simpleftp.utils.threading import BackgroundTask, TaskScheduler

logger = logging.getLogger("simpleftp.uploads")


class UploadScheduler(TaskScheduler):
    """
    Schedules save tasks per target.

    After upload_failure_threshold consecutive failures for a target,
    the saves still queued for it are abandoned. A threshold of 0
    disables this.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        """
        Initialize the scheduler.

        Args:
            settings: Application settings (poll interval, failure threshold)
        """
        self._settings = settings or AppSettings()
        super().__init__(
            poll_interval=self._settings.upload_poll_interval,
            name="simpleftp-upload-scheduler"
        )
        self._failures: Dict[Hashable, int] = {}

    def schedule_save(self, target: Hashable, uploader: FileUploader) -> None:
        """
        Queue a save behind any other saves for the same target.

        Raises:
            ValueError: If the uploader has already run
            RuntimeError: If the scheduler was shut down
        """
        if uploader.state != UploadState.READY:
            raise ValueError(f"Save of {uploader.target_path} is not ready to run")
        self.schedule(target, uploader)
        logger.info(f"Save of {uploader.target_path} scheduled")

    def cancel_save(self, target: Hashable, uploader: FileUploader) -> bool:
        """
        Cancel a queued save that has not started.

        Returns:
            True if the save was removed from the queue
        """
        cancelled = self.cancel(target, uploader)
        if cancelled:
            logger.info(f"Save of {uploader.target_path} cancelled")
        return cancelled

    def pending_saves(self, target: Hashable) -> List[FileUploader]:
        """Saves queued for a target that have not started."""
        return self.pending(target)

    def is_save_in_progress(self, target: Hashable) -> bool:
        """True if a save for the target is running or queued."""
        return self.has_key(target)

    def consecutive_failures(self, target: Hashable) -> int:
        """Number of consecutive failed saves for a target."""
        with self._condition:
            return self._failures.get(target, 0)

    def _task_finished(self, key: Hashable, task: BackgroundTask) -> List[BackgroundTask]:
        if not isinstance(task, FileUploader) or task.state == UploadState.SUCCEEDED:
            self._failures.pop(key, None)
            return []

        failures = self._failures.get(key, 0) + 1
        self._failures[key] = failures
        threshold = self._settings.upload_failure_threshold
        if threshold <= 0 or failures < threshold:
            return []

        abandoned = self._drop_queue(key)
        self._failures.pop(key, None)
        if abandoned:
            logger.error(
                f"Abandoning {len(abandoned)} queued save(s) for {key!r} "
                f"after {failures} consecutive failures"
            )
        return abandoned
