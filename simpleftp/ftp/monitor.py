"""Background liveness monitor for an FTP connection."""

import logging
import threading
from typing import Callable, Optional

from simpleftp.ftp.connection import FTPConnection

logger = logging.getLogger("simpleftp.monitor")

LostCallback = Callable[[FTPConnection], None]


class ConnectionMonitor:
    """
    Periodically checks a connection and reports when it is lost.

    Each tick either expires an idle session or checks it with NOOP.
    The on_lost callback runs at most once, after which the monitor stops.
    """

    def __init__(
        self,
        connection: FTPConnection,
        interval: float = 10,
        on_lost: Optional[LostCallback] = None
    ):
        """
        Initialize the monitor.

        Args:
            connection: Connection to watch
            interval: Seconds between checks
            on_lost: Optional callback invoked with the lost connection
        """
        if interval <= 0:
            raise ValueError(f"Monitor interval must be positive, got {interval}")
        self._connection = connection
        self._interval = interval
        self._on_lost = on_lost
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def connection(self) -> FTPConnection:
        """Connection being watched."""
        return self._connection

    @property
    def is_running(self) -> bool:
        """True while the monitor thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitor thread (no-op if already running)."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="simpleftp-connection-monitor",
            daemon=True
        )
        self._thread.start()
        logger.debug(f"Monitoring {self._connection} every {self._interval}s")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Wake the monitor thread and wait for it to exit."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def check(self) -> bool:
        """
        Run a single check.

        Returns:
            True if the connection is still alive
        """
        connection = self._connection
        if connection.lost_reason is not None:
            return False
        if not connection.is_connected:
            return True

        if connection.is_idle_expired():
            connection.mark_lost("idle timeout")
            return False
        return connection.check_connection()

    def _run(self) -> None:
        """Monitor loop."""
        while not self._stop_event.wait(self._interval):
            if self.check():
                continue

            logger.info(f"Connection {self._connection} lost: {self._connection.lost_reason}")
            if self._on_lost is not None:
                try:
                    self._on_lost(self._connection)
                except Exception as e:
                    logger.error(f"Connection lost callback failed: {e}")
            break
