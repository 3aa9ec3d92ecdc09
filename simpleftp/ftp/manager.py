"""Shared connection management for SimpleFTP.

The manager owns the single primary connection used for interactive
browsing and hands out untracked temporary siblings for side work.
"""

import logging
import threading
from typing import Optional

from simpleftp.config.settings import AppSettings
from simpleftp.ftp.connection import FTPConnection
from simpleftp.ftp.exceptions import FTPStateError
from simpleftp.ftp.monitor import ConnectionMonitor, LostCallback
from simpleftp.ftp.server import FTPServer

logger = logging.getLogger("simpleftp.manager")


class FTPConnectionManager:
    """Holds the primary (shared) connection."""

    def __init__(self, settings: Optional[AppSettings] = None):
        """
        Initialize the connection manager.

        Args:
            settings: Application settings (defaults if omitted)
        """
        self._settings = settings or AppSettings()
        self._lock = threading.Lock()
        self._shared: Optional[FTPConnection] = None
        self._monitor: Optional[ConnectionMonitor] = None

    @property
    def settings(self) -> AppSettings:
        """Application settings."""
        return self._settings

    @property
    def monitor(self) -> Optional[ConnectionMonitor]:
        """Monitor watching the primary connection, if running."""
        return self._monitor

    def get_shared_connection(self) -> Optional[FTPConnection]:
        """Current primary connection, or None."""
        with self._lock:
            return self._shared

    def set_shared_connection(self, connection: Optional[FTPConnection]) -> None:
        """
        Install a new primary connection.

        A different previous primary is disconnected; failures doing so
        are logged and not propagated.

        Args:
            connection: New primary, or None to clear the slot
        """
        with self._lock:
            previous = self._shared
            if previous is connection:
                return
            monitor = self._monitor
            self._monitor = None
            self._shared = connection

        if monitor is not None:
            monitor.stop()

        if previous is not None:
            try:
                previous.disconnect()
            except Exception as e:
                logger.warning(f"Failed to disconnect previous connection {previous}: {e}")

        if connection is not None:
            logger.info(f"Shared connection set to {connection.server}")

    def create_shared_connection(self, server: FTPServer) -> FTPConnection:
        """
        Get the primary connection for a server, creating it if needed.

        Args:
            server: Server descriptor

        Returns:
            The primary connection (unconnected if newly created)
        """
        with self._lock:
            current = self._shared
            if current is not None and current.server == server:
                return current

        connection = FTPConnection(server, idle_timeout=self._settings.idle_timeout)
        self.set_shared_connection(connection)
        return connection

    def create_temporary_connection(self) -> FTPConnection:
        """
        Create a temporary sibling of the primary connection.

        The sibling is not tracked; callers must disconnect it.

        Raises:
            FTPStateError: If there is no primary connection
        """
        shared = self.get_shared_connection()
        if shared is None:
            raise FTPStateError(
                "Creating a temporary connection", "available", "no shared connection"
            )
        return shared.create_temporary_connection()

    def start_monitoring(self, on_lost: Optional[LostCallback] = None) -> ConnectionMonitor:
        """
        Start watching the primary connection.

        Any monitor already running is replaced.

        Raises:
            FTPStateError: If there is no primary connection
        """
        with self._lock:
            if self._shared is None:
                raise FTPStateError("Monitoring", "available", "no shared connection")
            previous = self._monitor
            monitor = ConnectionMonitor(
                self._shared,
                interval=self._settings.connection_monitor_interval,
                on_lost=on_lost
            )
            self._monitor = monitor

        if previous is not None:
            previous.stop()
        monitor.start()
        return monitor

    def stop_monitoring(self) -> None:
        """Stop watching the primary connection."""
        with self._lock:
            monitor = self._monitor
            self._monitor = None
        if monitor is not None:
            monitor.stop()

    def shutdown(self) -> None:
        """Stop monitoring and disconnect the primary connection."""
        self.set_shared_connection(None)
        logger.info("Connection manager shut down")
