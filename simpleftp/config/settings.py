"""Application settings management for SimpleFTP.

AppSettings holds every tunable of the connection, file system and
upload layers; SettingsManager persists it as JSON and environment
variables can override it.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Mapping, Optional

from simpleftp.config.paths import get_settings_path, get_staging_dir


logger = logging.getLogger("simpleftp.config")

# Prefix for environment variable overrides
ENV_PREFIX = "SIMPLEFTP_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class AppSettings:
    """Settings shared by the connection, file system and upload layers."""

    # Connection monitoring
    connection_monitor_interval: int = 10
    idle_timeout: int = 0

    # Transfers
    temp_directory: str = ""
    upload_failure_threshold: int = 3
    upload_poll_interval: float = 0.5

    # File metadata
    file_size_follow_link: bool = True
    file_perms_follow_link: bool = True
    server_remote_modification_time: bool = False
    cache_remote_directory_listing: bool = True

    debug: bool = False

    @property
    def staging_dir(self) -> Path:
        """Staging directory for transient transfer files (created on access)."""
        return get_staging_dir(self.temp_directory)

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        """Create settings from dictionary, ignoring unknown keys."""
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppSettings":
        """
        Create settings from SIMPLEFTP_<FIELD> environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ValueError: If a variable cannot be converted to the field's type
        """
        environ = os.environ if environ is None else environ
        values = {}
        defaults = cls()

        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue

            default = getattr(defaults, f.name)
            if isinstance(default, bool):
                lowered = raw.strip().lower()
                if lowered in _TRUE_VALUES:
                    values[f.name] = True
                elif lowered in _FALSE_VALUES:
                    values[f.name] = False
                else:
                    raise ValueError(f"Invalid boolean for {ENV_PREFIX}{f.name.upper()}: {raw}")
            elif isinstance(default, int):
                values[f.name] = int(raw)
            elif isinstance(default, float):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw

        return cls(**values)


class SettingsManager:
    """Loads and stores AppSettings as a JSON file."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize the manager.

        Args:
            config_path: Settings file, defaults to the per-user settings path
        """
        self._config_path = config_path or get_settings_path()
        self._settings: Optional[AppSettings] = None

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def settings(self) -> AppSettings:
        """Current settings, loaded on first access."""
        if self._settings is None:
            return self.load()
        return self._settings

    def _read(self) -> dict:
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable settings file {self._config_path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self._config_path}: not a JSON object")
            return {}
        return data

    def load(self) -> AppSettings:
        """
        Load settings from disk.

        A missing or unreadable file yields the defaults.
        """
        self._settings = AppSettings.from_dict(self._read())
        return self._settings

    def save(self, settings: AppSettings) -> None:
        """
        Write settings to disk.

        The file is replaced atomically so a crash never leaves it half written.
        """
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        partial_path = self._config_path.with_name(self._config_path.name + ".partial")

        with open(partial_path, "w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2)
        os.replace(partial_path, self._config_path)

        self._settings = settings
        logger.debug(f"Saved settings to {self._config_path}")

    def reset(self) -> AppSettings:
        """Drop the settings file and return the defaults."""
        self._config_path.unlink(missing_ok=True)
        self._settings = AppSettings()
        return self._settings

    def update(self, **changes) -> AppSettings:
        """
        Change some fields and save.

        Raises:
            ValueError: If a name is not a settings field
        """
        unknown = sorted(set(changes) - {f.name for f in fields(AppSettings)})
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")

        updated = replace(self.settings, **changes)
        self.save(updated)
        return updated
