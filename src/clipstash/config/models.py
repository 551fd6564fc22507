"""Configuration models describing clipstash settings."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from clipstash.capture.models import ContentCategory


class ClipstashBaseModel(BaseModel):
    """Shared configuration for clipstash Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class HistorySettings(ClipstashBaseModel):
    """Retention policy for the clipboard history.

    Attributes:
        max_items: Maximum number of entries kept in history.
        max_total_size_mb: Upper bound on the summed size of stored representations.
        excluded_categories: Categories that are never recorded.
    """

    max_items: int = Field(default=50, ge=1)
    max_total_size_mb: int = Field(default=1024, ge=1)
    excluded_categories: List[ContentCategory] = Field(default_factory=list)

    @property
    def max_total_size_bytes(self) -> int:
        """Return the size cap expressed in bytes."""
        return self.max_total_size_mb * 1024 * 1024


class CaptureSettings(ClipstashBaseModel):
    """Options governing clipboard polling and capture.

    Attributes:
        poll_interval_seconds: Delay between change-counter checks.
        restore_settle_seconds: Time the restoring flag stays raised after a restore.
        max_capture_size_mb: Cumulative size after which further representations
            of a single snapshot are dropped.
        backend: Clipboard backend name (``auto``, ``wayland``, ``x11`` or ``memory``).
    """

    poll_interval_seconds: float = Field(default=0.5, gt=0)
    restore_settle_seconds: float = Field(default=0.5, ge=0)
    max_capture_size_mb: int = Field(default=50, ge=1)
    backend: str = "auto"


class StorageSettings(ClipstashBaseModel):
    """Location of persisted history data.

    Attributes:
        directory: Application-support directory holding the index and blobs.
    """

    directory: str = "~/.clipstash/data"


class LoggingSettings(ClipstashBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
        file_logging: Whether to write a rotating log file next to the data directory.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 5
    file_logging: bool = True


class CLIOptions(ClipstashBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        list_limit: Default number of entries shown by ``clipstash list``.
    """

    quiet_default: bool = False
    list_limit: int = 20


class ClipstashConfig(ClipstashBaseModel):
    """Top-level configuration struct for clipstash.

    Attributes:
        history: Retention settings.
        capture: Polling and capture settings.
        storage: Persistence location.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    history: HistorySettings = Field(default_factory=HistorySettings)
    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "ClipstashBaseModel",
    "HistorySettings",
    "CaptureSettings",
    "StorageSettings",
    "LoggingSettings",
    "CLIOptions",
    "ClipstashConfig",
]
