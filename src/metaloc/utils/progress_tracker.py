"""
Progress tracking utilities for metaloc.

Progress is reported through an explicit tracker object that is handed to the
exporter or the dispatcher and inspected by the caller; there is no shared
view-model. The tracker exposes two levels:

- the overall phase (``update``), e.g. "Exporting views..." at step 6 of 12
- the current group (``start_group``/``advance``), e.g. "Processing entity
  3 of 10", which resets to zero whenever a new group starts
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Final, final

logger = logging.getLogger(__name__)

# (message, current, total, metadata)
ProgressCallback = Callable[[str, int, int, dict[str, object]], None]


@dataclass(frozen=True)
class ProgressTrackerConfig:
    """Configuration options for progress tracking behavior."""

    enable_debug_logging: bool = True
    track_elapsed_time: bool = True
    enable_callbacks: bool = True
    max_errors: int = 100
    max_warnings: int = 100


@dataclass(frozen=True)
class GroupProgress:
    """Snapshot of the current group's progress."""

    name: str
    processed: int
    total: int
    message: str

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return self.processed / self.total


@final
class ProgressTracker:
    """Phase and group progress with an optional callback."""

    def __init__(
        self,
        callback: ProgressCallback | None = None,
        config: ProgressTrackerConfig | None = None,
    ) -> None:
        """
        Initialize the progress tracker.

        Args:
            callback: Optional callback invoked on every update
            config: Optional configuration for progress tracking behavior
        """
        self.config: ProgressTrackerConfig = config or ProgressTrackerConfig()
        self.callback: ProgressCallback | None = callback
        self.start_time: float = time.time()
        self.current_step: int = 0
        self.total_steps: int = 0
        self.message: str = ""
        self.group: GroupProgress = GroupProgress("", 0, 0, "")
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def update(self, message: str, current: int, total: int, **kwargs: object) -> None:
        """
        Update the overall phase progress.

        Args:
            message: Status text shown to the operator
            current: Current step number
            total: Total number of steps
            **kwargs: Additional metadata passed to the callback
        """
        self.current_step = current
        self.total_steps = total
        self.message = message
        self._notify(message, current, total, dict(kwargs))

        if self.config.enable_debug_logging:
            logger.debug(f"Progress: {message} ({current}/{total}) - Elapsed: {self.elapsed:.2f}s")

    def start_group(self, name: str, total: int) -> None:
        """Begin a new unit group; group progress restarts at zero."""
        self.group = GroupProgress(name, 0, total, "")
        self._notify(name, 0, total, {"group": name})

    def advance(self, message: str) -> None:
        """Mark one more unit of the current group as processed."""
        group = self.group
        self.group = GroupProgress(group.name, group.processed + 1, group.total, message)
        self._notify(message, self.group.processed, group.total, {"group": group.name})

    def reset_group(self) -> None:
        """Clear group progress between groups."""
        self.group = GroupProgress("", 0, 0, "")

    def add_error(self, error: str) -> None:
        if len(self.errors) < self.config.max_errors:
            self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        if len(self.warnings) < self.config.max_warnings:
            self.warnings.append(warning)

    @property
    def elapsed(self) -> float:
        return time.time() - self.start_time

    def get_summary(self) -> dict[str, object]:
        """
        Get a summary of the tracked run.

        Returns:
            Dictionary containing progress summary information
        """
        summary: dict[str, object] = {
            "completed_steps": self.current_step,
            "total_steps": self.total_steps,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "errors": self.errors.copy(),
            "warnings": self.warnings.copy(),
        }
        if self.config.track_elapsed_time:
            summary["total_time"] = self.elapsed
        return summary

    def _notify(self, message: str, current: int, total: int, metadata: dict[str, object]) -> None:
        if not (self.config.enable_callbacks and self.callback):
            return
        try:
            self.callback(message, current, total, metadata)
        except Exception as e:
            # A broken progress sink must not abort the run.
            self.add_error(f"Progress callback failed: {e}")
            logger.warning(f"Progress callback failed: {e}")


SILENT_CONFIG: Final[ProgressTrackerConfig] = ProgressTrackerConfig(
    enable_debug_logging=False,
    enable_callbacks=False,
)
