from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class StepType(str, Enum):
    SCANNING = "scanning"
    EXTRACTING = "extracting"
    GENERATING = "generating"
    CACHE_LOADING = "cache_loading"


class ProgressReporter(Protocol):
    def set_step(self, step: StepType) -> None: ...
    def set_file_counts(self, step: StepType, processed: int, total: int, label: Optional[str] = None) -> None: ...


class NullProgressReporter:
    def set_step(self, step: StepType) -> None:
        pass

    def set_file_counts(self, step: StepType, processed: int, total: int, label: Optional[str] = None) -> None:
        pass


class LoggingProgressReporter:
    """Reports progress through the module logger; safe to share between worker threads."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger
        self._lock = threading.Lock()
        self.step: Optional[StepType] = None
        self.processed = 0
        self.total = 0

    def set_step(self, step: StepType) -> None:
        with self._lock:
            self.step = step
            self.processed = 0
            self.total = 0
        self._log.info("Step: %s", step.value)

    def set_file_counts(self, step: StepType, processed: int, total: int, label: Optional[str] = None) -> None:
        with self._lock:
            self.step = step
            self.processed = processed
            self.total = total
        if label:
            self._log.info("%s: %d/%d (%s)", step.value, processed, total, label)
        else:
            self._log.info("%s: %d/%d", step.value, processed, total)


__all__ = ["StepType", "ProgressReporter", "NullProgressReporter", "LoggingProgressReporter"]
