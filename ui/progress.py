"""Render progress reporting"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional

STAGE_NAMES = {
    0: "Normalization",
    1: "Row Computation",
    2: "Aggregation",
    3: "Layout",
    4: "Document Assembly",
}


class ProgressTracker(ABC):
    """Receives stage events from the renderer"""

    @abstractmethod
    def start_stage(self, stage_num: int, stage_name: str):
        pass

    @abstractmethod
    def complete_stage(self, stage_num: int):
        pass

    @abstractmethod
    def fail(self, stage_num: int, message: str):
        pass

    @abstractmethod
    def complete(self):
        """Called once after the last stage"""
        pass


class ConsoleProgress(ProgressTracker):
    """Prints one line per stage with its duration"""

    def __init__(self):
        self.completed = set()
        self.durations: Dict[int, float] = {}
        self._started: Optional[float] = None

    def start_stage(self, stage_num: int, stage_name: str):
        self._started = time.perf_counter()
        print(f"[◉] Stage {stage_num}: {stage_name}...")

    def complete_stage(self, stage_num: int):
        elapsed = time.perf_counter() - (self._started or time.perf_counter())
        self.durations[stage_num] = elapsed
        self.completed.add(stage_num)
        print(f"[✓] Stage {stage_num}: {STAGE_NAMES.get(stage_num, 'Unknown')} ({elapsed * 1000:.1f} ms)")

    def fail(self, stage_num: int, message: str):
        print(f"[✗] Stage {stage_num}: {STAGE_NAMES.get(stage_num, 'Unknown')} failed - {message}")

    def complete(self):
        total = sum(self.durations.values())
        print(f"\n[✓] Render complete in {total * 1000:.1f} ms")


class LoggingProgress(ProgressTracker):
    """Stage events as debug log records; the default when used as a library"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.completed = set()

    def start_stage(self, stage_num: int, stage_name: str):
        self.logger.debug(f"Stage {stage_num}: {stage_name} started")

    def complete_stage(self, stage_num: int):
        self.completed.add(stage_num)
        self.logger.debug(f"Stage {stage_num}: {STAGE_NAMES.get(stage_num, 'Unknown')} complete")

    def fail(self, stage_num: int, message: str):
        self.logger.error(f"Stage {stage_num}: {STAGE_NAMES.get(stage_num, 'Unknown')} failed - {message}")

    def complete(self):
        self.logger.debug("Render complete")
