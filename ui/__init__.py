"""User interface components"""

from .progress import ProgressTracker, ConsoleProgress, LoggingProgress

__all__ = [
    "ProgressTracker",
    "ConsoleProgress",
    "LoggingProgress",
]
