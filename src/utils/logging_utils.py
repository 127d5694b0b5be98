"""
Logging utilities for the splat conversion pipeline.

Provides console logging setup and stage timing.
"""

import logging
import time
from typing import Optional
from dataclasses import dataclass

LOGGER_NAME = 'gaussian_pipeline'


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """
    Configure logging for the pipeline.

    Args:
        verbose: Enable DEBUG level logging
        quiet: Only show WARNING and above

    Returns:
        Configured logger
    """
    # Determine log level
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


class Timer:
    """Context manager for timing operations with automatic logging."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        """
        Initialize timer.

        Args:
            name: Name of the operation being timed
            logger: Logger to use (defaults to gaussian_pipeline logger)
        """
        self.name = name
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.start_time = None
        self.elapsed = None

    def __enter__(self):
        """Start timing."""
        self.start_time = time.perf_counter()
        self.logger.debug("[TIMER] %s started...", self.name)
        return self

    def __exit__(self, exc_type, exc, tb):
        """Stop timing and log result."""
        self.elapsed = time.perf_counter() - self.start_time
        if exc_type is None:
            self.logger.info("[OK] %s complete in %.3fs", self.name, self.elapsed)
        else:
            self.logger.debug("[FAIL] %s aborted after %.3fs", self.name, self.elapsed)
        return False


@dataclass
class TimingStats:
    """Track timing statistics for pipeline stages."""

    name: str
    elapsed: float

    def get_percentage(self, total: float) -> float:
        """Get percentage of total time."""
        return (self.elapsed / total * 100) if total > 0 else 0

    def format_tree(self, total_time: float) -> str:
        """Format as one dotted row of the timing breakdown."""
        pct = self.get_percentage(total_time)

        if self.elapsed < 1:
            time_str = f"{self.elapsed*1000:.0f}ms"
        else:
            time_str = f"{self.elapsed:.1f}s"

        dots = "." * max(1, 50 - len(self.name))
        return f"{self.name} {dots} {time_str:>8} ({pct:>5.1f}%)"
