"""
Logging utilities for the splat compression pipeline.

Provides structured logging with timestamps, stage timing, and throttled
progress reporting for long-running clustering.
"""

import logging
import time
from typing import Optional, List
from dataclasses import dataclass, field

LOGGER_NAME = 'splatpack'


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """
    Configure logging for the pipeline.

    Args:
        verbose: Enable DEBUG level logging
        quiet: Only show WARNING and above

    Returns:
        Configured logger
    """
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

    formatter = logging.Formatter(
        '[%(asctime)s] [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler.setFormatter(formatter)
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
            logger: Logger to use (defaults to splatpack logger)
        """
        self.name = name
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.start_time = None
        self.elapsed = None

    def __enter__(self):
        """Start timing."""
        self.start_time = time.time()
        self.logger.debug(f"[TIMER] {self.name} started...")
        return self

    def __exit__(self, *args):
        """Stop timing and log result."""
        self.elapsed = time.time() - self.start_time
        self.logger.info(f"[OK] {self.name} complete in {self.elapsed:.2f}s")


@dataclass
class TimingStats:
    """Track timing statistics for pipeline stages."""

    name: str
    elapsed: float
    substeps: List['TimingStats'] = field(default_factory=list)

    def add_substep(self, name: str, elapsed: float):
        """Add a substep timing."""
        self.substeps.append(TimingStats(name, elapsed))

    def get_percentage(self, total: float) -> float:
        """Get percentage of total time."""
        return (self.elapsed / total * 100) if total > 0 else 0

    def format_tree(self, total_time: float, indent: int = 0) -> str:
        """Format as a tree structure."""
        lines = []
        prefix = "  " * indent
        pct = self.get_percentage(total_time)

        if self.elapsed < 1:
            time_str = f"{self.elapsed*1000:.0f}ms"
        else:
            time_str = f"{self.elapsed:.1f}s"

        dots = "." * max(1, 50 - len(prefix) - len(self.name))
        lines.append(f"{prefix}{self.name} {dots} {time_str:>8} ({pct:>5.1f}%)")

        for substep in self.substeps:
            lines.extend(substep.format_tree(total_time, indent + 1).split('\n'))

        return '\n'.join(lines)


class ProgressTracker:
    """
    Log progress of a long operation with throttled milestone updates.

    An instance is callable with a completion fraction in [0, 1] and returns
    True, so it can be passed directly as a clustering progress callback.
    """

    def __init__(self,
                 name: str,
                 update_interval: float = 10.0,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize progress tracker.

        Args:
            name: Name of the operation
            update_interval: How often to log updates (seconds)
            logger: Logger to use
        """
        self.name = name
        self.update_interval = update_interval
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.start_time = time.time()
        self.last_update = self.start_time
        self.last_fraction = 0.0

    def check_and_log(self, fraction: float) -> float:
        """
        Record progress and log if the update interval passed.

        Args:
            fraction: Completed fraction of the operation

        Returns:
            Elapsed time in seconds
        """
        now = time.time()
        elapsed = now - self.start_time
        self.last_fraction = fraction

        if now - self.last_update >= self.update_interval:
            self.logger.info(
                f"[PROGRESS] {self.name}: {fraction * 100:.0f}% "
                f"({elapsed:.0f}s elapsed)"
            )
            self.last_update = now

        return elapsed

    def __call__(self, fraction: float) -> bool:
        self.check_and_log(fraction)
        return True
