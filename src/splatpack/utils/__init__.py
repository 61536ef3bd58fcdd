"""Shared helpers: logging, timing and parallel-for."""

from .logging_utils import setup_logging, Timer, TimingStats, ProgressTracker
from .parallel import parallel_for, split_ranges

__all__ = ['setup_logging', 'Timer', 'TimingStats', 'ProgressTracker', 'parallel_for', 'split_ranges']
