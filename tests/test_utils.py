# ABOUTME: Test suite for parallel-for and logging helpers
# ABOUTME: Covers range splitting, error propagation, progress callbacks and timing trees

import pytest
import logging
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from splatpack.utils.logging_utils import ProgressTracker, Timer, TimingStats, setup_logging
from splatpack.utils.parallel import parallel_for, split_ranges


class TestSplitRanges:
    """Index range partitioning."""

    def test_even_split(self):
        assert split_ranges(10, 5) == [(0, 5), (5, 10)]

    def test_partial_last_range(self):
        assert split_ranges(11, 5) == [(0, 5), (5, 10), (10, 11)]

    def test_empty(self):
        assert split_ranges(0, 5) == []

    def test_invalid_grain(self):
        with pytest.raises(ValueError):
            split_ranges(10, 0)


class TestParallelFor:
    """Fork-join execution."""

    def test_every_index_written_once(self):
        out = np.zeros(1000, dtype=np.int64)

        def run(start, end):
            out[start:end] += 1

        parallel_for(1000, 37, run, max_workers=4)
        assert np.all(out == 1)

    def test_serial_single_range(self):
        calls = []
        parallel_for(10, 100, lambda s, e: calls.append((s, e)))
        assert calls == [(0, 10)]

    def test_exception_propagates(self):
        def run(start, end):
            if start == 20:
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            parallel_for(100, 10, run, max_workers=4)


class TestLoggingUtils:
    """Timing and progress helpers."""

    def test_setup_logging_levels(self):
        assert setup_logging(verbose=True).level == logging.DEBUG
        assert setup_logging(quiet=True).level == logging.WARNING
        logger = setup_logging()
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1

    def test_timer(self):
        with Timer("work") as timer:
            pass
        assert timer.elapsed >= 0.0

    def test_timer_and_progress_messages(self, caplog):
        """Timing and progress lines are formatted before they reach handlers."""
        logger = logging.getLogger('splatpack_messages_test')
        logger.setLevel(logging.DEBUG)
        logger.addHandler(caplog.handler)
        try:
            with Timer("work", logger=logger):
                pass
            ProgressTracker("clustering", logger=logger, update_interval=0.0)(0.5)
        finally:
            logger.removeHandler(caplog.handler)

        messages = [r.getMessage() for r in caplog.records]
        assert "[TIMER] work started..." in messages
        assert any(m.startswith("[OK] work complete in ") for m in messages)
        assert any(m.startswith("[PROGRESS] clustering: 50% (") for m in messages)

    def test_timing_tree(self):
        stats = TimingStats("Stage", 2.0)
        stats.add_substep("Step", 0.5)
        text = stats.format_tree(4.0)
        lines = text.split('\n')

        assert len(lines) == 2
        assert lines[0].startswith("Stage")
        assert "50.0%" in lines[0]
        assert lines[1].startswith("  Step")
        assert "500ms" in lines[1]

    def test_progress_tracker_never_cancels(self):
        tracker = ProgressTracker("clustering", update_interval=0.0)
        assert tracker(0.5) is True
        assert tracker.last_fraction == 0.5
