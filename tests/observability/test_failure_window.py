"""
Test suite for the failure-window tracker.

Uses injected millisecond timestamps instead of a real clock.

System role: Verification of the tracing circuit breaker
"""

import pytest

from market_map.observability.failure_window import FailureWindowTracker, TrackerState


class TestFailureWindowTracker:
    """Test suite for FailureWindowTracker.record_failure()."""

    def test_should_disable_at_threshold_within_window(self) -> None:
        # Arrange
        tracker = FailureWindowTracker(window_ms=60_000, threshold=3)

        # Act
        results = [tracker.record_failure(t) for t in (0, 10_000, 59_000)]

        # Assert
        assert results == [False, False, True]
        assert tracker.disabled
        assert tracker.state is TrackerState.DISABLED

    def test_failure_after_window_should_start_new_window(self) -> None:
        # Arrange
        tracker = FailureWindowTracker(window_ms=60_000, threshold=3)
        tracker.record_failure(0)
        tracker.record_failure(30_000)

        # Act
        disabled = tracker.record_failure(60_001)

        # Assert
        assert not disabled
        assert tracker.failure_count == 1

    def test_boundary_failure_counts_in_same_window(self) -> None:
        tracker = FailureWindowTracker(window_ms=1_000, threshold=2)
        tracker.record_failure(0)

        assert tracker.record_failure(1_000)

    def test_disable_should_be_permanent(self) -> None:
        tracker = FailureWindowTracker(window_ms=1_000, threshold=1)
        assert tracker.record_failure(0)

        assert tracker.record_failure(10_000_000)
        assert tracker.disabled

    @pytest.mark.parametrize("window_ms,threshold", [(0, 3), (1_000, 0), (-5, 1)])
    def test_should_reject_non_positive_arguments(self, window_ms: int, threshold: int) -> None:
        with pytest.raises(ValueError):
            FailureWindowTracker(window_ms=window_ms, threshold=threshold)
