"""Tests for the progress tracker."""

from unittest.mock import Mock

from metaloc.utils.progress_tracker import (
    SILENT_CONFIG,
    GroupProgress,
    ProgressTracker,
    ProgressTrackerConfig,
)


class TestProgressTracker:
    """Test phase and group progress reporting."""

    def test_update_records_phase(self) -> None:
        callback = Mock()
        tracker = ProgressTracker(callback=callback)

        tracker.update("Exporting views...", 6, 12, sheet="Views")

        assert tracker.current_step == 6
        assert tracker.total_steps == 12
        assert tracker.message == "Exporting views..."
        callback.assert_called_once_with("Exporting views...", 6, 12, {"sheet": "Views"})

    def test_group_progress_resets(self) -> None:
        tracker = ProgressTracker()

        tracker.start_group("Entities", 2)
        tracker.advance("Updating Entities")
        tracker.advance("Updating Entities")

        assert tracker.group == GroupProgress("Entities", 2, 2, "Updating Entities")
        assert tracker.group.fraction == 1.0

        tracker.start_group("Attributes", 5)
        assert tracker.group.processed == 0
        tracker.reset_group()
        assert tracker.group.total == 0
        assert tracker.group.fraction == 0.0

    def test_group_callback_metadata(self) -> None:
        callback = Mock()
        tracker = ProgressTracker(callback=callback)

        tracker.start_group("Views", 3)
        tracker.advance("Updating Views")

        callback.assert_called_with("Updating Views", 1, 3, {"group": "Views"})

    def test_silent_config_skips_callback(self) -> None:
        callback = Mock()
        tracker = ProgressTracker(callback=callback, config=SILENT_CONFIG)

        tracker.update("Reading workbook...", 0, 1)

        callback.assert_not_called()

    def test_failing_callback_is_recorded(self) -> None:
        tracker = ProgressTracker(callback=Mock(side_effect=RuntimeError("sink closed")))

        tracker.update("Publishing customizations...", 0, 1)

        assert tracker.errors == ["Progress callback failed: sink closed"]

    def test_error_and_warning_limits(self) -> None:
        tracker = ProgressTracker(config=ProgressTrackerConfig(max_errors=1, max_warnings=2))

        for index in range(3):
            tracker.add_error(f"error {index}")
            tracker.add_warning(f"warning {index}")

        summary = tracker.get_summary()
        assert summary["error_count"] == 1
        assert summary["warning_count"] == 2
        assert "total_time" in summary

    def test_summary_without_elapsed_time(self) -> None:
        tracker = ProgressTracker(config=ProgressTrackerConfig(track_elapsed_time=False))

        assert "total_time" not in tracker.get_summary()
