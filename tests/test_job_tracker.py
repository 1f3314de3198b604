"""Unit tests for JobTracker and JobRecord."""

from __future__ import annotations

from pathlib import Path

from printrelay.printflow.job_tracker import JobRecord, JobState, JobTracker


class TestMarkStaged:
    """Tests for adding keys."""

    def test_mark_staged_tracks_key(self) -> None:
        tracker = JobTracker()

        tracker.mark_staged("orders/invoice.ps")

        assert tracker.contains("orders/invoice.ps")
        assert len(tracker) == 1

    def test_mark_staged_is_idempotent(self) -> None:
        """Marking a tracked key again neither fails nor duplicates it."""
        tracker = JobTracker()

        tracker.mark_staged("job.ps")
        tracker.mark_staged("job.ps")

        assert tracker.contains("job.ps")
        assert len(tracker) == 1

    def test_unknown_key_is_not_contained(self) -> None:
        tracker = JobTracker()

        assert tracker.contains("never-seen.ps") is False


class TestRelease:
    """Tests for removing keys."""

    def test_release_removes_key(self) -> None:
        tracker = JobTracker()
        tracker.mark_staged("job.ps")

        tracker.release("job.ps")

        assert tracker.contains("job.ps") is False
        assert len(tracker) == 0

    def test_release_untracked_key_is_noop(self) -> None:
        tracker = JobTracker()
        tracker.mark_staged("other.ps")

        tracker.release("job.ps")

        assert tracker.contains("other.ps")
        assert len(tracker) == 1

    def test_key_can_be_tracked_again_after_release(self) -> None:
        tracker = JobTracker()
        tracker.mark_staged("job.ps")
        tracker.release("job.ps")

        tracker.mark_staged("job.ps")

        assert tracker.contains("job.ps")


class TestJobRecord:
    """Tests for job record transitions."""

    def test_new_record_is_discovered(self) -> None:
        record = JobRecord(key="job.ps")

        assert record.state == JobState.DISCOVERED
        assert record.local_path is None
        assert record.last_error is None

    def test_transition_records_error_and_timestamp(self) -> None:
        record = JobRecord(key="job.ps")
        before = record.updated_at

        record.transition(JobState.FAILED, error="timeout")

        assert record.state == JobState.FAILED
        assert record.last_error == "timeout"
        assert record.updated_at >= before

    def test_transition_clears_previous_error(self) -> None:
        record = JobRecord(key="job.ps", state=JobState.FAILED, last_error="timeout")

        record.transition(JobState.PRINTING)

        assert record.last_error is None

    def test_display_dict(self) -> None:
        record = JobRecord(key="job.ps", local_path=Path("/tmp/job.ps"), printer_name="Office Printer")
        record.transition(JobState.STAGED)

        display = record.to_display_dict()

        assert display["key"] == "job.ps"
        assert display["state"] == "staged"
        assert display["local_path"] == str(Path("/tmp/job.ps"))
        assert display["printer"] == "Office Printer"
        assert display["error"] == ""
