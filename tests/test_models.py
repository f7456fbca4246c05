"""Tests for payload parsing and snapshot formatting."""

from stoz.formatting import format_bytes, format_duration, summarize_status
from stoz.models import (
    DiscoveredDevice,
    MigrationOptions,
    MigrationTask,
    ScanResult,
    StorageMedium,
    StorageTarget,
    TaskState,
    TaskStatus,
    WorkflowStep,
)


class TestTaskState:
    def test_terminal_and_active(self):
        assert TaskState.CANCELLED.is_terminal
        assert TaskState.COMPLETED.is_terminal
        assert not TaskState.VERIFYING.is_terminal
        assert TaskState.VERIFYING.is_active
        assert not TaskState.PAUSED.is_active

    def test_parse_unknown_falls_back_to_pending(self):
        assert TaskState.parse("RUNNING") is TaskState.RUNNING
        assert TaskState.parse("exploded") is TaskState.PENDING

    def test_step_order(self):
        assert WorkflowStep.SELECT.order < WorkflowStep.CONFIGURE.order < WorkflowStep.MONITOR.order


class TestPayloadParsing:
    def test_migration_task_decodes_json_text_fields(self):
        task = MigrationTask.from_dict({
            "id": 7,
            "task_id": "T1",
            "status": "completed",
            "source_folders": '["/vol1/media", "/vol1/docs"]',
            "options": '{"overwrite_existing": true, "skip_errors": false}',
            "created_at": "2024-01-01T00:00:00Z",
        })
        assert task.source_folders == ["/vol1/media", "/vol1/docs"]
        assert task.options == MigrationOptions(overwrite_existing=True, skip_errors=False)
        assert task.status is TaskState.COMPLETED

    def test_migration_task_without_task_id(self):
        task = MigrationTask.from_dict({"id": 3, "status": "failed"})
        assert task.task_id == ""
        assert task.status is TaskState.FAILED

    def test_migration_task_bad_json_uses_default(self):
        task = MigrationTask.from_dict({"task_id": "T1", "source_folders": "not json"})
        assert task.source_folders == []

    def test_task_status_parsing(self):
        status = TaskStatus.from_dict({
            "task_id": "T1",
            "status": "verifying",
            "processed_files": 10,
            "total_files": 10,
            "verifying_files": 4,
            "verify_failed_files": 1,
            "transferred_size": 500,
            "total_size": 1000,
            "speed": 100,
            "progress": 97.5,
            "source_folders": ["/vol1/media"],
        })
        assert status.status is TaskState.VERIFYING
        assert status.estimated_remaining_seconds == 5.0
        axes = status.progress_axes
        assert axes.transfer_percent == 100.0
        assert axes.verify_percent == 40.0
        assert axes.overall_percent == 97.5

    def test_storage_target(self):
        target = StorageTarget.from_dict({
            "name": "Backup",
            "path": "/media/Backup",
            "type": "USB",
            "extensions": {"health": True, "size": 1000, "used": 250},
        })
        assert target.medium is StorageMedium.USB
        assert target.selectable
        assert target.available == 750
        assert StorageTarget.from_dict(target.to_dict()) == target

    def test_storage_health_must_be_true(self):
        target = StorageTarget.from_dict({"name": "x", "path": "/x", "extensions": {"health": "yes"}})
        assert not target.selectable

    def test_discovered_device_ignores_unknown_keys(self):
        device = DiscoveredDevice.from_dict({"device_name": "zima", "lan_ipv4": ["192.168.1.5"], "extra": 1})
        assert device.address == "192.168.1.5"

    def test_scan_result(self):
        scan = ScanResult.from_dict({
            "volumes": [{"name": "vol1", "path": "/vol1", "folders": [
                {"path": "/vol1/a", "name": "a", "children": [{"path": "/vol1/a/b", "name": "b"}]},
            ]}],
            "scanned_at": "2024-01-01T00:00:00Z",
        })
        assert scan.folder_paths() == ["/vol1/a", "/vol1/a/b"]


class TestFormatting:
    def test_format_bytes(self):
        assert format_bytes(0) == "0 B"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(1024 ** 3) == "1 GB"

    def test_format_duration(self):
        assert format_duration(None) == "-"
        assert format_duration(5) == "5s"
        assert format_duration(125) == "2m 5s"
        assert format_duration(3725) == "1h 2m 5s"

    def test_summary_keeps_axes_separate(self, make_status):
        status = make_status(status=TaskState.VERIFYING, processed=10, total=10,
                             transferred=1000, total_size=1000, progress=96.0,
                             verifying_files=3, verify_failed_files=1)
        summary = summarize_status(status)
        assert summary["files"] == "10/10"
        assert summary["verified"] == "3/10"
        assert summary["progress_percent"] == 96.0
        assert summary["verify_failed_files"] == 1

    def test_summary_for_failed_task(self, make_status):
        summary = summarize_status(make_status(status=TaskState.FAILED, error="disk full"))
        assert summary["error"] == "disk full"
        assert "speed" not in summary
