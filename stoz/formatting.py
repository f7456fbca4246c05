"""Human-readable summaries of task snapshots."""

from typing import Any, Dict, Optional

from .models import TaskState, TaskStatus

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_bytes(num_bytes: float) -> str:
    """Format a byte count with binary units, e.g. 1536 -> '1.5 KB'."""
    if num_bytes <= 0:
        return "0 B"
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[unit]}"


def format_duration(seconds: Optional[float]) -> str:
    """Format seconds as '1h 2m 3s', '2m 3s' or '3s'."""
    if seconds is None:
        return "-"
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_speed(bytes_per_second: float) -> str:
    return f"{format_bytes(bytes_per_second)}/s"


def summarize_status(status: TaskStatus) -> Dict[str, Any]:
    """
    Flatten a snapshot into display fields.

    Transfer and verification progress are reported separately; the overall
    percentage is the server's own ``progress`` value.
    """
    axes = status.progress_axes
    summary: Dict[str, Any] = {
        "task_id": status.task_id,
        "status": status.status.value,
        "progress_percent": round(axes.overall_percent, 1),
        "files": f"{status.processed_files}/{status.total_files}",
        "bytes": f"{format_bytes(status.transferred_size)} / {format_bytes(status.total_size)}",
        "failed_files": status.failed_files,
    }
    if status.status in (TaskState.RUNNING, TaskState.VERIFYING):
        summary["speed"] = format_speed(status.speed)
        summary["eta"] = format_duration(status.estimated_remaining_seconds)
    if status.current_file:
        summary["current_file"] = status.current_file
        summary["current_file_percent"] = round(status.current_file_progress, 1)
    if axes.verifying or status.verifying_files or status.verify_failed_files:
        summary["verified"] = f"{axes.files_verified}/{axes.total_files}"
        summary["verify_failed_files"] = status.verify_failed_files
    if status.error:
        summary["error"] = status.error
    return summary
