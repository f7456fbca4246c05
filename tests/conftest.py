"""Shared fixtures for the migration client tests."""

import pytest

from stoz.models import TaskState, TaskStatus


def build_status(task_id="T1", status=TaskState.RUNNING, processed=0, total=100,
                 transferred=0, total_size=1000, progress=0.0, **extra):
    return TaskStatus(
        task_id=task_id,
        status=status,
        processed_files=processed,
        total_files=total,
        transferred_size=transferred,
        total_size=total_size,
        progress=progress,
        **extra,
    )


@pytest.fixture
def make_status():
    """Factory for TaskStatus snapshots."""
    return build_status
