"""Volatile task state: paged task history and the latest live snapshot per task."""

import logging
import math
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from .models import MigrationTask, TaskState, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


@dataclass
class Pagination:
    page: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    total: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total / self.page_size)

    @property
    def offset(self) -> int:
        return self.page * self.page_size


class TaskStore:
    """
    Ephemeral store for task history and live snapshots.

    Nothing here is persisted; it is refetched from the server after a
    reload.
    """

    def __init__(self):
        self._listeners: List[Callable[["TaskStore"], None]] = []
        self.reset()

    def reset(self) -> None:
        self.tasks: List[MigrationTask] = []
        self._snapshots: Dict[str, TaskStatus] = {}
        self.pagination = Pagination()
        self.status_filter: Optional[TaskState] = None
        self.is_loading = False

    def subscribe(self, listener: Callable[["TaskStore"], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # History

    def set_tasks(self, tasks: List[MigrationTask]) -> None:
        self.tasks = list(tasks)
        self._notify()

    def add_task(self, task: MigrationTask) -> None:
        self.tasks = [task] + [t for t in self.tasks if t.task_id != task.task_id]
        self._notify()

    def update_task(self, task_id: str, **updates) -> bool:
        for index, task in enumerate(self.tasks):
            if task.task_id == task_id:
                self.tasks[index] = replace(task, **updates)
                self._notify()
                return True
        return False

    def get_task(self, task_id: str) -> Optional[MigrationTask]:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        return None

    @property
    def filtered_tasks(self) -> List[MigrationTask]:
        if self.status_filter is None:
            return list(self.tasks)
        return [t for t in self.tasks if t.status is self.status_filter]

    def set_status_filter(self, status: Optional[TaskState]) -> None:
        self.status_filter = status
        self._notify()

    def set_pagination(self, page: Optional[int] = None, page_size: Optional[int] = None, total: Optional[int] = None) -> None:
        if page is not None:
            self.pagination.page = max(0, page)
        if page_size is not None:
            self.pagination.page_size = page_size
        if total is not None:
            self.pagination.total = total
        self._notify()

    # Live snapshots

    def set_snapshot(self, status: TaskStatus) -> None:
        """Store a snapshot and mirror its counters into the history record."""
        self._snapshots[status.task_id] = status
        for index, task in enumerate(self.tasks):
            if task.task_id == status.task_id:
                self.tasks[index] = replace(
                    task,
                    status=status.status,
                    error=status.error,
                    processed_files=status.processed_files,
                    total_files=status.total_files,
                    failed_files=status.failed_files,
                    transferred_size=status.transferred_size,
                    total_size=status.total_size,
                    progress=status.progress,
                )
                break
        self._notify()

    def get_snapshot(self, task_id: str) -> Optional[TaskStatus]:
        return self._snapshots.get(task_id)

    def remove_snapshot(self, task_id: str) -> None:
        if self._snapshots.pop(task_id, None) is not None:
            self._notify()

    def clear_snapshots(self) -> None:
        self._snapshots.clear()
        self._notify()

    @property
    def snapshot_ids(self) -> List[str]:
        return list(self._snapshots)
