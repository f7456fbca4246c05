"""Wizard actions combining the workflow store, task store and gateway."""

import logging
from typing import Any, List, Optional

from .errors import ValidationError
from .gateway import ServiceGateway
from .models import DiscoveredDevice, ScanResult, StorageTarget, WorkflowStep
from .recovery import Navigator, monitor_route, task_detail_route
from .task_store import TaskStore
from .workflow_store import WorkflowStore

logger = logging.getLogger(__name__)

_KEEP_FILTER = object()


class MigrationWizard:
    """Drives the select -> configure -> monitor flow."""

    def __init__(
        self,
        gateway: ServiceGateway,
        store: WorkflowStore,
        task_store: TaskStore,
        navigator: Optional[Navigator] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.task_store = task_store
        self.navigator = navigator

    async def scan(self, force: bool = False) -> ScanResult:
        """Return the cached scan while it is fresh, otherwise rescan the source."""
        if not force and self.store.is_scan_cache_valid():
            logger.debug("Using cached scan result")
            return self.store.scan_result
        logger.info("Scanning migration source")
        result = await self.gateway.scan()
        self.store.cache_scan(result)
        return result

    async def discover_devices(self) -> List[DiscoveredDevice]:
        devices = await self.gateway.discover_devices()
        self.store.set_discovered_devices(devices)
        logger.info(f"Discovered {len(devices)} destination devices")
        return devices

    def _require_credentials(self) -> None:
        destination = self.store.destination
        missing = [name for name in ("host", "username", "password") if not getattr(destination, name)]
        if missing:
            raise ValidationError(f"Missing destination {', '.join(missing)}")

    async def test_connection(self) -> str:
        self._require_credentials()
        destination = self.store.destination
        return await self.gateway.test_connection(destination.host, destination.username, destination.password)

    async def load_storage_targets(self) -> List[StorageTarget]:
        """
        Fetch destination storage targets.

        The first healthy target is selected when nothing is selected yet.

        Returns:
            All storage targets reported by the destination
        """
        self._require_credentials()
        destination = self.store.destination
        targets = await self.gateway.list_storages(destination.host, destination.username, destination.password)
        self.store.set_storage_targets(targets)
        if self.store.selected_storage is None:
            healthy = next((t for t in targets if t.selectable), None)
            if healthy is not None:
                self.store.select_storage(healthy)
        return targets

    async def start_migration(self) -> str:
        """
        Validate the wizard state and create the migration task.

        Returns:
            The new task id

        Raises:
            ValidationError: If selection or destination is incomplete
            RequestFailed: If the server rejects the task
        """
        store = self.store
        if not store.selection:
            raise ValidationError("Select at least one folder to migrate")
        self._require_credentials()
        if store.path_error:
            raise ValidationError(store.path_error)
        if not store.destination.base_path:
            raise ValidationError("Destination path is required")

        task_id = await self.gateway.create_migration(
            sorted(store.selection), store.destination, store.options
        )
        store.set_task_id(task_id)
        store.advance(WorkflowStep.MONITOR)
        if self.navigator is not None:
            self.navigator.push(monitor_route(task_id))
        return task_id

    def new_migration(self) -> None:
        self.store.reset()
        if self.navigator is not None:
            self.navigator.push("/")

    def open_task_detail(self, task_id: str) -> None:
        """Navigate to the detail view of a task from the history list."""
        if self.navigator is not None:
            self.navigator.push(task_detail_route(task_id))

    async def load_history(self, page: Optional[int] = None, status_filter: Any = _KEEP_FILTER) -> None:
        """
        Load one page of task history into the task store.

        Args:
            page: Zero-based page to load; keeps the current page if omitted
            status_filter: TaskState to show, None for all tasks; keeps the
                current filter if omitted
        """
        tasks = self.task_store
        if status_filter is not _KEEP_FILTER:
            tasks.set_status_filter(status_filter)
        if page is not None:
            tasks.set_pagination(page=page)
        tasks.is_loading = True
        try:
            pagination = tasks.pagination
            result = await self.gateway.list_tasks(limit=pagination.page_size, offset=pagination.offset)
            tasks.set_tasks(result.tasks)
            tasks.set_pagination(total=result.total)
        finally:
            tasks.is_loading = False
