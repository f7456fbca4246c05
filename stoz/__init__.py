from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from .config import ClientConfig, load_config
from .gateway import ServiceGateway
from .logging import init_logging
from .recovery import Navigator, RecoveryController
from .session_storage import SessionStorage, storage_for
from .synchronizer import TaskSynchronizer
from .task_store import TaskStore
from .wizard import MigrationWizard
from .workflow_store import WorkflowStore


@dataclass
class MigrationClient:
    """Explicitly owned client components, created together by ``create_client``."""
    config: ClientConfig
    gateway: ServiceGateway
    workflow: WorkflowStore
    tasks: TaskStore
    synchronizer: TaskSynchronizer
    wizard: MigrationWizard
    navigator: Navigator
    recovery: RecoveryController

    def monitor(self, task_id: str, detail: bool = False):
        """Context manager polling ``task_id`` at the wizard or detail-view cadence."""
        interval = self.config.detail_poll_interval if detail else self.config.wizard_poll_interval
        return self.synchronizer.monitoring(task_id, interval)

    async def aclose(self) -> None:
        await self.synchronizer.close()
        await self.gateway.aclose()


def create_client(
    config: Optional[ClientConfig] = None,
    *,
    storage: Optional[SessionStorage] = None,
    location: str = "/",
    http_client: Optional[httpx.AsyncClient] = None,
    configure_logging: bool = False,
) -> MigrationClient:
    """
    Build the client, restore persisted wizard state and run start-up recovery.

    Args:
        config: Client configuration; loaded from file/environment if omitted
        storage: Session storage; derived from ``config.session_file`` if omitted
        location: Location displayed when the client starts
        http_client: Optional preconfigured httpx client (tests use a mock transport)
        configure_logging: Install the JSON log handler

    Returns:
        MigrationClient with recovery already evaluated
    """
    config = config or load_config()
    if configure_logging:
        init_logging(config.log_level, json_logs=config.json_logs)

    storage = storage if storage is not None else storage_for(config.session_file)
    gateway = ServiceGateway(config, client=http_client)
    workflow = WorkflowStore.load(storage, scan_cache_ttl=config.scan_cache_ttl)
    tasks = TaskStore()
    navigator = Navigator(location)
    client = MigrationClient(
        config=config,
        gateway=gateway,
        workflow=workflow,
        tasks=tasks,
        synchronizer=TaskSynchronizer(gateway, tasks),
        wizard=MigrationWizard(gateway, workflow, tasks, navigator),
        navigator=navigator,
        recovery=RecoveryController(workflow, navigator),
    )
    client.recovery.run()
    return client


__all__ = [
    "ClientConfig",
    "MigrationClient",
    "create_client",
    "load_config",
]
