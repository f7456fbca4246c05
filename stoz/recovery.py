"""Navigation state and start-up recovery of an in-flight migration."""

import logging
from typing import List, Tuple

from .models import WorkflowStep
from .workflow_store import WorkflowStore

logger = logging.getLogger(__name__)

MONITOR_ROUTE_PREFIX = "/workflow/migration/"


def monitor_route(task_id: str) -> str:
    return f"{MONITOR_ROUTE_PREFIX}{task_id}"


def task_detail_route(task_id: str) -> str:
    return f"/task/{task_id}"


class Navigator:
    """Holds the current location and records navigation operations."""

    def __init__(self, location: str = "/"):
        self.location = location
        self.history: List[Tuple[str, str]] = []

    def push(self, location: str) -> None:
        self.history.append(("push", location))
        self.location = location

    def replace(self, location: str) -> None:
        self.history.append(("replace", location))
        self.location = location


class RecoveryController:
    """
    Re-attaches a reloaded client to its in-flight task.

    ``run`` is a one-shot reconciliation: it only ever acts on its first call,
    so navigating away from monitoring afterwards is never overridden.
    """

    def __init__(self, store: WorkflowStore, navigator: Navigator):
        self._store = store
        self._navigator = navigator
        self._has_run = False

    @property
    def has_run(self) -> bool:
        return self._has_run

    def run(self) -> bool:
        """Redirect to the monitoring view if needed; returns True when it redirected."""
        if self._has_run:
            return False
        self._has_run = True

        task_id = self._store.task_id
        if not task_id or self._store.step is not WorkflowStep.MONITOR:
            return False

        target = monitor_route(task_id)
        if self._navigator.location == target:
            return False

        logger.info(f"Recovering monitoring view for task {task_id}", extra={"task_id": task_id})
        self._navigator.replace(target)
        return True
