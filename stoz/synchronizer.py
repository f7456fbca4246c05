"""
Polling synchronizer that keeps one live TaskStatus per task current.

A task id is *attached* while some view is monitoring it: the synchronizer
then runs a polling loop for it on the event loop. Detaching cancels the
loop; fetches already in flight may finish but their results are dropped.

User commands race against polling. Cancel is applied optimistically: the
local snapshot switches to ``cancelled`` at once and the task enters
``SyncState.PENDING_CANCEL``, during which non-terminal poll results are
discarded. Pause and resume are plain requests whose effect shows up on
the next poll.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Set

from .errors import RequestFailed
from .gateway import ServiceGateway
from .models import TaskState, TaskStatus
from .task_store import TaskStore

logger = logging.getLogger(__name__)

WIZARD_POLL_INTERVAL = 1.0
DETAIL_POLL_INTERVAL = 2.0

SnapshotListener = Callable[[str, TaskStatus], None]


class SyncState(Enum):
    """Reconciliation state of a task."""
    SYNCING = "syncing"
    PENDING_CANCEL = "pending_cancel"
    SETTLED = "settled"


@dataclass(eq=False)
class _Attachment:
    task_id: str
    interval: float
    loop_task: Optional[asyncio.Task] = None
    fetch_in_flight: bool = False
    fetches: Set[asyncio.Task] = field(default_factory=set)


class TaskSynchronizer:
    """Polls task status and reconciles it with locally issued commands."""

    def __init__(
        self,
        gateway: ServiceGateway,
        task_store: TaskStore,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._gateway = gateway
        self._store = task_store
        self._sleep = sleep
        self._attachments: Dict[str, _Attachment] = {}
        self._states: Dict[str, SyncState] = {}
        self._listeners: List[SnapshotListener] = []

    # Introspection

    def is_attached(self, task_id: str) -> bool:
        return task_id in self._attachments

    def sync_state(self, task_id: str) -> Optional[SyncState]:
        return self._states.get(task_id)

    def snapshot(self, task_id: str) -> Optional[TaskStatus]:
        return self._store.get_snapshot(task_id)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener(task_id, status)`` for every snapshot applied."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Attachment lifecycle

    async def attach(self, task_id: str, interval: float = WIZARD_POLL_INTERVAL) -> Optional[TaskStatus]:
        """
        Start monitoring ``task_id``.

        Schedules polling at ``interval`` seconds and performs an immediate
        fetch. Unlike polling errors, a failure of this first fetch is raised
        since there is no earlier snapshot to fall back on; polling keeps
        running so the view can recover. Only one task is monitored at a
        time: any task already attached is detached first.

        Args:
            task_id: Task to monitor
            interval: Seconds between polls

        Returns:
            The snapshot after the first fetch, or None if it was discarded

        Raises:
            RequestFailed: If the initial fetch fails
        """
        for attached_id in list(self._attachments):
            self.detach(attached_id)

        attachment = _Attachment(task_id=task_id, interval=interval)
        self._attachments[task_id] = attachment
        self._states.setdefault(task_id, SyncState.SYNCING)
        attachment.loop_task = asyncio.get_running_loop().create_task(self._poll_loop(attachment))
        logger.info(f"Attached to task {task_id} (interval {interval}s)", extra={"task_id": task_id})

        attachment.fetch_in_flight = True
        try:
            status = await self._gateway.get_status(task_id)
        finally:
            attachment.fetch_in_flight = False
        self._apply(attachment, status)
        return self._store.get_snapshot(task_id)

    def detach(self, task_id: str) -> None:
        """Stop monitoring ``task_id``. Results still in flight are discarded."""
        attachment = self._attachments.pop(task_id, None)
        if attachment is None:
            return
        if attachment.loop_task is not None:
            attachment.loop_task.cancel()
        if self._states.get(task_id) is not SyncState.PENDING_CANCEL:
            self._states.pop(task_id, None)
        logger.info(f"Detached from task {task_id}", extra={"task_id": task_id})

    async def close(self) -> None:
        """Detach every task and cancel fetches that are still outstanding."""
        attachments = list(self._attachments.values())
        for attachment in attachments:
            self.detach(attachment.task_id)
        pending = []
        for attachment in attachments:
            for fetch in attachment.fetches:
                fetch.cancel()
                pending.append(fetch)
            if attachment.loop_task is not None:
                pending.append(attachment.loop_task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    @asynccontextmanager
    async def monitoring(self, task_id: str, interval: float = WIZARD_POLL_INTERVAL):
        """Attach for the duration of a ``async with`` block, detaching on exit."""
        try:
            await self.attach(task_id, interval)
            yield self
        finally:
            self.detach(task_id)

    # Polling

    async def _poll_loop(self, attachment: _Attachment) -> None:
        while True:
            await self._sleep(attachment.interval)
            if self._attachments.get(attachment.task_id) is not attachment:
                return
            if attachment.fetch_in_flight:
                logger.debug(
                    f"Skipping poll tick for {attachment.task_id}: previous request outstanding",
                    extra={"task_id": attachment.task_id},
                )
                continue
            attachment.fetch_in_flight = True
            fetch = asyncio.get_running_loop().create_task(self._tick(attachment))
            attachment.fetches.add(fetch)
            fetch.add_done_callback(attachment.fetches.discard)

    async def _tick(self, attachment: _Attachment) -> None:
        try:
            status = await self._gateway.get_status(attachment.task_id)
        except RequestFailed as e:
            logger.warning(
                f"Polling task {attachment.task_id} failed: {e}",
                extra={"task_id": attachment.task_id},
            )
            return
        finally:
            attachment.fetch_in_flight = False
        self._apply(attachment, status)

    async def refresh(self, task_id: str) -> Optional[TaskStatus]:
        """Fetch once for an attached task outside the timer. Errors are raised."""
        attachment = self._attachments.get(task_id)
        if attachment is None:
            raise ValueError(f"Task {task_id} is not attached")
        status = await self._gateway.get_status(task_id)
        self._apply(attachment, status)
        return self._store.get_snapshot(task_id)

    def _apply(self, attachment: _Attachment, status: TaskStatus) -> bool:
        """Reconcile a fetched snapshot with local state; returns True if applied."""
        task_id = attachment.task_id
        extra = {"task_id": task_id, "sync_state": None}

        if self._attachments.get(task_id) is not attachment:
            logger.debug(f"Discarding result for detached task {task_id}", extra=extra)
            return False

        state = self._states.get(task_id, SyncState.SYNCING)
        extra["sync_state"] = state.value
        if state is SyncState.PENDING_CANCEL:
            if status.status is TaskState.CANCELLED:
                logger.info(f"Cancellation of task {task_id} confirmed by server", extra=extra)
            elif status.status.is_terminal:
                # finished before the cancel took effect; cancelled can never arrive
                logger.info(
                    f"Task {task_id} ended as '{status.status.value}' while cancel was pending",
                    extra=extra,
                )
            else:
                logger.debug(
                    f"Discarding '{status.status.value}' for {task_id} while cancel is pending",
                    extra=extra,
                )
                return False

        previous = self._store.get_snapshot(task_id)
        if previous is not None and _counters_regressed(previous, status):
            logger.debug(f"Discarding out-of-order snapshot for {task_id}", extra=extra)
            return False

        self._store.set_snapshot(status)
        self._states[task_id] = SyncState.SETTLED if status.status.is_terminal else SyncState.SYNCING
        for listener in list(self._listeners):
            listener(task_id, status)
        return True

    # Commands

    async def cancel(self, task_id: str) -> None:
        """
        Cancel a task with an optimistic local override.

        Raises:
            RequestFailed: If the cancel request fails. The previous snapshot
                is restored and the pending state cleared first.
        """
        previous = self._store.get_snapshot(task_id)
        previous_state = self._states.get(task_id)
        if previous is not None:
            self._store.set_snapshot(replace(previous, status=TaskState.CANCELLED))
        self._states[task_id] = SyncState.PENDING_CANCEL
        logger.info(f"Cancelling task {task_id}", extra={"task_id": task_id})

        try:
            await self._gateway.cancel(task_id)
        except RequestFailed as e:
            if self._states.get(task_id) is not SyncState.PENDING_CANCEL:
                # a poll already confirmed the cancellation
                logger.warning(f"Cancel request for {task_id} failed after confirmation: {e}")
                raise
            logger.warning(f"Cancel of task {task_id} failed, rolling back: {e}", extra={"task_id": task_id})
            if previous is not None:
                self._store.set_snapshot(previous)
            else:
                self._store.remove_snapshot(task_id)
            if task_id in self._attachments:
                if previous is not None and previous.status.is_terminal:
                    self._states[task_id] = SyncState.SETTLED
                else:
                    self._states[task_id] = SyncState.SYNCING
            elif previous_state is None:
                self._states.pop(task_id, None)
            else:
                self._states[task_id] = previous_state
            raise

    async def pause(self, task_id: str) -> None:
        logger.info(f"Pausing task {task_id}", extra={"task_id": task_id})
        await self._gateway.pause(task_id)

    async def resume(self, task_id: str) -> None:
        logger.info(f"Resuming task {task_id}", extra={"task_id": task_id})
        await self._gateway.resume(task_id)


def _counters_regressed(previous: TaskStatus, current: TaskStatus) -> bool:
    """True if an active-to-active update moves file or byte counters backwards."""
    if not (previous.status.is_active and current.status.is_active):
        return False
    return (
        current.processed_files < previous.processed_files
        or current.transferred_size < previous.transferred_size
    )
