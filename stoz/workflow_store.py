"""Persisted wizard state: current step, selection, destination and caches."""

import json
import logging
import time
from dataclasses import asdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from . import paths
from .errors import ValidationError
from .models import (
    DestinationConfig,
    DiscoveredDevice,
    MigrationOptions,
    ScanResult,
    StorageTarget,
    WorkflowStep,
)
from .session_storage import MemorySessionStorage, SessionStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "stoz-app-storage"
STORAGE_VERSION = 0
SCAN_CACHE_TTL = 5 * 60  # seconds

_UNSET = object()


class WorkflowStore:
    """
    Single source of truth for where the user is in the wizard and what they chose.

    Every mutation writes the persisted subset to session storage. The
    destination password is kept in memory only.
    """

    def __init__(
        self,
        storage: Optional[SessionStorage] = None,
        clock: Callable[[], float] = time.time,
        scan_cache_ttl: float = SCAN_CACHE_TTL,
    ):
        self._storage = storage if storage is not None else MemorySessionStorage()
        self._clock = clock
        self.scan_cache_ttl = scan_cache_ttl
        self._listeners: List[Callable[["WorkflowStore"], None]] = []
        self._set_defaults()

    def _set_defaults(self) -> None:
        self.step = WorkflowStep.SELECT
        self._selection: Set[str] = set()
        self.task_id = ""
        self.scan_result: Optional[ScanResult] = None
        self.scan_timestamp: Optional[float] = None
        self.destination = DestinationConfig()
        self.discovered_devices: List[DiscoveredDevice] = []
        self.selected_device: Optional[DiscoveredDevice] = None
        self.storage_targets: List[StorageTarget] = []
        self.selected_storage: Optional[StorageTarget] = None
        self.sub_path = ""
        self.path_error: Optional[str] = None
        self.options = MigrationOptions()

    @classmethod
    def load(
        cls,
        storage: SessionStorage,
        clock: Callable[[], float] = time.time,
        scan_cache_ttl: float = SCAN_CACHE_TTL,
    ) -> "WorkflowStore":
        """
        Create a store and restore whatever the session storage holds.

        Args:
            storage: Session storage to restore from and persist to
            clock: Wall clock in seconds, used for the scan cache
            scan_cache_ttl: Seconds a cached scan stays valid

        Returns:
            WorkflowStore with the persisted subset restored
        """
        store = cls(storage=storage, clock=clock, scan_cache_ttl=scan_cache_ttl)
        raw = storage.get_item(STORAGE_KEY)
        if raw:
            try:
                store._restore(json.loads(raw).get("state") or {})
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning(f"Ignoring unreadable persisted workflow state: {e}")
                store._set_defaults()
        return store

    def _restore(self, state: Dict[str, Any]) -> None:
        self.step = WorkflowStep(state.get("step", WorkflowStep.SELECT.value))
        self._selection = set(state.get("selection") or [])
        self.task_id = state.get("task_id") or ""
        scan = state.get("scan_result")
        self.scan_result = ScanResult.from_dict(scan) if scan else None
        self.scan_timestamp = state.get("scan_timestamp")
        destination = state.get("destination") or {}
        self.destination = DestinationConfig(
            host=destination.get("host", ""),
            username=destination.get("username", ""),
            password="",
            base_path=destination.get("base_path", DestinationConfig().base_path),
        )
        self.discovered_devices = [DiscoveredDevice.from_dict(d) for d in state.get("discovered_devices") or []]
        device = state.get("selected_device")
        self.selected_device = DiscoveredDevice.from_dict(device) if device else None
        storage = state.get("selected_storage")
        self.selected_storage = StorageTarget.from_dict(storage) if storage else None
        self.sub_path = state.get("sub_path") or ""
        self.path_error = paths.validate_sub_path(self.sub_path)
        self.options = MigrationOptions.from_dict(state.get("options"))

    def to_persisted(self) -> Dict[str, Any]:
        """The subset of state that survives a reload."""
        return {
            "step": self.step.value,
            "selection": sorted(self._selection),
            "task_id": self.task_id,
            "scan_result": self.scan_result.to_dict() if self.scan_result else None,
            "scan_timestamp": self.scan_timestamp,
            "destination": self.destination.to_persisted(),
            "discovered_devices": [d.to_dict() for d in self.discovered_devices],
            "selected_device": self.selected_device.to_dict() if self.selected_device else None,
            "selected_storage": self.selected_storage.to_dict() if self.selected_storage else None,
            "sub_path": self.sub_path,
            "options": self.options.to_dict(),
        }

    def _commit(self) -> None:
        document = {"state": self.to_persisted(), "version": STORAGE_VERSION}
        self._storage.set_item(STORAGE_KEY, json.dumps(document))
        for listener in list(self._listeners):
            listener(self)

    def subscribe(self, listener: Callable[["WorkflowStore"], None]) -> Callable[[], None]:
        """Register a mutation listener; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Steps

    def can_advance(self, step: WorkflowStep) -> bool:
        if step.order <= self.step.order:
            return True
        if step is WorkflowStep.CONFIGURE:
            return bool(self._selection)
        if step is WorkflowStep.MONITOR:
            return bool(self._selection) and self.destination_valid
        return False

    def advance(self, step: WorkflowStep) -> bool:
        """Move to ``step`` if its precondition holds; otherwise do nothing."""
        if not self.can_advance(step):
            logger.debug(f"Cannot advance from {self.step.value} to {step.value}: precondition unmet")
            return False
        if step is not self.step:
            self.step = step
            self._commit()
        return True

    @property
    def destination_valid(self) -> bool:
        return (
            bool(self.destination.host)
            and bool(self.destination.username)
            and bool(self.destination.base_path)
            and self.path_error is None
        )

    # Selection

    @property
    def selection(self) -> Set[str]:
        return set(self._selection)

    def set_selection(self, items: Iterable[str]) -> None:
        self._selection = set(items)
        self._commit()

    def toggle_selection(self, item: str) -> bool:
        """Flip membership of ``item``; returns True when it is now selected."""
        if item in self._selection:
            self._selection.discard(item)
            selected = False
        else:
            self._selection.add(item)
            selected = True
        self._commit()
        return selected

    def clear_selection(self) -> None:
        self._selection = set()
        self._commit()

    # Destination

    def set_destination(self, storage: Any = _UNSET, sub_path: Optional[str] = None, **partial: Any) -> None:
        """
        Shallow-merge destination fields and keep the base path derived.

        Args:
            storage: New selected StorageTarget, or None for manual entry
            sub_path: New user-entered sub-path
            **partial: Any of host, username, password, base_path. base_path is
                only accepted for manual entry, with no storage selected

        Raises:
            ValidationError: For unknown fields, an unhealthy storage target or
                an explicit base_path while a storage target is selected
        """
        unknown = set(partial) - set(asdict(self.destination))
        if unknown:
            raise ValidationError(f"Unknown destination fields: {sorted(unknown)}")
        if storage is not _UNSET and storage is not None and not storage.selectable:
            raise ValidationError(f"Storage '{storage.name}' is not healthy and cannot be selected")
        effective_storage = self.selected_storage if storage is _UNSET else storage
        if "base_path" in partial and effective_storage is not None:
            raise ValidationError("Base path is derived from the selected storage; set the sub-path instead")

        for key, value in partial.items():
            setattr(self.destination, key, value)

        recompute = False
        if storage is not _UNSET and storage != self.selected_storage:
            self.selected_storage = storage
            recompute = True
        if sub_path is not None and sub_path != self.sub_path:
            self.sub_path = sub_path
            recompute = True

        if recompute:
            resolution = paths.resolve(self.selected_storage, self.sub_path, self.destination.base_path)
            self.path_error = resolution.error
            if "base_path" not in partial:
                # an explicit manual base path wins over the derived one
                self.destination.base_path = resolution.base_path
        self._commit()

    def select_storage(self, storage: Optional[StorageTarget]) -> None:
        self.set_destination(storage=storage)

    def set_sub_path(self, sub_path: str) -> None:
        self.set_destination(sub_path=sub_path)

    def clear_password(self) -> None:
        self.destination.password = ""
        self._commit()

    def set_storage_targets(self, targets: List[StorageTarget]) -> None:
        self.storage_targets = list(targets)
        self._commit()

    @property
    def selectable_storage_targets(self) -> List[StorageTarget]:
        return [t for t in self.storage_targets if t.selectable]

    # Scan cache

    def cache_scan(self, result: ScanResult) -> None:
        self.scan_result = result
        self.scan_timestamp = self._clock()
        self._commit()

    def clear_scan(self) -> None:
        self.scan_result = None
        self.scan_timestamp = None
        self._commit()

    def is_scan_cache_valid(self) -> bool:
        if self.scan_result is None or self.scan_timestamp is None:
            return False
        return self._clock() - self.scan_timestamp < self.scan_cache_ttl

    # Misc

    def set_task_id(self, task_id: str) -> None:
        self.task_id = task_id
        self._commit()

    def set_discovered_devices(self, devices: List[DiscoveredDevice]) -> None:
        self.discovered_devices = list(devices)
        self._commit()

    def select_device(self, device: Optional[DiscoveredDevice]) -> None:
        """Choose a discovered device and use its address as the destination host."""
        self.selected_device = device
        if device is not None and device.address:
            self.destination.host = device.address
        self._commit()

    def set_options(self, **options: bool) -> None:
        merged = self.options.to_dict()
        unknown = set(options) - set(merged)
        if unknown:
            raise ValidationError(f"Unknown migration options: {sorted(unknown)}")
        merged.update({key: bool(value) for key, value in options.items()})
        self.options = MigrationOptions(**merged)
        self._commit()

    def reset(self) -> None:
        """Restore every field to its default, including password and task id."""
        self._set_defaults()
        self._commit()
        logger.info("Workflow state reset")
