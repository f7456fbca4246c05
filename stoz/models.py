"""Data models for the migration client."""

import json
import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class WorkflowStep(Enum):
    """Wizard step."""
    SELECT = "select"
    CONFIGURE = "configure"
    MONITOR = "monitor"

    @property
    def order(self) -> int:
        return _STEP_ORDER.index(self)


_STEP_ORDER = [WorkflowStep.SELECT, WorkflowStep.CONFIGURE, WorkflowStep.MONITOR]


class TaskState(Enum):
    """Server-reported migration task status."""
    PENDING = "pending"
    RUNNING = "running"
    VERIFYING = "verifying"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_active(self) -> bool:
        """Counters must not decrease while the task is in one of these states."""
        return self in ACTIVE_STATES

    @classmethod
    def parse(cls, value: Any) -> "TaskState":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            logger.warning(f"Unknown task status '{value}', treating as pending")
            return cls.PENDING


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELLED})
ACTIVE_STATES = frozenset({TaskState.RUNNING, TaskState.VERIFYING})


class StorageMedium(Enum):
    """Storage target medium class."""
    SYSTEM = "system"
    HDD = "hdd"
    SSD = "ssd"
    USB = "usb"
    NETWORK = "network"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "StorageMedium":
        try:
            return cls(str(value or "").lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass
class FolderInfo:
    """A folder found on a scanned source volume."""
    path: str
    name: str
    size: int = 0
    file_count: int = 0
    modified_time: str = ""
    children: List["FolderInfo"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FolderInfo":
        return cls(
            path=data.get("path", ""),
            name=data.get("name", ""),
            size=int(data.get("size") or 0),
            file_count=int(data.get("file_count") or 0),
            modified_time=data.get("modified_time") or "",
            children=[cls.from_dict(c) for c in data.get("children") or []],
        )


@dataclass
class VolumeInfo:
    """A source volume (SMB share) and its top-level folders."""
    name: str
    path: str
    folders: List[FolderInfo] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VolumeInfo":
        return cls(
            name=data.get("name", ""),
            path=data.get("path", ""),
            folders=[FolderInfo.from_dict(f) for f in data.get("folders") or []],
        )


@dataclass
class ScanResult:
    """Result of scanning the migration source."""
    volumes: List[VolumeInfo] = field(default_factory=list)
    scanned_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScanResult":
        return cls(
            volumes=[VolumeInfo.from_dict(v) for v in data.get("volumes") or []],
            scanned_at=data.get("scanned_at") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def folder_paths(self) -> List[str]:
        """All folder paths in the scan, depth first."""
        paths: List[str] = []

        def walk(folders: List[FolderInfo]) -> None:
            for folder in folders:
                paths.append(folder.path)
                walk(folder.children)

        for volume in self.volumes:
            walk(volume.folders)
        return paths


@dataclass
class DestinationConfig:
    """Connection and target path for the destination host."""
    host: str = ""
    username: str = ""
    password: str = ""
    base_path: str = "/DATA"

    def to_persisted(self) -> Dict[str, Any]:
        """Serializable form with the password blanked."""
        data = asdict(self)
        data["password"] = ""
        return data

    @property
    def has_credentials(self) -> bool:
        return bool(self.host and self.username and self.password)


@dataclass
class MigrationOptions:
    """Independent migration toggles."""
    overwrite_existing: bool = False
    skip_errors: bool = True
    preserve_times: bool = True
    include_recycle: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MigrationOptions":
        defaults = asdict(cls())
        data = data or {}
        return cls(**{key: bool(data.get(key, value)) for key, value in defaults.items()})

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


@dataclass
class StorageTarget:
    """A mount point on the destination host."""
    name: str
    path: str
    medium: StorageMedium = StorageMedium.UNKNOWN
    health: bool = False
    size: int = 0
    used: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageTarget":
        extensions = data.get("extensions") or {}
        return cls(
            name=data.get("name", ""),
            path=data.get("path", ""),
            medium=StorageMedium.parse(data.get("type") or data.get("medium")),
            health=extensions.get("health", data.get("health")) is True,
            size=int(extensions.get("size", data.get("size")) or 0),
            used=int(extensions.get("used", data.get("used")) or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "type": self.medium.value.upper(),
            "extensions": {"health": self.health, "size": self.size, "used": self.used},
        }

    @property
    def available(self) -> int:
        return max(0, self.size - self.used)

    @property
    def selectable(self) -> bool:
        return self.health


@dataclass
class DiscoveredDevice:
    """A destination device found by network discovery."""
    device_name: str = ""
    device_model: str = ""
    hash: str = ""
    initialized: bool = False
    lan_ipv4: List[str] = field(default_factory=list)
    os_version: str = ""
    port: int = 0
    request_ip: str = ""
    ip: str = ""
    image_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiscoveredDevice":
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def address(self) -> str:
        """Best address to reach the device at."""
        if self.ip:
            return self.ip
        if self.lan_ipv4:
            return self.lan_ipv4[0]
        return self.request_ip


@dataclass
class MigrationTask:
    """Historical record of a migration task, as stored by the server."""
    task_id: str
    created_at: str = ""
    id: int = 0
    status: TaskState = TaskState.PENDING
    error: str = ""
    source_folders: List[str] = field(default_factory=list)
    zimaos_host: str = ""
    zimaos_username: str = ""
    base_path: str = ""
    total_files: int = 0
    processed_files: int = 0
    failed_files: int = 0
    total_size: int = 0
    transferred_size: int = 0
    progress: float = 0.0
    options: MigrationOptions = field(default_factory=MigrationOptions)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationTask":
        return cls(
            task_id=data.get("task_id", ""),
            created_at=data.get("created_at") or "",
            id=int(data.get("id") or 0),
            status=TaskState.parse(data.get("status")),
            error=data.get("error") or "",
            source_folders=_decode_json_field(data.get("source_folders"), []),
            zimaos_host=data.get("zimaos_host") or "",
            zimaos_username=data.get("zimaos_username") or "",
            base_path=data.get("base_path") or "",
            total_files=int(data.get("total_files") or 0),
            processed_files=int(data.get("processed_files") or 0),
            failed_files=int(data.get("failed_files") or 0),
            total_size=int(data.get("total_size") or 0),
            transferred_size=int(data.get("transferred_size") or 0),
            progress=float(data.get("progress") or 0.0),
            options=MigrationOptions.from_dict(_decode_json_field(data.get("options"), {})),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            updated_at=data.get("updated_at") or "",
        )


@dataclass
class TaskStatus:
    """Live status snapshot of a running migration task."""
    task_id: str
    status: TaskState = TaskState.PENDING
    error: str = ""
    processed_files: int = 0
    total_files: int = 0
    transferred_size: int = 0
    total_size: int = 0
    progress: float = 0.0
    speed: float = 0.0
    current_file: str = ""
    current_file_size: int = 0
    current_file_transferred: int = 0
    current_file_progress: float = 0.0
    failed_files: int = 0
    verifying_files: int = 0
    verify_failed_files: int = 0
    started_at: str = ""
    updated_at: str = ""
    source_folders: List[str] = field(default_factory=list)
    zimaos_host: str = ""
    base_path: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskStatus":
        return cls(
            task_id=data.get("task_id", ""),
            status=TaskState.parse(data.get("status")),
            error=data.get("error") or "",
            processed_files=int(data.get("processed_files") or 0),
            total_files=int(data.get("total_files") or 0),
            transferred_size=int(data.get("transferred_size") or 0),
            total_size=int(data.get("total_size") or 0),
            progress=float(data.get("progress") or 0.0),
            speed=float(data.get("speed") or 0.0),
            current_file=data.get("current_file") or "",
            current_file_size=int(data.get("current_file_size") or 0),
            current_file_transferred=int(data.get("current_file_transferred") or 0),
            current_file_progress=float(data.get("current_file_progress") or 0.0),
            failed_files=int(data.get("failed_files") or 0),
            verifying_files=int(data.get("verifying_files") or 0),
            verify_failed_files=int(data.get("verify_failed_files") or 0),
            started_at=data.get("started_at") or "",
            updated_at=data.get("updated_at") or "",
            source_folders=_decode_json_field(data.get("source_folders"), []),
            zimaos_host=data.get("zimaos_host") or "",
            base_path=data.get("base_path") or "",
        )

    @property
    def estimated_remaining_seconds(self) -> Optional[float]:
        """Remaining transfer time at the current speed, if it can be estimated."""
        if self.speed <= 0:
            return None
        return max(0, self.total_size - self.transferred_size) / self.speed

    @property
    def progress_axes(self) -> "TransferProgress":
        return TransferProgress.from_status(self)


@dataclass(frozen=True)
class TransferProgress:
    """Transfer and verification progress kept as two separate axes.

    ``overall_percent`` is the server-reported value and is never derived
    from the two axes.
    """
    files_transferred: int
    files_verified: int
    total_files: int
    overall_percent: float
    verifying: bool

    @classmethod
    def from_status(cls, status: TaskStatus) -> "TransferProgress":
        return cls(
            files_transferred=status.processed_files,
            files_verified=status.verifying_files,
            total_files=status.total_files,
            overall_percent=status.progress,
            verifying=status.status is TaskState.VERIFYING,
        )

    @property
    def transfer_percent(self) -> float:
        if self.total_files == 0:
            return 0.0
        return (self.files_transferred / self.total_files) * 100

    @property
    def verify_percent(self) -> float:
        if self.total_files == 0:
            return 0.0
        return (self.files_verified / self.total_files) * 100


def _decode_json_field(value: Any, default: Any) -> Any:
    """Decode fields the server stores as JSON-encoded text."""
    if value is None or value == "":
        return default
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            logger.warning(f"Could not decode JSON field: {value[:80]!r}")
            return default
    return value
