"""Destination path normalization and validation."""

import re
from dataclasses import dataclass
from typing import Optional

from .models import StorageTarget

MAX_SUB_PATH_LENGTH = 255

_REPEATED_SEPARATORS = re.compile(r"/{2,}")


@dataclass(frozen=True)
class PathResolution:
    """Outcome of resolving a destination base path."""
    base_path: str
    error: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.error is None


def normalize_sub_path(sub_path: str) -> str:
    """
    Give a sub-path exactly one leading separator and no trailing separator.

    An empty (or separator-only) sub-path normalizes to "".
    """
    stripped = (sub_path or "").strip()
    collapsed = _REPEATED_SEPARATORS.sub("/", stripped).strip("/")
    if not collapsed:
        return ""
    return "/" + collapsed


def validate_sub_path(sub_path: str) -> Optional[str]:
    """Return an error message for an unacceptable sub-path, else None."""
    if not sub_path:
        return None
    if ".." in sub_path:
        return "Path cannot contain .."
    if len(sub_path) > MAX_SUB_PATH_LENGTH:
        return f"Path must be less than {MAX_SUB_PATH_LENGTH} characters"
    return None


def resolve_base_path(storage: Optional[StorageTarget], sub_path: str) -> str:
    """Join the storage mount path and the normalized sub-path."""
    normalized = normalize_sub_path(sub_path)
    if storage is None:
        return normalized
    root = storage.path.rstrip("/")
    joined = root + normalized
    if not joined:
        # storage mounted at "/" with no sub-path
        return "/"
    return _REPEATED_SEPARATORS.sub("/", joined)


def resolve(storage: Optional[StorageTarget], sub_path: str, current_base_path: str) -> PathResolution:
    """
    Validate then resolve; an invalid sub-path keeps the current base path.

    Args:
        storage: Selected storage target, or None for manual entry
        sub_path: Sub-path as typed by the user
        current_base_path: Base path to keep when validation fails

    Returns:
        PathResolution with the new base path and any validation error
    """
    error = validate_sub_path(sub_path)
    if error:
        return PathResolution(base_path=current_base_path, error=error)
    return PathResolution(base_path=resolve_base_path(storage, sub_path))
