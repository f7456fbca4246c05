"""Typed wrapper around the migration service REST API."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

import httpx

from .config import ClientConfig
from .errors import RequestFailed
from .models import (
    DestinationConfig,
    DiscoveredDevice,
    FolderInfo,
    MigrationOptions,
    MigrationTask,
    ScanResult,
    StorageTarget,
    TaskStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskPage:
    """One page of the task history."""

    def __init__(self, tasks: List[MigrationTask], total: int, limit: int, offset: int) -> None:
        self.tasks = tasks
        self.total = total
        self.limit = limit
        self.offset = offset

    def __repr__(self) -> str:
        return f"TaskPage(tasks={len(self.tasks)}, total={self.total}, limit={self.limit}, offset={self.offset})"


class ServiceGateway:
    """
    Async client for the migration service.

    Every operation returns a typed payload or raises RequestFailed. The
    gateway never retries; callers that want retries wrap calls with
    ``stoz.retry.retry_with_backoff``.
    """

    def __init__(self, config: ClientConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.request_timeout)

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ServiceGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        url = f"{self._config.api_base}{path}"
        started = time.monotonic()
        logger.debug(f"{method} {path}", extra={"method": method, "path": path})

        try:
            response = await self._client.request(method, url, json=json_body, params=params)
        except httpx.HTTPError as exc:
            logger.warning(f"{method} {path} failed: {exc}", extra={"method": method, "path": path})
            raise RequestFailed(f"Network error: {exc}") from exc

        try:
            envelope = response.json()
        except ValueError as exc:
            message = f"Invalid response from server (HTTP {response.status_code})"
            logger.warning(f"{method} {path}: {message}", extra={"method": method, "path": path})
            raise RequestFailed(message, status_code=response.status_code) from exc

        duration_ms = round((time.monotonic() - started) * 1000, 2)
        if not isinstance(envelope, dict) or "code" not in envelope:
            message = f"Malformed response envelope (HTTP {response.status_code})"
            raise RequestFailed(message, status_code=response.status_code)

        code = envelope.get("code")
        if code != 0:
            message = envelope.get("message") or "Request failed"
            logger.warning(
                f"{method} {path} returned code {code}: {message}",
                extra={"method": method, "path": path, "status_code": response.status_code, "duration_ms": duration_ms},
            )
            raise RequestFailed(message, code=code, status_code=response.status_code)

        logger.debug(
            f"{method} {path} ok",
            extra={"method": method, "path": path, "status_code": response.status_code, "duration_ms": duration_ms},
        )
        return envelope.get("data")

    async def _call(
        self,
        method: str,
        path: str,
        decode: Callable[[Any], T],
        *,
        json_body: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> T:
        """Issue a request and decode its ``data`` payload into a typed result."""
        data = await self._request(method, path, json_body=json_body, params=params)
        try:
            return decode(data if data is not None else {})
        except (AttributeError, TypeError, ValueError, KeyError) as exc:
            logger.warning(f"{method} {path}: malformed payload: {exc}", extra={"method": method, "path": path})
            raise RequestFailed("Malformed response payload") from exc

    async def health(self) -> Dict[str, Any]:
        return await self._call("GET", "/health", dict)

    async def scan(self) -> ScanResult:
        return await self._call("GET", "/scan", ScanResult.from_dict)

    async def discover_devices(self) -> List[DiscoveredDevice]:
        return await self._call(
            "GET", "/discover",
            lambda data: [DiscoveredDevice.from_dict(d) for d in data.get("devices") or []],
        )

    async def folder_details(self, path: str) -> FolderInfo:
        return await self._call("POST", "/folder/details", FolderInfo.from_dict, json_body={"path": path})

    async def test_connection(self, host: str, username: str, password: str) -> str:
        """Verify destination credentials, returning the issued token."""
        return await self._call(
            "POST", "/zimaos/test",
            lambda data: str(data.get("token") or ""),
            json_body={"host": host, "username": username, "password": password},
        )

    async def list_storages(self, host: str, username: str, password: str) -> List[StorageTarget]:
        return await self._call(
            "POST", "/zimaos/storages",
            lambda data: [StorageTarget.from_dict(s) for s in data.get("storages") or []],
            json_body={"host": host, "username": username, "password": password},
        )

    async def create_migration(
        self,
        source_folders: List[str],
        destination: DestinationConfig,
        options: MigrationOptions,
    ) -> str:
        """
        Create a migration task.

        Args:
            source_folders: Source folder paths to migrate
            destination: Destination host, credentials and base path
            options: Migration toggles

        Returns:
            The server-assigned task id
        """
        payload = {
            "source_folders": list(source_folders),
            "zimaos_host": destination.host,
            "zimaos_username": destination.username,
            "zimaos_password": destination.password,
            "base_path": destination.base_path,
            "options": options.to_dict(),
        }
        task_id = await self._call("POST", "/migration", lambda data: data.get("task_id"), json_body=payload)
        if not task_id:
            raise RequestFailed("Server did not return a task id")
        logger.info(f"Created migration task {task_id}", extra={"task_id": task_id})
        return task_id

    async def get_status(self, task_id: str) -> TaskStatus:
        status = await self._call("GET", f"/migration/{task_id}", TaskStatus.from_dict)
        if not status.task_id:
            status.task_id = task_id
        return status

    async def list_tasks(self, limit: int = 20, offset: int = 0) -> TaskPage:
        def decode(data: Dict[str, Any]) -> TaskPage:
            return TaskPage(
                tasks=[MigrationTask.from_dict(t) for t in data.get("tasks") or []],
                total=int(data.get("total") or 0),
                limit=int(data.get("limit") or limit),
                offset=int(data.get("offset") or offset),
            )

        return await self._call("GET", "/migrations", decode, params={"limit": limit, "offset": offset})

    async def pause(self, task_id: str) -> None:
        await self._request("POST", f"/migration/{task_id}/pause")

    async def resume(self, task_id: str) -> None:
        await self._request("POST", f"/migration/{task_id}/resume")

    async def cancel(self, task_id: str) -> None:
        await self._request("POST", f"/migration/{task_id}/cancel")


__all__ = [
    "ServiceGateway",
    "TaskPage",
]
