"""Client configuration loaded from defaults, an optional file and the environment."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class ClientConfig:
    base_url: str = "http://localhost:8080"
    api_prefix: str = "/api/v1"
    request_timeout: float = 30.0
    wizard_poll_interval: float = 1.0
    detail_poll_interval: float = 2.0
    scan_cache_ttl: float = 300.0
    session_file: Optional[str] = None
    log_level: str = "INFO"
    json_logs: bool = True

    @property
    def api_base(self) -> str:
        prefix = "/" + self.api_prefix.strip("/") if self.api_prefix.strip("/") else ""
        return self.base_url.rstrip("/") + prefix


# Environment variable -> field mapping
ENV_MAPPINGS = {
    "STOZ_BASE_URL": "base_url",
    "STOZ_API_PREFIX": "api_prefix",
    "STOZ_REQUEST_TIMEOUT": "request_timeout",
    "STOZ_WIZARD_POLL_INTERVAL": "wizard_poll_interval",
    "STOZ_DETAIL_POLL_INTERVAL": "detail_poll_interval",
    "STOZ_SCAN_CACHE_TTL": "scan_cache_ttl",
    "STOZ_SESSION_FILE": "session_file",
    "STOZ_LOG_LEVEL": "log_level",
    "STOZ_JSON_LOGS": "json_logs",
}


def _load_config_file(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    known = {f.name for f in fields(ClientConfig)}
    unknown = set(data) - known
    if unknown:
        logger.warning(f"Ignoring unknown config keys in {path}: {sorted(unknown)}")
    return {key: value for key, value in data.items() if key in known}


def _load_from_environment(current: Dict[str, Any]) -> Dict[str, Any]:
    defaults = ClientConfig()
    values: Dict[str, Any] = {}
    for env_name, field_name in ENV_MAPPINGS.items():
        if os.getenv(env_name) is None:
            continue
        kind = getattr(defaults, field_name)
        if isinstance(kind, bool):
            values[field_name] = _env_bool(env_name, bool(current[field_name]))
        elif isinstance(kind, float):
            values[field_name] = _env_float(env_name, float(current[field_name]))
        else:
            values[field_name] = os.getenv(env_name)
    return values


def load_config(config_file: Optional[str] = None) -> ClientConfig:
    """
    Build the client configuration.

    Defaults are overridden by the config file (JSON or YAML) and then by
    ``STOZ_*`` environment variables.

    Args:
        config_file: Optional path to a configuration file. Falls back to
            ``STOZ_CONFIG_FILE``.

    Returns:
        ClientConfig instance
    """
    config_dict = asdict(ClientConfig())

    path_value = config_file or os.getenv("STOZ_CONFIG_FILE")
    if path_value:
        path = Path(path_value)
        if path.exists():
            config_dict.update(_load_config_file(path))
        else:
            logger.warning(f"Config file {path} not found, using defaults")

    config_dict.update(_load_from_environment(config_dict))
    config = ClientConfig(**config_dict)
    _validate_config(config)
    return config


def _validate_config(config: ClientConfig) -> None:
    for name in ("request_timeout", "wizard_poll_interval", "detail_poll_interval", "scan_cache_ttl"):
        value = getattr(config, name)
        if not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"{name} must be a positive number, got {value!r}")
    if not config.base_url.startswith(("http://", "https://")):
        raise ConfigError(f"base_url must be an http(s) URL, got {config.base_url!r}")
