"""Configuration classes for loggergateway.

This module defines the server, device and gateway settings, the data
directory layout, and the JSON config file loader.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

MIN_CHECKSUM_RETRIES = 5
MAX_CHECKSUM_RETRIES = 10


class ConfigError(Exception):
    """Configuration is missing or invalid."""


def get_config_dir() -> Path:
    """Get the configuration directory for loggergateway.

    Returns:
        Path to ~/.loggergateway.
    """
    return Path.home() / ".loggergateway"


def get_default_data_root() -> Path:
    """Get the default root directory for downloaded data files."""
    return get_config_dir() / "data"


@dataclass
class ServerConfig:
    """Data store server the gateway uploads to.

    Attributes:
        host: Server host name.
        port: Server port, kept as text since it is also part of a directory name.
        timeout: Connect/read timeout in seconds for uploads.
    """

    host: str
    port: str
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Normalize and validate the server address."""
        self.host = self.host.strip()
        self.port = str(self.port).strip()
        if not self.host:
            raise ConfigError("Server host must not be empty")
        if not self.port.isdigit():
            raise ConfigError(f"Invalid server port: {self.port!r}")

    @property
    def base_url(self) -> str:
        """Get the base URL for uploads (plain HTTP)."""
        return f"http://{self.host}:{self.port}"


@dataclass
class DeviceConfig:
    """Identity of the logging device and the user it belongs to.

    Attributes:
        username: Account name on the data store server.
        device_nickname: Device nickname used in upload URLs and paths.
    """

    username: str
    device_nickname: str

    def __post_init__(self) -> None:
        """Validate required fields."""
        if not self.username:
            raise ConfigError("Username must not be empty")
        if not self.device_nickname:
            raise ConfigError("Device nickname must not be empty")


@dataclass
class GatewayConfig:
    """Tuning for the synchronization engine.

    Attributes:
        data_root: Root directory under which per-device data directories live.
        max_checksum_retries: Failed checksums tolerated before giving up on a file.
        upload_workers: Number of concurrent upload workers.
        upload_retry_delay: Seconds before a file whose upload failed is retried.
        active_poll_delay: Seconds until the next device poll after acting on files.
        idle_poll_delay: Seconds until the next device poll when it has no files.
        failure_poll_delay: First delay after a failed device call.
        max_failure_poll_delay: Upper bound of the failed-call backoff.
        upload_idle_delay: Seconds an upload worker sleeps when nothing is ready.
        shutdown_timeout: Seconds to wait for in-flight tasks at shutdown.
    """

    data_root: Path = field(default_factory=get_default_data_root)
    max_checksum_retries: int = MAX_CHECKSUM_RETRIES
    upload_workers: int = 4
    upload_retry_delay: float = 60.0
    active_poll_delay: float = 1.0
    idle_poll_delay: float = 60.0
    failure_poll_delay: float = 5.0
    max_failure_poll_delay: float = 60.0
    upload_idle_delay: float = 15.0
    shutdown_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate ranges."""
        self.data_root = Path(self.data_root).expanduser()
        if not MIN_CHECKSUM_RETRIES <= self.max_checksum_retries <= MAX_CHECKSUM_RETRIES:
            raise ConfigError(
                f"max_checksum_retries must be between {MIN_CHECKSUM_RETRIES} "
                f"and {MAX_CHECKSUM_RETRIES}, got {self.max_checksum_retries}"
            )
        if self.upload_workers < 1:
            raise ConfigError("upload_workers must be at least 1")


def device_data_directory(
    data_root: Path,
    server: ServerConfig,
    device: DeviceConfig,
) -> Path:
    """Get the directory holding one device's data files.

    Layout: <root>/<host>_<port>/User<username>/<nickname>

    Args:
        data_root: Root data directory.
        server: Server the files are uploaded to.
        device: Device the files come from.

    Returns:
        Path to the device data directory (not created).
    """
    return (
        data_root
        / f"{server.host}_{server.port}"
        / f"User{device.username}"
        / device.device_nickname
    )


def _require(data: dict[str, Any], section: str, key: str) -> Any:
    try:
        return data[section][key]
    except (KeyError, TypeError):
        raise ConfigError(f"Missing required config value: {section}.{key}") from None


def parse_config(data: dict[str, Any]) -> tuple[ServerConfig, DeviceConfig, GatewayConfig]:
    """Build config objects from a parsed config dictionary.

    Expected shape:
        {
            "server": {"host": "...", "port": "80", "timeout": 30},
            "device": {"username": "...", "device_nickname": "..."},
            "gateway": {"data_root": "...", "max_checksum_retries": 10, ...}
        }

    Raises:
        ConfigError: If a required value is missing or invalid.
    """
    server = ServerConfig(
        host=str(_require(data, "server", "host")),
        port=str(_require(data, "server", "port")),
        timeout=float(data["server"].get("timeout", 30.0)),
    )
    device = DeviceConfig(
        username=str(_require(data, "device", "username")),
        device_nickname=str(_require(data, "device", "device_nickname")),
    )

    gateway_data = dict(data.get("gateway") or {})
    known = set(GatewayConfig.__dataclass_fields__)
    unknown = set(gateway_data) - known
    if unknown:
        raise ConfigError(f"Unknown gateway config keys: {', '.join(sorted(unknown))}")
    try:
        gateway = GatewayConfig(**gateway_data)
    except TypeError as e:
        raise ConfigError(f"Invalid gateway config: {e}") from e

    return server, device, gateway


def load_config(path: Path) -> tuple[ServerConfig, DeviceConfig, GatewayConfig]:
    """Load configuration from a JSON file.

    Args:
        path: Path to the config file.

    Returns:
        Tuple of (server, device, gateway) configs.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return parse_config(data)
