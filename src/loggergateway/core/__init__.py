"""Core module - Shared config, status types and checksums."""

from loggergateway.core.checksum import (
    TRAILER_SIZE,
    append_trailer,
    compute_checksum,
    split_trailer,
    verify_checksum,
)
from loggergateway.core.config import (
    ConfigError,
    DeviceConfig,
    GatewayConfig,
    ServerConfig,
    device_data_directory,
    load_config,
)
from loggergateway.core.types import (
    DeviceAction,
    FileStatus,
    compute_base_id,
    is_valid_base_id,
    timestamp_for_base_id,
)

__all__ = [
    # Checksum
    "TRAILER_SIZE",
    "append_trailer",
    "compute_checksum",
    "split_trailer",
    "verify_checksum",
    # Config
    "ConfigError",
    "DeviceConfig",
    "GatewayConfig",
    "ServerConfig",
    "device_data_directory",
    "load_config",
    # Types
    "DeviceAction",
    "FileStatus",
    "compute_base_id",
    "is_valid_base_id",
    "timestamp_for_base_id",
]
