"""Logging device capability and implementations."""

from loggergateway.device.base import DataFile, Device, DeviceError, NoSuchFileError
from loggergateway.device.directory import DirectoryDevice

__all__ = [
    "DataFile",
    "Device",
    "DeviceError",
    "DirectoryDevice",
    "NoSuchFileError",
]
