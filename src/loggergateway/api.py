"""HTTP client for the data store server.

This module provides:
- UploadResponse: Parsed response to a data file upload
- UploadClient: HTTP client that uploads data files
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from loggergateway.core.config import DeviceConfig, ServerConfig
from loggergateway.core.types import FileStatus

logger = logging.getLogger(__name__)

KNOWN_RESPONSE_FIELDS = frozenset(
    {
        "successful_datasets",
        "duplicate_datasets",
        "successful_binrecs",
        "failed_binrecs",
        "min_time",
        "max_time",
        "error_arr",
    }
)


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class UploadResponse:
    """Server response to a data file upload.

    Attributes:
        successful_datasets: Datasets imported.
        duplicate_datasets: Datasets the server already had.
        successful_binrecs: Binary records imported.
        failed_binrecs: Binary records the server could not import.
        min_time: Earliest sample time in the file.
        max_time: Latest sample time in the file.
        errors: Error messages reported by the server.
        unknown: Any other fields, kept as received.
    """

    successful_datasets: int | None = None
    duplicate_datasets: int | None = None
    successful_binrecs: int | None = None
    failed_binrecs: int | None = None
    min_time: float | None = None
    max_time: float | None = None
    errors: list[str] = field(default_factory=list)
    unknown: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UploadResponse:
        """Create from API response dictionary."""
        errors = data.get("error_arr") or []
        if not isinstance(errors, list):
            errors = [errors]
        return cls(
            successful_datasets=_as_int(data.get("successful_datasets")),
            duplicate_datasets=_as_int(data.get("duplicate_datasets")),
            successful_binrecs=_as_int(data.get("successful_binrecs")),
            failed_binrecs=_as_int(data.get("failed_binrecs")),
            min_time=_as_float(data.get("min_time")),
            max_time=_as_float(data.get("max_time")),
            errors=[str(e) for e in errors],
            unknown={k: v for k, v in data.items() if k not in KNOWN_RESPONSE_FIELDS},
        )

    @classmethod
    def parse(cls, body: str) -> UploadResponse | None:
        """Parse a response body.

        Older servers prefix the JSON object with other text, so parsing
        starts at the first opening brace.

        Returns:
            The parsed response, or None if the body holds no JSON object.
        """
        start = body.find("{")
        if start < 0:
            return None
        try:
            data = json.loads(body[start:])
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        return cls.from_dict(data)


class UploadClient:
    """HTTP client that uploads data files for one device."""

    def __init__(
        self,
        server: ServerConfig,
        device: DeviceConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the upload client.

        Args:
            server: Server to upload to.
            device: Device the files belong to.
            transport: Optional httpx transport (for testing).
        """
        self._server = server
        self._device = device
        self._client = httpx.Client(
            base_url=server.base_url,
            timeout=server.timeout,
            transport=transport,
        )
        logger.info(f"Upload URL prefix: {self.upload_url}")

    @property
    def upload_url(self) -> str:
        """Get the upload endpoint for this device."""
        return f"{self._server.base_url}/users/{self._device.username}/binupload"

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> UploadClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def upload(self, path: Path, base_id: str) -> UploadResponse | None:
        """Upload one data file.

        Args:
            path: Local file to send (usually in UPLOADING state).
            base_id: Base id of the file; the server sees it as "<base id>.BT".

        Returns:
            The server's response, or None on any transport failure,
            server error, or unparseable response.
        """
        try:
            content = Path(path).read_bytes()
        except OSError as e:
            logger.error(f"Failed to read {path} for upload: {e}")
            return None

        params = {
            "dev_nickname": self._device.device_nickname,
            "filename": f"{base_id}{FileStatus.DOWNLOADED.suffix}",
        }
        logger.debug(f"Uploading {Path(path).name} ({len(content)} bytes) to {self.upload_url}")

        try:
            response = self._client.post(
                f"/users/{self._device.username}/binupload",
                params=params,
                content=content,
                headers={"Content-Type": "application/octet-stream"},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Upload of {base_id} failed: {e}")
            return None

        logger.debug(f"Upload of {base_id} returned status {response.status_code}")
        if response.status_code >= 500:
            logger.warning(f"Upload of {base_id} failed with server error {response.status_code}")
            return None

        parsed = UploadResponse.parse(response.text)
        if parsed is None:
            logger.warning(f"Upload of {base_id} returned an unparseable response")
        return parsed
