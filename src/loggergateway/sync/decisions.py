"""Decision table for files reported by the device.

Given the local status of a file the device still holds, this module
decides what to ask the device to do with it.

Table:
| Local status        | Action                                       |
|---------------------|----------------------------------------------|
| (none)              | Download from device                         |
| WRITING             | Nothing (being saved right now)              |
| DOWNLOADED          | Nothing (not yet stored server-side)         |
| UPLOADING           | Nothing (not yet stored server-side)         |
| UPLOADED            | Delete from device                           |
| CORRUPT_DATA        | Delete from device                           |
| INCORRECT_CHECKSUM  | Download again, or delete once retries ran out |
"""

from __future__ import annotations

from dataclasses import dataclass

from loggergateway.core.types import DeviceAction, FileStatus


@dataclass(frozen=True)
class DecisionRule:
    """A rule in the decision table."""

    status: FileStatus | None
    action: DeviceAction
    reason: str


DECISION_RULES: list[DecisionRule] = [
    DecisionRule(
        status=None,
        action=DeviceAction.DOWNLOAD_FROM_DEVICE,
        reason="No local copy yet",
    ),
    DecisionRule(
        status=FileStatus.WRITING,
        action=DeviceAction.NO_ACTION,
        reason="File is currently being written",
    ),
    DecisionRule(
        status=FileStatus.DOWNLOADED,
        action=DeviceAction.NO_ACTION,
        reason="Downloaded, waiting for upload",
    ),
    DecisionRule(
        status=FileStatus.UPLOADING,
        action=DeviceAction.NO_ACTION,
        reason="Upload in progress",
    ),
    DecisionRule(
        status=FileStatus.UPLOADED,
        action=DeviceAction.DELETE_FROM_DEVICE,
        reason="Stored on the server",
    ),
    DecisionRule(
        status=FileStatus.CORRUPT_DATA,
        action=DeviceAction.DELETE_FROM_DEVICE,
        reason="Valid checksum but the server rejected the data",
    ),
    DecisionRule(
        status=FileStatus.INCORRECT_CHECKSUM,
        action=DeviceAction.DOWNLOAD_FROM_DEVICE,
        reason="Incorrect checksum, downloading again",
    ),
]

_RULES_BY_STATUS = {rule.status: rule for rule in DECISION_RULES}

_RETRIES_EXHAUSTED = DecisionRule(
    status=FileStatus.INCORRECT_CHECKSUM,
    action=DeviceAction.DELETE_FROM_DEVICE,
    reason="Incorrect checksum and all download retries failed",
)


def evaluate(status: FileStatus | None, retries_exhausted: bool = False) -> DecisionRule:
    """Find the rule for a local status.

    Args:
        status: Local status of the file, or None if there is no local copy.
        retries_exhausted: Whether the checksum retry bound has been reached.
            Only consulted for INCORRECT_CHECKSUM.

    Returns:
        The matching rule.
    """
    if status is FileStatus.INCORRECT_CHECKSUM and retries_exhausted:
        return _RETRIES_EXHAUSTED
    return _RULES_BY_STATUS[status]


def decide_action(status: FileStatus | None, retries_exhausted: bool = False) -> DeviceAction:
    """Quick decision lookup.

    Args:
        status: Local status of the file, or None if there is no local copy.
        retries_exhausted: Whether the checksum retry bound has been reached.

    Returns:
        The action to ask of the device.
    """
    return evaluate(status, retries_exhausted).action
