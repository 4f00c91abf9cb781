"""Data file synchronization engine.

This package provides:
- FileStateStore: On-disk state machine (status = filename suffix)
- DownloadCoordinator: Device poll and per-file action dispatch
- UploadCoordinator: Upload and response interpretation
- ChecksumRetryPolicy / TransientBackoff / PollBackoff: Retry rules
- TaskScheduler: Delay-based tasks on bounded thread pools
- Statistics: Transfer counters
- SyncEngine: One device session wiring it all together
"""

from loggergateway.sync.decisions import DECISION_RULES, DecisionRule, decide_action, evaluate
from loggergateway.sync.download import DownloadCoordinator
from loggergateway.sync.engine import SyncEngine
from loggergateway.sync.retry import (
    ChecksumRetryPolicy,
    PollBackoff,
    PollOutcome,
    TransientBackoff,
)
from loggergateway.sync.scheduler import TaskScheduler
from loggergateway.sync.stats import Statistics, StatsCategory
from loggergateway.sync.store import FileStateStore
from loggergateway.sync.upload import UploadCoordinator, UploadOutcome, classify_response

__all__ = [
    # Decisions
    "DECISION_RULES",
    "DecisionRule",
    "decide_action",
    "evaluate",
    # Coordinators
    "DownloadCoordinator",
    "UploadCoordinator",
    "UploadOutcome",
    "classify_response",
    # Retry
    "ChecksumRetryPolicy",
    "PollBackoff",
    "PollOutcome",
    "TransientBackoff",
    # Infrastructure
    "FileStateStore",
    "Statistics",
    "StatsCategory",
    "SyncEngine",
    "TaskScheduler",
]
