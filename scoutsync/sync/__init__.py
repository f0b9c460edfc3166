"""Sync engine for the offline-first scouting store.

Provides scoped pull reconciliation of mirrored remote collections,
at-least-once delivery of locally originated records, and the active
(organization, event) context that bounds both.
"""

from .context import ActiveContext, ActiveContextRegistry
from .events import Listeners, SyncCompleted
from .orchestrator import (
    AssignmentRefresh,
    FullSyncResult,
    PullReport,
    PushReport,
    SyncOrchestrator,
    SyncStatus,
)
from .outbox import CHANNELS, DispatchFailure, DispatchResult, OutboxChannel, OutboxDispatcher
from .reconciler import ReconcileCounts, Reconciler

__all__ = [
    "ActiveContext",
    "ActiveContextRegistry",
    "AssignmentRefresh",
    "CHANNELS",
    "DispatchFailure",
    "DispatchResult",
    "FullSyncResult",
    "Listeners",
    "OutboxChannel",
    "OutboxDispatcher",
    "PullReport",
    "PushReport",
    "ReconcileCounts",
    "Reconciler",
    "SyncCompleted",
    "SyncOrchestrator",
    "SyncStatus",
]
