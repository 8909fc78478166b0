"""Functional core - pure business logic with no I/O."""

from .errors import (
    AuthError,
    NotFoundError,
    PlanBuddyError,
    StorageError,
    SyncInProgressError,
    TransportError,
    ValidationError,
)
from .tasks import ArchivedTask, Priority, Quadrant, QuadrantChange, Status, Task
from .duplicates import Action, Resolution, find_duplicates, resolve_duplicates
from .sync import SyncMeta, next_sync_window
from .stats import Q2Progress, Stats, compute_stats
from .tickets import TicketCandidate, extract_tickets, parse_message

__all__ = [
    # Errors
    "PlanBuddyError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "AuthError",
    "TransportError",
    "SyncInProgressError",
    # Tasks
    "Task",
    "ArchivedTask",
    "Quadrant",
    "QuadrantChange",
    "Priority",
    "Status",
    # Duplicates
    "Action",
    "Resolution",
    "find_duplicates",
    "resolve_duplicates",
    # Sync
    "SyncMeta",
    "next_sync_window",
    # Stats
    "Q2Progress",
    "Stats",
    "compute_stats",
    # Tickets
    "TicketCandidate",
    "extract_tickets",
    "parse_message",
]
