"""Duplicate resolution for tasks imported from an external ticket source."""

from dataclasses import dataclass, field
from enum import Enum

from .tasks import Task


class Action(Enum):
    NEW = "new"  # No active task shares the ticket id
    REPLACE = "replace"  # Candidate is newer than at least one duplicate
    DISCARD = "discard"  # Every duplicate is as new or newer


@dataclass
class Resolution:
    """What to do with a candidate, and which existing tasks it supersedes."""

    action: Action
    remove_ids: list[str] = field(default_factory=list)

    @property
    def inserts(self) -> bool:
        return self.action != Action.DISCARD


def find_duplicates(candidate: Task, tasks: list[Task]) -> list[Task]:
    """Active tasks sharing the candidate's external ticket id."""
    if not candidate.external_ticket_id:
        return []
    return [
        t
        for t in tasks
        if t.is_active and t.external_ticket_id == candidate.external_ticket_id
    ]


def resolve_duplicates(candidate: Task, tasks: list[Task]) -> Resolution:
    """
    Decide whether a candidate is new, replaces older duplicates, or is stale.

    Each duplicate is dropped only if the candidate's sync origin timestamp is
    strictly later; equal timestamps favour the existing task.

    Pure function - no I/O.
    """
    duplicates = find_duplicates(candidate, tasks)
    if not duplicates:
        return Resolution(Action.NEW)

    remove_ids = [
        existing.id
        for existing in duplicates
        if _is_newer(candidate, existing)
    ]
    if remove_ids:
        return Resolution(Action.REPLACE, remove_ids)
    return Resolution(Action.DISCARD)


def _is_newer(candidate: Task, existing: Task) -> bool:
    if candidate.sync_origin_timestamp is None:
        return False
    if existing.sync_origin_timestamp is None:
        return True
    return candidate.sync_origin_timestamp > existing.sync_origin_timestamp
