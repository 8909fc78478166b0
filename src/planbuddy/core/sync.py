"""Sync metadata and delta-sync window math - no I/O."""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from .errors import ValidationError
from .tasks import format_timestamp, parse_timestamp

DEFAULT_INITIAL_SYNC_DAYS = 7
DEFAULT_SAFETY_NET_HOURS = 24


@dataclass(frozen=True)
class SyncMeta:
    """Process-wide record of the relationship with the external ticket source."""

    last_jira_sync: datetime | None = None
    last_successful_sync: datetime | None = None
    failed_sync_attempts: int = 0
    initial_sync_days: int = DEFAULT_INITIAL_SYNC_DAYS
    safety_net_hours: int = DEFAULT_SAFETY_NET_HOURS
    total_tasks_processed: int = 0
    duplicates_resolved: int = 0
    last_sync_error: str | None = None
    stats_last_calculated: datetime | None = None

    def with_changes(self, **changes) -> "SyncMeta":
        return replace(self, **changes)

    def record_success(self, now: datetime) -> "SyncMeta":
        """Both sync stamps move forward and the failure streak resets."""
        return replace(
            self,
            last_jira_sync=now,
            last_successful_sync=now,
            failed_sync_attempts=0,
            last_sync_error=None,
        )

    def record_failure(self, now: datetime, error: str) -> "SyncMeta":
        """Only the attempt stamp moves so the window does not get stuck."""
        return replace(
            self,
            last_jira_sync=now,
            failed_sync_attempts=self.failed_sync_attempts + 1,
            last_sync_error=error,
        )

    def to_dict(self) -> dict:
        return {
            "lastJiraSync": format_timestamp(self.last_jira_sync),
            "lastSuccessfulSync": format_timestamp(self.last_successful_sync),
            "failedSyncAttempts": self.failed_sync_attempts,
            "initialSyncDays": self.initial_sync_days,
            "safetyNetHours": self.safety_net_hours,
            "totalTasksProcessed": self.total_tasks_processed,
            "duplicatesResolved": self.duplicates_resolved,
            "lastSyncError": self.last_sync_error,
            "statsLastCalculated": format_timestamp(self.stats_last_calculated),
        }

    @classmethod
    def from_dict(cls, data: dict | None, defaults: "SyncMeta | None" = None) -> "SyncMeta":
        """Load from a persisted record; missing keys fall back to ``defaults``."""
        base = defaults or cls()
        if not data:
            return base

        def number(key: str, fallback: int) -> int:
            value = data.get(key)
            if value is None:
                return fallback
            try:
                return int(value)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Invalid {key}: {value!r}") from e

        return cls(
            last_jira_sync=parse_timestamp(data.get("lastJiraSync")),
            last_successful_sync=parse_timestamp(data.get("lastSuccessfulSync")),
            failed_sync_attempts=number("failedSyncAttempts", 0),
            initial_sync_days=number("initialSyncDays", base.initial_sync_days),
            safety_net_hours=number("safetyNetHours", base.safety_net_hours),
            total_tasks_processed=number("totalTasksProcessed", 0),
            duplicates_resolved=number("duplicatesResolved", 0),
            last_sync_error=data.get("lastSyncError"),
            stats_last_calculated=parse_timestamp(data.get("statsLastCalculated")),
        )


def next_sync_window(meta: SyncMeta, now: datetime) -> datetime:
    """
    The "after" boundary for the next external query.

    Never synced: look back ``initial_sync_days``. Otherwise look back to the
    last sync, but never less far than ``safety_net_hours``.

    Pure function - no I/O.
    """
    if meta.last_jira_sync is None:
        return now - timedelta(days=meta.initial_sync_days)

    safety_net = now - timedelta(hours=meta.safety_net_hours)
    return min(meta.last_jira_sync, safety_net)
