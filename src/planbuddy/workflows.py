"""Shared workflow layer between the CLI and the repository.

Wires configuration to adapters and runs the ticket sync end to end.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from .adapters.gmail import GmailTicketSource
from .adapters.json_store import JsonFileRecordStore
from .config import Config
from .core.errors import AuthError, SyncInProgressError, TransportError
from .core.sync import next_sync_window
from .core.tasks import Task
from .core.tickets import TicketCandidate, candidate_to_task_fields, unique_candidates
from .ports.ticket_source import TicketSource
from .repository import BatchResult, TaskRepository

logger = logging.getLogger(__name__)

# One sync at a time per process
_sync_lock = threading.Lock()


@dataclass
class SyncReport:
    """Outcome of a successful sync."""

    since: datetime
    synced_at: datetime
    discovered: int
    result: BatchResult

    def summary(self) -> str:
        added = len(self.result.added)
        replaced = len(self.result.duplicates_resolved)
        skipped = self.result.total_processed - added
        return (
            f"Found {self.discovered} ticket(s) since {self.since:%Y-%m-%d %H:%M}: "
            f"{added} added, {replaced} replaced, {skipped} skipped"
        )


def get_repository(config: Config) -> TaskRepository:
    """Repository backed by the configured JSON data file."""
    return TaskRepository(JsonFileRecordStore(config.data_path), config=config)


def get_ticket_source(config: Config) -> GmailTicketSource:
    """Gmail ticket source from config."""
    return GmailTicketSource(
        token_file=config.token_path,
        client_secret_file=config.gmail_client_secret_file,
        ticket_pattern=config.ticket_pattern,
        max_results=config.gmail_max_results,
    )


def build_candidates(discovered: list[TicketCandidate], now: datetime) -> list[Task]:
    """Turn discovered tickets into uncategorized candidate tasks, one per ticket id."""
    return [Task.new(now=now, **candidate_to_task_fields(c)) for c in unique_candidates(discovered)]


def run_sync(repo: TaskRepository, source: TicketSource, now: datetime | None = None) -> SyncReport:
    """
    Discover tickets since the delta-sync window and import them.

    If discovery fails nothing is imported, the attempt is still recorded in
    the sync metadata, and the error is re-raised.
    """
    if not _sync_lock.acquire(blocking=False):
        raise SyncInProgressError("A sync is already running")

    try:
        now = now or repo.now()
        since = next_sync_window(repo.sync_meta(), now)
        logger.info(f"Syncing tickets since {since.isoformat()}")

        try:
            discovered = source.discover_candidates(since)
        except (AuthError, TransportError) as e:
            logger.warning(f"Sync failed: {e}")
            repo.record_sync_failure(now, str(e))
            raise

        candidates = build_candidates(discovered, now)
        result = repo.add_batch(candidates, synced_at=now)
        report = SyncReport(since=since, synced_at=now, discovered=len(candidates), result=result)
        logger.info(report.summary())
        return report
    finally:
        _sync_lock.release()
