"""Task repository - CRUD, archival and batch import over a RecordStore.

Every command reads the buckets it needs, computes the new state with the
pure core, and writes back. Commands that touch more than one bucket do so
in a single ``put_many`` so a failed write leaves the store unchanged.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable

from .config import Config
from .core.duplicates import resolve_duplicates
from .core.errors import NotFoundError, StorageError, ValidationError
from .core.stats import Stats, compute_stats
from .core.sync import SyncMeta, next_sync_window
from .core.tasks import (
    MUTABLE_FIELDS,
    ArchivedTask,
    Priority,
    Quadrant,
    QuadrantChange,
    Status,
    Task,
    coerce_enum,
    utcnow,
)
from .ports.record_store import ARCHIVED, BUCKETS, Q2_COUNT, SYNC_META, TASKS, RecordStore

logger = logging.getLogger(__name__)

# Bucket names used by earlier exports
_LEGACY_SNAPSHOT_KEYS = {
    "TASKS": TASKS,
    "ARCHIVED": ARCHIVED,
    "SYNC_META": SYNC_META,
    "Q2_COUNT": Q2_COUNT,
}


@dataclass
class BatchResult:
    """Manifest of a batch insert, for reporting back to the user."""

    added: list[Task] = field(default_factory=list)
    duplicates_resolved: list[str] = field(default_factory=list)
    total_processed: int = 0

    @property
    def discarded(self) -> int:
        return self.total_processed - len(self.added)


class TaskRepository:
    """Commands and queries over the tasks, archive, sync metadata and Q2 counter."""

    def __init__(
        self,
        store: RecordStore,
        config: Config | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.config = config or Config()
        self._clock = clock or utcnow
        self._initialize()

    def _initialize(self) -> None:
        """Write default buckets on first run."""
        defaults = {
            TASKS: [],
            ARCHIVED: [],
            SYNC_META: self.config.default_sync_meta().to_dict(),
            Q2_COUNT: 0,
        }
        missing = {k: v for k, v in defaults.items() if self.store.get(k) is None}
        if missing:
            logger.debug(f"Initializing buckets: {', '.join(missing)}")
            self.store.put_many(missing)

    def now(self) -> datetime:
        return self._clock()

    # ---- bucket helpers ----

    def _load_tasks(self) -> list[Task]:
        try:
            return [Task.from_dict(record) for record in self.store.get(TASKS) or []]
        except ValidationError as e:
            raise StorageError(f"Corrupt task record in store: {e}") from e

    def _load_archived(self) -> list[ArchivedTask]:
        try:
            return [ArchivedTask.from_dict(record) for record in self.store.get(ARCHIVED) or []]
        except ValidationError as e:
            raise StorageError(f"Corrupt archive record in store: {e}") from e

    @staticmethod
    def _dump(tasks: list[Task]) -> list[dict]:
        return [t.to_dict() for t in tasks]

    def _require(self, tasks: list[Task], task_id: str) -> int:
        for index, task in enumerate(tasks):
            if task.id == task_id:
                return index
        raise NotFoundError(task_id)

    # ---- queries ----

    def get_by_id(self, task_id: str) -> Task | None:
        return next((t for t in self._load_tasks() if t.id == task_id), None)

    def list_tasks(self) -> list[Task]:
        """All live tasks in insertion order."""
        return self._load_tasks()

    def list_by_quadrant(self, quadrant: Quadrant | str) -> list[Task]:
        """Live tasks in a quadrant, in insertion order."""
        quadrant = coerce_enum(Quadrant, quadrant, "quadrant")
        return [t for t in self._load_tasks() if t.quadrant == quadrant]

    def list_archived(self) -> list[ArchivedTask]:
        return self._load_archived()

    def q2_count(self) -> int:
        return int(self.store.get(Q2_COUNT) or 0)

    def sync_meta(self) -> SyncMeta:
        return SyncMeta.from_dict(self.store.get(SYNC_META), self.config.default_sync_meta())

    def next_sync_window(self) -> datetime:
        """The "after" boundary for the next external query."""
        return next_sync_window(self.sync_meta(), self.now())

    def compute_stats(self) -> Stats:
        """Recompute board statistics from current state. Read-only."""
        return compute_stats(
            self._load_tasks(),
            self._load_archived(),
            self.q2_count(),
            self.now(),
            reward_every=self.config.reward_every,
            reward_name=self.config.reward_name,
            q1_warning_percent=self.config.q1_warning_percent,
        )

    # ---- commands ----

    def create(
        self,
        title: str,
        origin: str = "manual",
        source: str | None = None,
        external_ticket_id: str = "",
        quadrant: Quadrant | str = Quadrant.UNCATEGORIZED,
        priority: Priority | str = Priority.MEDIUM,
        sync_origin_timestamp: datetime | None = None,
    ) -> Task:
        """Create and persist a new active task."""
        now = self.now()
        task = Task.new(
            title,
            now=now,
            origin=origin,
            source=source,
            external_ticket_id=external_ticket_id,
            quadrant=quadrant,
            priority=priority,
            sync_origin_timestamp=sync_origin_timestamp or now,
        )
        tasks = self._load_tasks()
        _check_ticket_unique(task, tasks)
        tasks.append(task)
        self.store.put(TASKS, self._dump(tasks))
        logger.debug(f"Created task {task.id} in {task.quadrant.value}")
        return task

    def update(self, task_id: str, **changes) -> Task:
        """
        Merge mutable fields into a task and restamp ``date_updated``.

        Fields outside the mutable allow-list (id, date_created, origin, ...)
        are ignored. Raises NotFoundError if the task does not exist, and
        ValidationError if the new ticket id belongs to another active task.
        """
        ignored = sorted(set(changes) - MUTABLE_FIELDS)
        if ignored:
            logger.debug(f"Ignoring immutable/unknown fields for {task_id}: {', '.join(ignored)}")

        tasks = self._load_tasks()
        index = self._require(tasks, task_id)
        updated = tasks[index].updated(self.now(), changes)
        if updated.external_ticket_id != tasks[index].external_ticket_id:
            _check_ticket_unique(updated, tasks)
        tasks[index] = updated
        self.store.put(TASKS, self._dump(tasks))
        return updated

    def categorize(
        self, task_id: str, quadrant: Quadrant | str, priority: Priority | str = Priority.MEDIUM
    ) -> Task:
        """File a task into a quadrant with a priority."""
        return self.update(task_id, quadrant=quadrant, priority=priority)

    def delete(self, task_id: str) -> bool:
        """Remove a live task. True if a record was removed."""
        tasks = self._load_tasks()
        remaining = [t for t in tasks if t.id != task_id]
        if len(remaining) == len(tasks):
            return False
        self.store.put(TASKS, self._dump(remaining))
        return True

    def complete(self, task_id: str) -> Task:
        """
        Mark a task completed.

        Completing a q2 task bumps the Q2 counter in the same write.
        Completing an already completed task changes nothing.
        """
        tasks = self._load_tasks()
        index = self._require(tasks, task_id)
        task = tasks[index]
        if task.is_completed:
            logger.info(f"Task {task_id} is already completed")
            return task

        now = self.now()
        completed = replace(task.updated(now, {}), status=Status.COMPLETED, date_completed=now)
        tasks[index] = completed

        values: dict = {TASKS: self._dump(tasks)}
        if completed.quadrant == Quadrant.Q2:
            values[Q2_COUNT] = self.q2_count() + 1
        self.store.put_many(values)
        return completed

    def reset_q2_count(self) -> int:
        self.store.put(Q2_COUNT, 0)
        return 0

    def archive(self, task_id: str, reason: str = "manual") -> ArchivedTask:
        """
        Move a task from the live set into the archive.

        The archive append and the live removal are one write: on StorageError
        the task stays live and the archive is untouched.
        """
        tasks = self._load_tasks()
        index = self._require(tasks, task_id)
        archived_task = ArchivedTask.from_task(tasks[index], self.now(), reason)

        archived = list(self.store.get(ARCHIVED) or [])
        archived.append(archived_task.to_dict())
        del tasks[index]

        self.store.put_many({ARCHIVED: archived, TASKS: self._dump(tasks)})
        logger.info(f"Archived task {task_id} from {archived_task.original_quadrant.value} ({reason})")
        return archived_task

    def update_sync_meta(self, **changes) -> SyncMeta:
        meta = self.sync_meta().with_changes(**changes)
        self.store.put(SYNC_META, meta.to_dict())
        return meta

    def record_sync_failure(self, now: datetime, error: str) -> SyncMeta:
        """Stamp a failed sync attempt without touching any task."""
        meta = self.sync_meta().record_failure(now, error)
        self.store.put(SYNC_META, meta.to_dict())
        return meta

    def add_batch(self, candidates: list[Task], synced_at: datetime | None = None) -> BatchResult:
        """
        Insert externally discovered tasks, resolving duplicates by ticket id.

        Each candidate is checked against the live tasks plus the candidates
        already accepted from this batch. Accepted candidates land in the
        uncategorized quadrant. Tasks and sync metadata are written together;
        with ``synced_at`` the write also records a successful sync.
        """
        now = self.now()
        working = self._load_tasks()
        stored_ids = {t.id for t in working}
        result = BatchResult(total_processed=len(candidates))

        for candidate in candidates:
            resolution = resolve_duplicates(candidate, working)
            if not resolution.inserts:
                logger.info(f"Discarding stale duplicate for {candidate.external_ticket_id}")
                continue

            if resolution.remove_ids:
                working = [t for t in working if t.id not in resolution.remove_ids]
                result.added = [t for t in result.added if t.id not in resolution.remove_ids]
                label = candidate.external_ticket_id or candidate.title
                # Only tasks that were stored before this batch count as resolved
                result.duplicates_resolved.extend(
                    label for task_id in resolution.remove_ids if task_id in stored_ids
                )
                logger.info(f"Replaced {len(resolution.remove_ids)} older task(s) for {label}")

            task = replace(
                candidate,
                quadrant=Quadrant.UNCATEGORIZED,
                last_synced_at=now,
                quadrant_history=(
                    QuadrantChange(Quadrant.UNCATEGORIZED, candidate.date_created or now),
                ),
            )
            working.append(task)
            result.added.append(task)

        meta = self.sync_meta()
        meta = meta.with_changes(
            duplicates_resolved=meta.duplicates_resolved + len(result.duplicates_resolved),
            total_tasks_processed=meta.total_tasks_processed + result.total_processed,
        )
        if synced_at is not None:
            meta = meta.record_success(synced_at)
        self.store.put_many({TASKS: self._dump(working), SYNC_META: meta.to_dict()})
        return result

    # ---- maintenance ----

    def export_all(self) -> dict:
        """Full serialized snapshot of every bucket."""
        return {bucket: self.store.get(bucket) for bucket in BUCKETS}

    def import_all(self, snapshot: dict) -> None:
        """
        Replace buckets from a snapshot produced by ``export_all``.

        Records are validated before anything is written; buckets missing
        from the snapshot (or null) are left as they are.
        """
        if not isinstance(snapshot, dict):
            raise ValidationError("Snapshot must be a JSON object")

        normalized = {}
        for key, value in snapshot.items():
            bucket = _LEGACY_SNAPSHOT_KEYS.get(key, key)
            if bucket in BUCKETS and value is not None:
                normalized[bucket] = value

        values = {}
        if TASKS in normalized:
            values[TASKS] = self._dump([Task.from_dict(r) for r in _as_list(normalized[TASKS], TASKS)])
        if ARCHIVED in normalized:
            values[ARCHIVED] = [
                ArchivedTask.from_dict(r).to_dict() for r in _as_list(normalized[ARCHIVED], ARCHIVED)
            ]
        if SYNC_META in normalized:
            if not isinstance(normalized[SYNC_META], dict):
                raise ValidationError("syncMeta must be an object")
            meta = SyncMeta.from_dict(normalized[SYNC_META], self.config.default_sync_meta())
            values[SYNC_META] = meta.to_dict()
        if Q2_COUNT in normalized:
            values[Q2_COUNT] = _as_count(normalized[Q2_COUNT])

        if values:
            self.store.put_many(values)
        logger.info(f"Imported buckets: {', '.join(values) or 'none'}")

    def reset_all(self) -> None:
        """Drop every bucket and re-create the defaults."""
        self.store.clear()
        self._initialize()
        logger.info("All data reset")


def _check_ticket_unique(task: Task, tasks: list[Task]) -> None:
    """An external ticket id may belong to at most one active task."""
    if not task.is_active or not task.external_ticket_id:
        return
    for other in tasks:
        if (
            other.id != task.id
            and other.is_active
            and other.external_ticket_id == task.external_ticket_id
        ):
            raise ValidationError(
                f"Ticket {task.external_ticket_id} already belongs to active task {other.id}"
            )


def _as_list(value, bucket: str) -> list:
    if not isinstance(value, list):
        raise ValidationError(f"{bucket} must be a list")
    return value


def _as_count(value) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid q2Count: {value!r}") from e
    if count < 0:
        raise ValidationError("q2Count must not be negative")
    return count
