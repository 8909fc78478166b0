"""Record store interface."""

from typing import Any, Protocol

TASKS = "tasks"
ARCHIVED = "archived"
SYNC_META = "syncMeta"
Q2_COUNT = "q2Count"

BUCKETS = (TASKS, ARCHIVED, SYNC_META, Q2_COUNT)


class RecordStore(Protocol):
    """Interface for durable key-value storage of JSON-serializable documents."""

    def get(self, bucket: str) -> Any | None:
        """Read a bucket. Returns None if it has never been written."""
        ...

    def put(self, bucket: str, value: Any) -> None:
        """Write/overwrite a single bucket."""
        ...

    def put_many(self, values: dict[str, Any]) -> None:
        """Write several buckets at once. Either all writes land or none do."""
        ...

    def delete(self, bucket: str) -> None:
        """Remove a bucket if present."""
        ...

    def clear(self) -> None:
        """Remove every bucket."""
        ...

    def buckets(self) -> list[str]:
        """Names of the buckets currently stored."""
        ...
