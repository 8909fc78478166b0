"""In-memory record store adapter."""

import copy
from typing import Any


class InMemoryRecordStore:
    """
    Dict-backed record store.

    Implements RecordStore protocol. Values are deep-copied in and out so
    callers never share mutable state with the store.
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, bucket: str) -> Any | None:
        if bucket not in self._data:
            return None
        return copy.deepcopy(self._data[bucket])

    def put(self, bucket: str, value: Any) -> None:
        self._data[bucket] = copy.deepcopy(value)

    def put_many(self, values: dict[str, Any]) -> None:
        staged = dict(self._data)
        for bucket, value in values.items():
            staged[bucket] = copy.deepcopy(value)
        self._data = staged

    def delete(self, bucket: str) -> None:
        self._data.pop(bucket, None)

    def clear(self) -> None:
        self._data = {}

    def buckets(self) -> list[str]:
        return list(self._data)
