"""JSON file record store adapter."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from planbuddy.core.errors import StorageError

logger = logging.getLogger(__name__)


class JsonFileRecordStore:
    """
    File-based record store.

    Implements RecordStore protocol. All buckets live in one JSON document.
    Every write replaces the whole file via a temp file and ``os.replace``,
    so a multi-bucket write is atomic.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data

        if not self.path.exists():
            self._data = {}
            return self._data

        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            raise StorageError(f"Data file is corrupt: {self.path} ({e})") from e
        except OSError as e:
            raise StorageError(f"Cannot read data file {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Data file is not a JSON object: {self.path}")

        self._data = data
        return self._data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write {self.path}: {e}")
            raise StorageError(f"Cannot write data file {self.path}: {e}") from e

        self._data = data

    def get(self, bucket: str) -> Any | None:
        data = self._load()
        if bucket not in data:
            return None
        # Round-trip so callers get their own copy
        return json.loads(json.dumps(data[bucket]))

    def put(self, bucket: str, value: Any) -> None:
        self.put_many({bucket: value})

    def put_many(self, values: dict[str, Any]) -> None:
        staged = dict(self._load())
        staged.update(values)
        self._write(staged)

    def delete(self, bucket: str) -> None:
        data = self._load()
        if bucket not in data:
            return
        staged = {k: v for k, v in data.items() if k != bucket}
        self._write(staged)

    def clear(self) -> None:
        self._write({})

    def buckets(self) -> list[str]:
        return list(self._load())
