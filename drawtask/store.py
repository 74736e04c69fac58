"""
Snapshot store backed by a single JSON data file.

The whole state ({"apiAccounts": [...], "tasks": [...]}) is read and
written as one document. Every mutation goes through ``update`` which
holds one asyncio.Lock around read -> mutate -> write, so the lock is
the single serialization point for the file.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, TypeVar, Union

from .errors import StorageError
from .models import Snapshot

logger = logging.getLogger("drawtask.store")

T = TypeVar("T")

EMPTY_STATE = {"apiAccounts": [], "tasks": []}


class SnapshotStore:
    """Whole-snapshot reads and serialized whole-snapshot writes."""

    def __init__(self, data_file: Union[str, Path]):
        self.data_file = Path(data_file)
        self._lock = asyncio.Lock()

    # ---- blocking helpers (run in a worker thread) ----

    def _init_file(self) -> bool:
        if self.data_file.exists():
            return False
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        self._write_file(EMPTY_STATE)
        return True

    def _read_file(self) -> Snapshot:
        if not self.data_file.exists():
            return Snapshot()
        try:
            data = json.loads(self.data_file.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("top-level value is not an object")
            return Snapshot.from_dict(data)
        except (OSError, ValueError, TypeError, KeyError) as e:
            raise StorageError(f"Failed to read data file: {e}", path=str(self.data_file)) from e

    def _write_file(self, data: dict):
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.data_file.parent), prefix=".data-", suffix=".json"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.data_file)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write data file: {e}", path=str(self.data_file)) from e

    # ---- async API ----

    async def init_storage(self):
        """Create the data file with empty collections if it is missing"""
        created = await asyncio.to_thread(self._init_file)
        if created:
            logger.info(f"Initialized data file at {self.data_file}")

    async def read(self) -> Snapshot:
        """
        Read the current snapshot.

        A file that cannot be read or parsed is logged and treated as an
        empty snapshot.
        """
        try:
            return await asyncio.to_thread(self._read_file)
        except StorageError as e:
            logger.error(f"{e.message} ({e.path}), falling back to empty snapshot")
            return Snapshot()

    async def write(self, snapshot: Snapshot):
        """Replace the persisted snapshot. Raises StorageError on failure."""
        async with self._lock:
            await self._write_locked(snapshot)

    async def update(self, mutator: Callable[[Snapshot], T]) -> T:
        """
        Apply ``mutator`` to a freshly read snapshot and persist the result.

        The read, the mutation and the write happen while holding the
        store lock. Exceptions raised by ``mutator`` abort the update
        without writing. An unreadable data file raises StorageError here
        instead of being replaced by an empty snapshot.
        """
        async with self._lock:
            snapshot = await asyncio.to_thread(self._read_file)
            result = mutator(snapshot)
            await self._write_locked(snapshot)
            return result

    async def _write_locked(self, snapshot: Snapshot):
        try:
            await asyncio.to_thread(self._write_file, snapshot.to_dict())
        except StorageError as e:
            logger.error(f"{e.message} ({e.path})")
            raise
