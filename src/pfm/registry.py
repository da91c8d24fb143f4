"""File-backed registry of tracked forwards."""

import fcntl
import json
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

from .config import DEFAULT_LOCK_TIMEOUT, get_registry_path
from .console import debug
from .errors import LockTimeout, NotFound, StorageError
from .models import ForwardRecord, ForwardStatus

SCHEMA_VERSION = 1
LOCK_POLL_INTERVAL = 0.05


class ForwardRegistry:
    """Ordered, persisted collection of forward records.

    The whole collection is read into memory under an exclusive file lock,
    and every mutation rewrites the file atomically before returning.

    Usage::

        with registry.locked():
            registry.add(...)
    """

    def __init__(
        self, path: Path | None = None, lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    ) -> None:
        """Initialize registry.

        Args:
            path: Path to the registry file. If None, uses default location.
            lock_timeout: Seconds to wait for the lock before giving up
        """
        self.path = path or get_registry_path()
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.lock_timeout = lock_timeout
        self._records: dict[int, ForwardRecord] = {}
        self._next_id = 1
        self._lock_file: IO[str] | None = None

    @property
    def is_locked(self) -> bool:
        return self._lock_file is not None

    @contextmanager
    def locked(self) -> Iterator["ForwardRegistry"]:
        """Hold the exclusive lock and a freshly loaded copy of the registry.

        Raises:
            LockTimeout: If another process holds the lock past lock_timeout
            StorageError: If the registry cannot be read
        """
        if self._lock_file is not None:
            raise RuntimeError("Registry lock is already held by this instance")

        self._acquire()
        try:
            self.load()
            yield self
        finally:
            self._release()

    def load(self) -> None:
        """Replace the in-memory state with the file contents.

        A missing file is an empty registry.

        Raises:
            StorageError: If the file is unreadable or corrupt
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._records = {}
            self._next_id = 1
            return
        except OSError as e:
            raise StorageError(f"Failed to read registry {self.path}: {e}") from e

        try:
            data = json.loads(content)
            records, next_id = self._parse(data)
        except (ValueError, KeyError, TypeError) as e:
            raise StorageError(f"Corrupt registry {self.path}: {e}") from e

        self._records = {record.id: record for record in records}
        self._next_id = next_id
        debug(f"Loaded {len(records)} forward(s) from {self.path}")

    def save(self) -> None:
        """Atomically rewrite the registry file.

        Raises:
            StorageError: If the file cannot be written
        """
        payload = {
            "version": SCHEMA_VERSION,
            "next_id": self._next_id,
            "forwards": [record.to_dict() for record in self._records.values()],
        }
        content = json.dumps(payload, indent=2) + "\n"
        temp_path = self.path.with_name(self.path.name + ".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write registry {self.path}: {e}") from e

    def records(self) -> list[ForwardRecord]:
        """Get all records in insertion order."""
        return list(self._records.values())

    def get(self, forward_id: int) -> ForwardRecord:
        """Get a record by id.

        Raises:
            NotFound: If no record has this id
        """
        try:
            return self._records[forward_id]
        except KeyError:
            raise NotFound(forward_id) from None

    def running_ports(self) -> set[int]:
        """Get local ports held by running forwards."""
        return {r.local_port for r in self._records.values() if r.is_running}

    def add(
        self,
        host: str,
        remote_port: int,
        local_port: int,
        requested_port: int,
        process_id: int,
        created_at: datetime | None = None,
    ) -> ForwardRecord:
        """Create a running record and persist it.

        Returns:
            The new record with its assigned id

        Raises:
            ValueError: If a running record already holds local_port
            StorageError: If the registry cannot be written
        """
        self._check_locked()
        if local_port in self.running_ports():
            raise ValueError(f"Local port {local_port} is already held by a running forward")

        record = ForwardRecord(
            id=self._next_id,
            host=host,
            remote_port=remote_port,
            local_port=local_port,
            requested_port=requested_port,
            process_id=process_id,
            status=ForwardStatus.RUNNING,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self._records[record.id] = record
        self._next_id += 1
        try:
            self._commit()
        except StorageError:
            del self._records[record.id]
            self._next_id -= 1
            raise
        return record

    def mark_dead(self, forward_id: int) -> ForwardRecord:
        """Set a record's status to dead and persist it.

        Raises:
            NotFound: If no record has this id
        """
        self._check_locked()
        record = self.get(forward_id)
        if record.status is ForwardStatus.DEAD:
            return record

        dead = replace(record, status=ForwardStatus.DEAD)
        self._records[forward_id] = dead
        self._commit()
        return dead

    def remove(self, forward_id: int) -> ForwardRecord:
        """Delete a record and persist the registry.

        Raises:
            NotFound: If no record has this id
        """
        self._check_locked()
        record = self.get(forward_id)
        del self._records[forward_id]
        self._commit()
        return record

    def _commit(self) -> None:
        self.save()
        debug(f"Saved {len(self._records)} forward(s) to {self.path}")

    def _check_locked(self) -> None:
        if self._lock_file is None:
            raise RuntimeError("Registry must be locked before it is modified")

    def _parse(self, data: Any) -> tuple[list[ForwardRecord], int]:
        if not isinstance(data, dict):
            raise ValueError("top-level value must be an object")
        if data.get("version") != SCHEMA_VERSION:
            raise ValueError(f"unsupported version {data.get('version')!r}")

        records = [ForwardRecord.from_dict(item) for item in data["forwards"]]
        ids = [record.id for record in records]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate forward ids")

        running_ports = [r.local_port for r in records if r.is_running]
        if len(running_ports) != len(set(running_ports)):
            raise ValueError("running forwards share a local port")

        next_id = data.get("next_id", 1)
        if not isinstance(next_id, int):
            raise ValueError(f"next_id must be an integer, got {next_id!r}")
        # Never hand out an id that is still in the file
        return records, max([next_id, *(i + 1 for i in ids)])

    def _acquire(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            lock_file = open(self.lock_path, "a", encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to open lock file {self.lock_path}: {e}") from e

        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    lock_file.close()
                    raise LockTimeout(
                        f"Registry is busy: lock {self.lock_path} held for more "
                        f"than {self.lock_timeout:g}s by another pfm process"
                    ) from None
                time.sleep(LOCK_POLL_INTERVAL)
            except OSError as e:
                lock_file.close()
                raise StorageError(f"Failed to lock {self.lock_path}: {e}") from e

        self._lock_file = lock_file
        debug(f"Acquired registry lock {self.lock_path}")

    def _release(self) -> None:
        lock_file, self._lock_file = self._lock_file, None
        if lock_file is None:
            return
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
        finally:
            lock_file.close()
