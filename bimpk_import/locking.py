"""Advisory lock files that serialize imports of the same source file."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from bimpk_import.errors import ImportInProgressError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 3600  # 1 hour in seconds

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass
class ImportLock:
    """Information about an import holding a source file."""

    file_id: str
    owner: str
    timestamp: float
    timeout: float = DEFAULT_LOCK_TIMEOUT

    @property
    def is_expired(self) -> bool:
        return (time.time() - self.timestamp) > self.timeout

    def to_dict(self) -> dict:
        return {
            "file_id": self.file_id,
            "owner": self.owner,
            "timestamp": self.timestamp,
            "timeout": self.timeout,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ImportLock:
        return cls(
            file_id=data["file_id"],
            owner=data["owner"],
            timestamp=data.get("timestamp", 0),
            timeout=data.get("timeout", DEFAULT_LOCK_TIMEOUT),
        )


class ImportLockManager:
    """Hold one lock file per source file id while an import runs.

    Locks are created with an exclusive open, so two processes sharing
    *lock_dir* cannot both acquire the same file id.  A lock older than
    *timeout* seconds is treated as stale and replaced.

    Parameters
    ----------
    lock_dir:
        Directory holding the ``<file id>.lock`` files.
    timeout:
        Lock timeout in seconds.
    """

    def __init__(
        self,
        lock_dir: str | Path,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        self.lock_dir = Path(lock_dir)
        self.timeout = timeout

    def acquire(self, file_id: str, owner: str) -> ImportLock:
        """Take the lock for *file_id*.

        Raises
        ------
        ImportInProgressError
            If a live lock is held for the same file id.
        """
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock_path = self._lock_path(file_id)
        lock = ImportLock(
            file_id=file_id, owner=owner, timestamp=time.time(), timeout=self.timeout
        )

        for _ in range(2):
            try:
                fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                existing = self.is_locked(file_id)
                if existing is not None:
                    raise ImportInProgressError(
                        f"Source file '{file_id}' is being imported by '{existing.owner}'."
                    ) from None
                continue
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(lock.to_dict(), fh, indent=2)
            logger.info("Locked source file %s for %s", file_id, owner)
            return lock

        raise ImportInProgressError(f"Could not acquire the import lock for '{file_id}'.")

    def release(self, file_id: str) -> bool:
        """Remove the lock for *file_id*. Returns True if a lock was removed."""
        lock_path = self._lock_path(file_id)
        if not lock_path.is_file():
            return False
        lock_path.unlink(missing_ok=True)
        logger.info("Unlocked source file %s", file_id)
        return True

    def is_locked(self, file_id: str) -> ImportLock | None:
        """Return the live lock for *file_id*, or None.

        Stale and corrupted lock files are removed.
        """
        lock_path = self._lock_path(file_id)
        if not lock_path.is_file():
            return None

        try:
            data = json.loads(lock_path.read_text(encoding="utf-8"))
            lock = ImportLock.from_dict(data)
        except (json.JSONDecodeError, OSError, KeyError):
            lock_path.unlink(missing_ok=True)
            return None

        if lock.is_expired:
            logger.info(
                "Auto-expiring stale import lock on %s (held by %s)",
                file_id, lock.owner,
            )
            lock_path.unlink(missing_ok=True)
            return None

        return lock

    @contextmanager
    def hold(self, file_id: str, owner: str) -> Iterator[ImportLock]:
        """Hold the lock for the duration of a ``with`` block."""
        lock = self.acquire(file_id, owner)
        try:
            yield lock
        finally:
            self.release(file_id)

    def _lock_path(self, file_id: str) -> Path:
        return self.lock_dir / f"{_UNSAFE.sub('_', file_id)}.lock"
