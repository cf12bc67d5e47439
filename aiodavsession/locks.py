"""Locks held by a session."""

from collections.abc import Iterator
import logging
import threading

from .client import Client, is_success
from .models import LockTimeout, LockToken

log = logging.getLogger(__name__)


class PermanentLock:
    """A lock acquired by a session, bound to its lock root."""

    def __init__(
        self,
        client: Client,
        lock_token: LockToken,
        lock_root: str,
        timeout: LockTimeout | None = None,
    ) -> None:
        """A lock acquired by a session, bound to its lock root."""
        self.client = client
        self.lock_token = lock_token
        self.lock_root = lock_root
        self.timeout = timeout

    def __repr__(self) -> str:
        """Return the representation of the lock."""
        return f"PermanentLock({self.lock_root!r}, {self.lock_token.href!r})"

    async def unlock(self) -> bool:
        """Unlock the locked resource.

        :return: True if the server released the lock.
        """
        response = await self.client.unlock(self.lock_root, self.lock_token)
        response.release()
        return is_success(response)


class LockTable:
    """Locks of a session keyed by lock root.

    Insertion never overwrites an existing entry. The table may be shared by
    concurrent tasks and threads.
    """

    def __init__(self) -> None:
        """Locks of a session keyed by lock root."""
        self._locks: dict[str, PermanentLock] = {}
        self._lock = threading.Lock()

    def try_add(self, lock_root: str, permanent_lock: PermanentLock) -> bool:
        """Add a lock, return False if the lock root is already present."""
        with self._lock:
            if lock_root in self._locks:
                return False
            self._locks[lock_root] = permanent_lock
        log.debug("Registered lock %s", lock_root)
        return True

    def try_remove(self, lock_root: str) -> PermanentLock | None:
        """Remove and return a lock, None if the lock root is not present."""
        with self._lock:
            permanent_lock = self._locks.pop(lock_root, None)
        if permanent_lock is not None:
            log.debug("Removed lock %s", lock_root)
        return permanent_lock

    def get(self, lock_root: str) -> PermanentLock | None:
        """Return the lock of a lock root."""
        with self._lock:
            return self._locks.get(lock_root)

    def items(self) -> list[tuple[str, PermanentLock]]:
        """Return a snapshot of the locks."""
        with self._lock:
            return list(self._locks.items())

    def __contains__(self, lock_root: object) -> bool:
        """Return True if a lock is held for the lock root."""
        with self._lock:
            return lock_root in self._locks

    def __iter__(self) -> Iterator[str]:
        """Iterate over a snapshot of the lock roots."""
        return iter([lock_root for lock_root, _ in self.items()])

    def __len__(self) -> int:
        """Return the number of locks."""
        with self._lock:
            return len(self._locks)
