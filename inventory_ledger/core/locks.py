"""
Per-key async locks for ledger serialization

Adjustments on the same ledger key (product, or product + variant) run one at
a time inside this process; different keys never share a lock. Cross-process
safety comes from the row lock and version check in the adjustment service.

Lock entries are reference counted and dropped once nobody holds or waits on
them, so the registry does not grow with the catalog.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, Hashable, Optional

logger = logging.getLogger(__name__)


class LockTimeout(Exception):
    """Raised when a keyed lock could not be acquired in time."""

    def __init__(self, key: Hashable, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout:.1f}s waiting for lock {key!r}")


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedLock:
    """Mapping of key -> asyncio.Lock with automatic cleanup."""

    def __init__(self):
        self._entries: Dict[Hashable, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def locked(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.lock.locked())

    @asynccontextmanager
    async def hold(self, key: Hashable, timeout: Optional[float] = None):
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.users += 1
        try:
            try:
                if timeout is None:
                    await entry.lock.acquire()
                else:
                    await asyncio.wait_for(entry.lock.acquire(), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Lock wait timed out for {key!r} after {timeout}s")
                raise LockTimeout(key, timeout)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]
