"""Media group cache.

Telegram splits an album (several photos or files sent together) into
separate messages sharing one ``media_group_id``. The cache makes sure the
whole album produces a single memo: the first message creates it, every
other message of the group gets the same memo back.

Entries expire after a fixed TTL. A background sweep deletes expired
entries; reads also check expiry so a stale entry is never returned.

Usage:
    async with GroupCache() as cache:
        memo = await cache.get_or_create(group_id, create_memo)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("memogram.cache")

DEFAULT_TTL = 24 * 60 * 60
DEFAULT_SWEEP_INTERVAL = 5 * 60


@dataclass(frozen=True)
class GroupEntry:
    key: str
    value: Any
    expires_at: float


class GroupCache:
    """Time-bounded cache keyed by media group id with single creation."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the cache.

        Args:
            ttl: Default lifetime of an entry, in seconds
            sweep_interval: Seconds between background sweeps
            clock: Monotonic time source (injectable for tests)
        """
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, GroupEntry] = {}
        # Per-key locks live only while some caller is inside get_or_create
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self._task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for e in self._entries.values() if e.expires_at > now)

    def __contains__(self, key: str) -> bool:
        return self._live(key) is not None

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *exc):
        await self.stop()

    # ── Lookup ───────────────────────────────────────────────

    def _live(self, key: str) -> Optional[GroupEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            return None
        return entry

    def get(self, key: str) -> Any:
        """Return the cached value, or None if absent or expired."""
        entry = self._live(key)
        return entry.value if entry else None

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        """Insert ``value`` unless a live entry already holds the key.

        Returns the value stored for the key, which is the existing one if
        the key is already taken.
        """
        entry = self._live(key)
        if entry is not None:
            return entry.value
        self._insert(key, value, ttl)
        return value

    def _insert(self, key: str, value: Any, ttl: Optional[float]):
        ttl = self.ttl if ttl is None else ttl
        self._entries[key] = GroupEntry(key=key, value=value, expires_at=self._clock() + ttl)

    async def get_or_create(
        self,
        key: str,
        create: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Return the value for ``key``, creating it with ``create`` if absent.

        Concurrent callers with the same key wait on one per-key lock, so
        ``create`` runs at most once per entry lifetime. If it raises,
        nothing is cached and the exception reaches this caller.
        """
        entry = self._live(key)
        if entry is not None:
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                entry = self._live(key)
                if entry is not None:
                    return entry.value
                value = await create()
                self._insert(key, value, ttl)
                logger.debug(f"Media group {key} cached")
                return value
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                del self._locks[key]

    # ── Expiry ───────────────────────────────────────────────

    def delete_expired(self) -> int:
        """Remove expired entries. Returns the number removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired media group(s)")
        return len(expired)

    def start(self):
        """Start the background sweep task."""
        if self._task and not self._task.done():
            logger.warning("Group cache sweep already running")
            return
        self._task = asyncio.create_task(self._sweep_loop())

    async def stop(self):
        """Stop the background sweep task."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _sweep_loop(self):
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.delete_expired()
            except Exception as e:
                logger.error(f"Group cache sweep error: {e}", exc_info=True)
