"""Pluggable session storage backends.

The authorization flow only needs get/set/delete by key on the current
browser session (it stores the ``state`` nonce there). Provides the
SessionStore ABC and in-memory, mapping-backed, and Redis-backed stores.
"""

from __future__ import annotations

import asyncio
import threading
import time

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import MutableMapping


class SessionStore(ABC):
    """Abstract key/value store scoped to one browser session.

    All methods are async to support both local and network-backed stores.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Get the value stored under ``key``.

        Parameters
        ----------
        key : str
            The session key.

        Returns
        -------
        str or None
            The stored value, or None if absent or expired.
        """

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``.

        Parameters
        ----------
        key : str
            The session key.
        value : str
            The value to store.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` from the session. Missing keys are ignored."""


class MemorySessionStore(SessionStore):
    """In-memory session store for development and single-process use.

    Thread-safe via asyncio.Lock. Entries older than ``ttl`` seconds are
    treated as absent.

    Parameters
    ----------
    ttl : float, optional
        Maximum age of an entry in seconds (None for no expiry).
    """

    def __init__(self, ttl: float | None = None) -> None:
        """Initialize the memory session store."""
        self._data: dict[str, tuple[str, float]] = {}
        self._lock = asyncio.Lock()
        self._ttl = ttl

    def _expired(self, created_at: float) -> bool:
        return self._ttl is not None and time.time() - created_at > self._ttl

    async def get(self, key: str) -> str | None:
        """Get a value from memory."""
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, created_at = entry
            if self._expired(created_at):
                del self._data[key]
                return None
            return value

    async def set(self, key: str, value: str) -> None:
        """Store a value in memory."""
        async with self._lock:
            self._data[key] = (value, time.time())

    async def delete(self, key: str) -> None:
        """Delete a value from memory."""
        async with self._lock:
            self._data.pop(key, None)


class MemorySessionRegistry:
    """Per-browser-session ``MemorySessionStore`` instances, keyed by id.

    Bounded: when ``max_sessions`` is reached the least recently used
    session is dropped.

    Parameters
    ----------
    max_sessions : int
        Maximum number of sessions kept (default 1000).
    ttl : float
        Entry lifetime passed to each store (default 600 seconds).
    """

    def __init__(self, max_sessions: int = 1000, ttl: float = 600.0) -> None:
        self._stores: OrderedDict[str, MemorySessionStore] = OrderedDict()
        self._lock = threading.Lock()
        self._max_sessions = max_sessions
        self._ttl = ttl

    def __call__(self, session_id: str) -> MemorySessionStore:
        """Get or create the store for ``session_id``."""
        with self._lock:
            store = self._stores.get(session_id)
            if store is None:
                if len(self._stores) >= self._max_sessions:
                    self._stores.popitem(last=False)
                store = MemorySessionStore(ttl=self._ttl)
                self._stores[session_id] = store
            else:
                self._stores.move_to_end(session_id)
            return store

    def __len__(self) -> int:
        with self._lock:
            return len(self._stores)


class DictSessionStore(SessionStore):
    """Adapter over any mutable mapping.

    Wraps framework sessions such as Starlette's ``request.session`` so
    they can be passed to the authorization flow.

    Parameters
    ----------
    mapping : MutableMapping
        The backing session mapping.
    """

    def __init__(self, mapping: MutableMapping[str, Any]) -> None:
        self._mapping = mapping

    async def get(self, key: str) -> str | None:
        """Get a value from the mapping."""
        value = self._mapping.get(key)
        return None if value is None else str(value)

    async def set(self, key: str, value: str) -> None:
        """Store a value in the mapping."""
        self._mapping[key] = value

    async def delete(self, key: str) -> None:
        """Remove a value from the mapping."""
        self._mapping.pop(key, None)


class RedisSessionStore(SessionStore):
    """Redis-backed session store for multi-worker deployments.

    Keys are namespaced per session id; every write carries a TTL so an
    abandoned authorization attempt does not leave state behind.

    Parameters
    ----------
    session_id : str
        Identifier of the browser session (e.g. a cookie value).
    redis_url : str
        Redis connection URL.
    prefix : str
        Key prefix for namespacing (default "pysocialite").
    ttl : int
        Entry lifetime in seconds (default 600).
    client : Any, optional
        An existing ``redis.asyncio.Redis`` client to share a pool.
    """

    def __init__(
        self,
        session_id: str,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "pysocialite",
        ttl: int = 600,
        client: Any | None = None,
    ) -> None:
        """Initialize the Redis session store."""
        if client is None:
            try:
                from redis.asyncio import Redis as RedisClient
            except ImportError:
                msg = "Redis backend requires the 'redis' package. Install with: pip install redis"
                raise ImportError(msg) from None
            client = RedisClient.from_url(redis_url, decode_responses=True)

        self._redis: Any = client
        self._session_id = session_id
        self._prefix = prefix
        self._ttl = ttl

    def _key(self, key: str) -> str:
        """Build a Redis key with prefix."""
        return f"{self._prefix}:session:{self._session_id}:{key}"

    async def get(self, key: str) -> str | None:
        """Get a value from Redis."""
        value = await self._redis.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value  # type: ignore[no-any-return]

    async def set(self, key: str, value: str) -> None:
        """Store a value in Redis with TTL."""
        await self._redis.setex(self._key(key), self._ttl, value)

    async def delete(self, key: str) -> None:
        """Delete a value from Redis."""
        await self._redis.delete(self._key(key))
