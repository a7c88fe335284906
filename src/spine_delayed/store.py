"""
Redis backing store for the delayed schedule.

Manifesto:
    The schedule lives in Redis so any number of worker processes can share
    it. This module is the only place that talks to the ``redis`` client
    directly: it owns the connection, the key namespace, the Lua scripts
    that make pop-and-cleanup atomic, and the translation of
    ``redis.RedisError`` into :class:`StoreUnavailableError`.

Architecture:
    ::

        RedisStore
        ├── client            redis.Redis (decode_responses=True)
        ├── key(*parts)       "<namespace>part1:part2"
        ├── pipeline()        MULTI/EXEC pipeline
        ├── run_script(name)  EVALSHA of a registered Lua script
        └── reconnect()       drop the client, build a fresh one

        Lua scripts (each one atomic on the Redis server):
        ├── pop_and_cleanup     LPOP bucket; if empty: DEL bucket + ZREM index
        └── remove_and_cleanup  LREM bucket; if empty: DEL bucket + ZREM index

Guardrails:
    ❌ DON'T: Check LLEN and ZREM in two client round-trips
    ✅ DO: Run bucket cleanup inside the Lua script, so a concurrent
           enqueue at the same timestamp is never erased from the index

Tags:
    redis, store, lua, atomic, spine-delayed

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar

import redis

from spine_delayed.core.errors import StoreUnavailableError
from spine_delayed.core.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# KEYS[1] = bucket, KEYS[2] = index, ARGV[1] = timestamp member
POP_AND_CLEANUP = """
local item = redis.call('LPOP', KEYS[1])
if redis.call('LLEN', KEYS[1]) == 0 then
    redis.call('DEL', KEYS[1])
    redis.call('ZREM', KEYS[2], ARGV[1])
end
return item
"""

# KEYS[1] = bucket, KEYS[2] = index, ARGV[1] = timestamp member, ARGV[2] = item
REMOVE_AND_CLEANUP = """
local removed = redis.call('LREM', KEYS[1], 0, ARGV[2])
if redis.call('LLEN', KEYS[1]) == 0 then
    redis.call('DEL', KEYS[1])
    redis.call('ZREM', KEYS[2], ARGV[1])
end
return removed
"""

SCRIPTS = {
    "pop_and_cleanup": POP_AND_CLEANUP,
    "remove_and_cleanup": REMOVE_AND_CLEANUP,
}


def store_operation(operation: str) -> Callable[[F], F]:
    """Decorate a method that talks to Redis.

    Any ``redis.RedisError`` raised inside becomes a
    :class:`StoreUnavailableError` carrying ``operation`` in its context.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except redis.RedisError as exc:
                raise StoreUnavailableError(
                    f"Redis operation '{operation}' failed: {exc}",
                    cause=exc,
                ).with_context(operation=operation) from exc

        return wrapper  # type: ignore[return-value]

    return decorator


class RedisStore:
    """Connection holder and key namespace for one Redis database.

    Example:
        store = RedisStore("redis://localhost:6379/0", namespace="resque:")
        store.key("delayed", 1700000000)   # "resque:delayed:1700000000"

    Args:
        url: Redis connection URL.
        namespace: Prefix for every key (php-resque uses ``resque:``).
        client_factory: Builds a new client; defaults to
            ``redis.Redis.from_url(url, decode_responses=True)``. Called
            again on :meth:`reconnect`.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        namespace: str = "resque:",
        client_factory: Callable[[], redis.Redis] | None = None,
    ):
        self.url = url
        self.namespace = namespace
        self._client_factory = client_factory or self._default_factory
        self._client: redis.Redis | None = None
        self._scripts: dict[str, Any] = {}

    @classmethod
    def from_settings(cls, settings: Any) -> RedisStore:
        """Build a store from :class:`~spine_delayed.core.settings.DelayedSettings`."""
        return cls(settings.redis_url, namespace=settings.namespace)

    def _default_factory(self) -> redis.Redis:
        return redis.Redis.from_url(self.url, decode_responses=True)

    # ------------------------------------------------------------------ #
    # Connection
    # ------------------------------------------------------------------ #

    @property
    def client(self) -> redis.Redis:
        """The live client, created on first use."""
        if self._client is None:
            self._client = self._client_factory()
            self._scripts = {
                name: self._client.register_script(source)
                for name, source in SCRIPTS.items()
            }
        return self._client

    def reconnect(self) -> None:
        """Drop the current connection and build a new client.

        The next store call connects again. Worker state is untouched.
        """
        logger.info("store_reconnecting", url=self.url, namespace=self.namespace)
        self.close()
        _ = self.client

    def close(self) -> None:
        """Close the current client, ignoring errors from a dead socket."""
        client, self._client = self._client, None
        self._scripts = {}
        if client is None:
            return
        try:
            client.close()
        except redis.RedisError as exc:
            logger.debug("store_close_failed", error=str(exc))

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def key(self, *parts: Any) -> str:
        """Namespaced key: ``key("delayed", 5)`` → ``"resque:delayed:5"``."""
        return self.namespace + ":".join(str(part) for part in parts)

    def pipeline(self, transaction: bool = True) -> Any:
        """A MULTI/EXEC pipeline on the current client."""
        return self.client.pipeline(transaction=transaction)

    def run_script(self, name: str, keys: list[str], args: list[Any]) -> Any:
        """Run one of the registered Lua scripts atomically."""
        client = self.client
        return self._scripts[name](keys=keys, args=args, client=client)

    def __repr__(self) -> str:
        return f"RedisStore(url={self.url!r}, namespace={self.namespace!r})"


__all__ = ["RedisStore", "SCRIPTS", "store_operation"]
