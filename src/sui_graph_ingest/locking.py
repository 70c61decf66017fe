"""Run-level mutual exclusion.

A run drops and rebuilds the whole graph space, so two runs against one store
must never overlap. Within a process an ``asyncio.Lock`` guards the run; when
Redis is configured a ``SET NX EX`` key extends the guard across processes.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from types import TracebackType

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

RUN_LOCK_KEY_PREFIX = "sui_graph_ingest:run_lock:"
DEFAULT_TTL_SECONDS = 6 * 60 * 60

# Deletes the key only if this holder still owns it.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RunInProgressError(RuntimeError):
    """Raised when another ingestion run already holds the lock."""


class RunLock:
    """Non-blocking lock around one ingestion run per graph space.

    Example:
        ```python
        lock = RunLock("sui_analysis", redis=redis)
        async with lock:
            ...  # RunInProgressError if another run is active
        ```
    """

    def __init__(
        self,
        name: str,
        *,
        redis: Redis | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._key = f"{RUN_LOCK_KEY_PREFIX}{name}"
        self._redis = redis
        self._ttl = ttl_seconds
        self._local = asyncio.Lock()
        self._token: str | None = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def locked(self) -> bool:
        return self._local.locked()

    async def acquire(self) -> None:
        """Take the lock without waiting.

        Raises:
            RunInProgressError: If a run is already active in this process
                or, with Redis configured, in any process.
        """
        if self._local.locked():
            raise RunInProgressError("an ingestion run is already in progress")
        await self._local.acquire()

        if self._redis is None:
            return
        token = uuid.uuid4().hex
        try:
            acquired = await self._redis.set(self._key, token, nx=True, ex=self._ttl)
        except RedisError:
            self._local.release()
            raise
        if not acquired:
            self._local.release()
            raise RunInProgressError(f"an ingestion run is already in progress ({self._key})")
        self._token = token

    async def release(self) -> None:
        if not self._local.locked():
            return
        try:
            if self._redis is not None and self._token is not None:
                try:
                    await self._redis.eval(_RELEASE_SCRIPT, 1, self._key, self._token)
                except RedisError as e:
                    logger.warning("Failed to release run lock %s: %s", self._key, e)
        finally:
            self._token = None
            self._local.release()

    async def __aenter__(self) -> RunLock:
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.release()
