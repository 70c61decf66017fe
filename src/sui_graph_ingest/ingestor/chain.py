"""Sui full node JSON-RPC client with rate limiting, retry and caching.

This module provides a Sui client for checkpoint and transaction lookups with:
- Redis caching of immutable checkpoint/transaction payloads
- Retry logic with exponential backoff on transport errors
- Rate limiting to respect full node limits
- Failover to a secondary RPC URL

Explicit JSON-RPC ``error`` responses are never retried: the node answered,
and asking again will not change the answer.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, cast

import aiohttp
from redis.asyncio import Redis
from web3.exceptions import Web3Exception
from web3.providers import AsyncHTTPProvider
from web3.types import RPCEndpoint

from sui_graph_ingest.ingestor.models import Checkpoint, mist_to_sui, to_rpc_address

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CACHE_TTL_SECONDS = 3600  # checkpoints and executed transactions are immutable
DEFAULT_MAX_REQUESTS_PER_SECOND = 10
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0

PACKAGE_STRUCT_TYPE = "0x2::package::Package"

_TRANSPORT_ERRORS: tuple[type[Exception], ...] = (
    Web3Exception,
    aiohttp.ClientError,
    TimeoutError,
    OSError,
    ValueError,
)


class SuiClientError(Exception):
    """Base exception for Sui client errors."""


class RpcError(SuiClientError):
    """Raised when a remote call fails or returns malformed data."""

    def __init__(self, method: str, cause: object) -> None:
        super().__init__(f"{method} failed: {cause}")
        self.method = method
        self.cause = cause


class _RemoteError(Exception):
    """The node answered with an explicit JSON-RPC error object."""

    def __init__(self, error: object) -> None:
        super().__init__(json.dumps(error, default=str))
        self.error = error


@dataclass
class RateLimiter:
    """Token bucket rate limiter."""

    max_tokens: float
    refill_rate: float  # tokens per second
    tokens: float
    last_refill: float

    @classmethod
    def create(cls, max_requests_per_second: float) -> RateLimiter:
        """Create a rate limiter with specified max requests per second."""
        return cls(
            max_tokens=max_requests_per_second,
            refill_rate=max_requests_per_second,
            tokens=max_requests_per_second,
            last_refill=time.monotonic(),
        )

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    async def acquire(self, tokens: float = 1.0) -> None:
        """Acquire tokens, waiting if necessary."""
        while True:
            self._refill()
            if self.tokens >= tokens:
                self.tokens -= tokens
                return
            wait_time = (tokens - self.tokens) / self.refill_rate
            await asyncio.sleep(wait_time)


class SuiClient:
    """Sui JSON-RPC client with caching and rate limiting.

    Example:
        ```python
        client = SuiClient("https://fullnode.mainnet.sui.io:443")
        latest = await client.latest_checkpoint()
        checkpoint = await client.get_checkpoint(latest)
        for digest in checkpoint.transaction_digests:
            tx = await client.get_transaction_block(digest)
        await client.aclose()
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        fallback_rpc_url: str | None = None,
        redis: Redis | None = None,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        """Initialize the Sui client.

        Args:
            rpc_url: Primary full node JSON-RPC endpoint URL.
            fallback_rpc_url: Optional fallback RPC URL for failover.
            redis: Optional Redis client for caching.
            cache_ttl_seconds: Cache TTL in seconds.
            max_requests_per_second: Rate limit for RPC calls.
            max_retries: Maximum attempts per endpoint on transport errors.
            retry_delay_seconds: Initial delay between retries.
        """
        self._rpc_url = rpc_url
        self._fallback_rpc_url = fallback_rpc_url
        self._redis = redis
        self._cache_ttl = cache_ttl_seconds
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay_seconds

        self._provider = AsyncHTTPProvider(rpc_url)
        self._fallback_provider: AsyncHTTPProvider | None = None
        if fallback_rpc_url:
            self._fallback_provider = AsyncHTTPProvider(fallback_rpc_url)

        self._rate_limiter = RateLimiter.create(max_requests_per_second)

        # Track primary RPC health
        self._primary_healthy = True
        self._last_primary_check = 0.0
        self._primary_recovery_interval = 60.0

        self._cache_prefix = "sui:"

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def _get_cached(self, key: str) -> Any | None:
        if not self._redis:
            return None
        try:
            value = await self._redis.get(key)
            if value is None:
                return None
            return json.loads(value.decode() if isinstance(value, bytes) else value)
        except Exception as e:
            logger.warning("Cache get failed: %s", e)
            return None

    async def _set_cached(self, key: str, value: Any) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value), ex=self._cache_ttl)
        except Exception as e:
            logger.warning("Cache set failed: %s", e)

    def _should_try_primary(self) -> bool:
        if self._primary_healthy or self._fallback_provider is None:
            return True
        now = time.monotonic()
        if now - self._last_primary_check > self._primary_recovery_interval:
            self._last_primary_check = now
            return True
        return False

    async def _call_provider(
        self,
        provider: AsyncHTTPProvider,
        method: str,
        params: list[Any],
        *,
        label: str,
    ) -> Any:
        delay = self._retry_delay
        last_error: Exception | None = None
        for attempt in range(self._max_retries):
            try:
                response = await provider.make_request(RPCEndpoint(method), params)
            except _TRANSPORT_ERRORS as e:
                last_error = e
                logger.warning(
                    "%s RPC %s failed (attempt %d/%d): %s",
                    label,
                    method,
                    attempt + 1,
                    self._max_retries,
                    e,
                )
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(delay)
                    delay *= 2  # Exponential backoff
                continue

            error = response.get("error")
            if error:
                raise _RemoteError(error)
            if "result" not in response:
                raise _RemoteError({"message": "response carries neither result nor error"})
            return response["result"]

        assert last_error is not None
        raise last_error

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """Issue one JSON-RPC call with retry and failover.

        Args:
            method: JSON-RPC method name.
            params: Positional parameters.

        Returns:
            The ``result`` member of the response.

        Raises:
            RpcError: If the node returns an error object, or every attempt
                against every endpoint fails at the transport level.
        """
        await self._rate_limiter.acquire()
        params = params or []
        last_error: Exception | None = None

        if self._should_try_primary():
            try:
                result = await self._call_provider(self._provider, method, params, label="Primary")
                self._primary_healthy = True
                return result
            except _RemoteError as e:
                raise RpcError(method, e) from e
            except _TRANSPORT_ERRORS as e:
                last_error = e
                self._primary_healthy = False
                self._last_primary_check = time.monotonic()

        if self._fallback_provider is not None:
            try:
                result = await self._call_provider(
                    self._fallback_provider, method, params, label="Fallback"
                )
                logger.info("Fallback RPC succeeded for %s", method)
                return result
            except _RemoteError as e:
                raise RpcError(method, e) from e
            except _TRANSPORT_ERRORS as e:
                last_error = e

        raise RpcError(method, f"failed after all retries: {last_error}") from last_error

    async def latest_checkpoint(self) -> int:
        """Get the sequence number of the most recent checkpoint."""
        method = "sui_getLatestCheckpointSequenceNumber"
        result = await self.call(method)
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise RpcError(method, f"malformed sequence number {result!r}") from e

    async def get_checkpoint(self, sequence_number: int) -> Checkpoint:
        """Get a checkpoint's timestamp and transaction digests."""
        if sequence_number < 0:
            raise ValueError("sequence_number must be >= 0")
        method = "sui_getCheckpoint"
        cache_key = f"{self._cache_prefix}checkpoint:{sequence_number}"

        raw = await self._get_cached(cache_key)
        if raw is None:
            raw = await self.call(method, [str(sequence_number)])
            if not isinstance(raw, dict):
                raise RpcError(method, f"unexpected result type {type(raw).__name__}")
            await self._set_cached(cache_key, raw)

        try:
            return Checkpoint.from_rpc(cast(dict[str, Any], raw))
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(method, f"malformed checkpoint {sequence_number}: {e}") from e

    async def get_transaction_block(self, digest: str) -> dict[str, Any]:
        """Get a decoded transaction with its input and effects."""
        method = "sui_getTransactionBlock"
        cache_key = f"{self._cache_prefix}tx:{digest}"

        cached = await self._get_cached(cache_key)
        if cached is not None:
            return cast(dict[str, Any], cached)

        result = await self.call(
            method,
            [digest, {"showInput": True, "showRawInput": False, "showEffects": True}],
        )
        if not isinstance(result, dict):
            raise RpcError(method, f"unexpected result type {type(result).__name__}")
        await self._set_cached(cache_key, result)
        return result

    async def get_balance(self, address: str) -> Decimal:
        """Get an address's total SUI balance (in SUI, not MIST)."""
        method = "suix_getBalance"
        result = await self.call(method, [to_rpc_address(address)])
        try:
            return mist_to_sui(result["totalBalance"])
        except (KeyError, TypeError, ArithmeticError) as e:
            raise RpcError(method, f"malformed balance {result!r}") from e

    async def get_owned_objects_count(self, address: str) -> int:
        """Count objects on the first page of an address's owned objects."""
        method = "suix_getOwnedObjects"
        result = await self.call(
            method,
            [
                to_rpc_address(address),
                {"options": {"showType": True, "showOwner": False, "showContent": False}},
            ],
        )
        data = result.get("data") if isinstance(result, dict) else None
        if data is None:
            return 0
        if not isinstance(data, list):
            raise RpcError(method, "owned objects page is not a list")
        return len(data)

    async def is_contract(self, address: str) -> bool:
        """Check whether an address owns any published Move package objects."""
        method = "suix_getOwnedObjects"
        result = await self.call(
            method,
            [
                to_rpc_address(address),
                {"filter": {"StructType": PACKAGE_STRUCT_TYPE}, "options": {"showType": True}},
            ],
        )
        data = result.get("data") if isinstance(result, dict) else None
        return bool(data)

    async def health_check(self) -> bool:
        """Check if the client can reach the node."""
        try:
            await self.latest_checkpoint()
            return True
        except RpcError:
            return False

    async def aclose(self) -> None:
        """Close async HTTP provider sessions to avoid leaked aiohttp sessions."""
        providers = [self._provider]
        if self._fallback_provider is not None:
            providers.append(self._fallback_provider)

        for provider in providers:
            disconnect = getattr(provider, "disconnect", None)
            if not callable(disconnect):
                continue
            try:
                result = disconnect()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Failed to close RPC provider session: %s", e)
