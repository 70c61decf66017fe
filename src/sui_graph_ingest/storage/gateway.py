"""HTTP gateway client for NebulaGraph.

The gateway accepts ``POST /query`` with ``{"query": "<nGQL>"}`` and answers
``{"success": true, "data": {...}}`` or ``{"success": false, "error": "..."}``.
Result data is column-oriented: ``{"column": [value, ...], ...}``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 0.5


class StoreError(Exception):
    """Base exception for graph store errors."""


class StoreTransportError(StoreError):
    """Raised when the gateway cannot be reached."""


class StoreQueryError(StoreError):
    """Raised when the gateway rejects or fails a statement."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class QueryResult:
    """Tabular result of one statement."""

    columns: tuple[str, ...] = ()
    rows: tuple[tuple[Any, ...], ...] = field(default_factory=tuple)

    @classmethod
    def from_gateway(cls, data: Any) -> QueryResult:
        """Build from the gateway's column-oriented ``data`` member.

        Raises:
            StoreQueryError: If ``data`` is neither empty nor a column map.
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise StoreQueryError(f"unexpected result shape: {type(data).__name__}")
        columns = tuple(str(c) for c in data)
        values = [v if isinstance(v, list) else [v] for v in data.values()]
        height = max((len(v) for v in values), default=0)
        rows = tuple(
            tuple(col[i] if i < len(col) else None for col in values) for i in range(height)
        )
        return cls(columns=columns, rows=rows)

    def column(self, name: str) -> list[Any]:
        index = self.columns.index(name)
        return [row[index] for row in self.rows]

    def scalar(self, default: Any = None) -> Any:
        """First value of the first row, or ``default`` for an empty result."""
        if not self.rows or not self.rows[0]:
            return default
        return self.rows[0][0]

    def as_dicts(self) -> list[dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self.rows]


class NebulaGatewayClient:
    """Executes nGQL statements through the HTTP gateway.

    Transport failures are retried with exponential backoff; statement
    failures reported by the gateway are not.
    """

    def __init__(
        self,
        gateway_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._gateway_url = gateway_url.rstrip("/")
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay_seconds
        self._client = httpx.AsyncClient(
            base_url=self._gateway_url,
            timeout=timeout_seconds,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            transport=transport,
        )

    @property
    def gateway_url(self) -> str:
        return self._gateway_url

    async def _post(self, query: str) -> httpx.Response:
        delay = self._retry_delay
        last_error: httpx.TransportError | None = None
        for attempt in range(self._max_retries):
            try:
                return await self._client.post("/query", json={"query": query})
            except httpx.TransportError as e:
                last_error = e
                logger.warning(
                    "Gateway request failed (attempt %d/%d): %s",
                    attempt + 1,
                    self._max_retries,
                    e,
                )
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(delay)
                    delay *= 2
        raise StoreTransportError(
            f"gateway {self._gateway_url} unreachable after {self._max_retries} attempts: {last_error}"
        ) from last_error

    async def execute(self, query: str) -> QueryResult:
        """Run one nGQL statement.

        Raises:
            StoreTransportError: If the gateway cannot be reached.
            StoreQueryError: On a non-2xx answer or ``success: false``.
        """
        response = await self._post(query)
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            detail = payload.get("error") if isinstance(payload, dict) else response.text
            raise StoreQueryError(
                f"gateway request failed: {response.status_code} - {detail}",
                status_code=response.status_code,
            )
        if not isinstance(payload, dict):
            raise StoreQueryError("gateway answered with a non-JSON body")
        if not payload.get("success"):
            raise StoreQueryError(str(payload.get("error") or "Query failed"))
        return QueryResult.from_gateway(payload.get("data"))

    async def health_check(self) -> bool:
        try:
            response = await self._client.get("/health")
        except httpx.TransportError as e:
            logger.warning("Gateway health check failed: %s", e)
            return False
        return response.is_success

    async def aclose(self) -> None:
        await self._client.aclose()
