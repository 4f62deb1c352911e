"""Hyperliquid info API adapter for metric and token price values."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any

import httpx
from structlog import get_logger

from market_resolver.domain.markets import ExtremumDirection, SubjectKind
from market_resolver.errors import DataSourceError

logger = get_logger(__name__)


@dataclass(slots=True)
class CachedValue:
    value: Decimal
    expires_at: float


class HyperliquidDataSource:
    """Posts typed JSON queries to the info endpoint and returns fixed-point integers.

    The API answers in natural units. Every value is scaled by ``10**decimals``
    of the asking market: token prices are floored to that precision, metric
    values must be exact at it.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        cache_ttl_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            base_url: Full URL of the info endpoint; every query is a POST to it.
            timeout: Request timeout in seconds.
            cache_ttl_seconds: Lifetime of cached responses; 0 disables caching.
            client: Optional pre-built client (tests, shared pools).
        """
        self.base_url = base_url
        self.timeout = timeout
        self.cache_ttl_seconds = cache_ttl_seconds
        self._client = client
        self._client_provided = client is not None
        self._cache: dict[str, CachedValue] = {}

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        return self._client

    async def snapshot_value(
        self, identifier: str, at_time: int, *, subject: SubjectKind, decimals: int
    ) -> int:
        if subject is SubjectKind.TOKEN_PRICE:
            body = {"type": "tokenPrice", "token": identifier, "timestamp": at_time}
            return _scale_price(await self._fetch(body, "price"), decimals)

        body = {"type": "metrics", "metricId": identifier, "timestamp": at_time}
        return _scale_metric(await self._fetch(body, "value"), decimals, body["type"])

    async def time_average_value(
        self, identifier: str, start: int, end: int, *, subject: SubjectKind, decimals: int
    ) -> int:
        body = {
            "type": "tokenPriceAverage" if subject is SubjectKind.TOKEN_PRICE else "metricAverage",
            "metricId": identifier,
            "startTime": start,
            "endTime": end,
        }
        return self._scale(subject, await self._fetch(body, "average"), decimals, body["type"])

    async def extremum_value(
        self,
        identifier: str,
        start: int,
        end: int,
        direction: ExtremumDirection,
        *,
        subject: SubjectKind,
        decimals: int,
    ) -> int:
        body = {
            "type": "tokenPriceExtremum" if subject is SubjectKind.TOKEN_PRICE else "metricExtremum",
            "metricId": identifier,
            "startTime": start,
            "endTime": end,
            "extremumType": direction.value,
        }
        return self._scale(subject, await self._fetch(body, "value"), decimals, body["type"])

    @staticmethod
    def _scale(subject: SubjectKind, raw: Decimal, decimals: int, query: str) -> int:
        if subject is SubjectKind.TOKEN_PRICE:
            return _scale_price(raw, decimals)
        return _scale_metric(raw, decimals, query)

    async def _fetch(self, body: dict[str, Any], key: str) -> Decimal:
        """POST ``body`` and return the decimal at ``key``; responses are cached per body."""

        cache_key = json.dumps(body, sort_keys=True)
        cached = self._cache.get(cache_key)
        if cached is not None and cached.expires_at > time.monotonic():
            logger.debug("data_source_cache_hit", query=body["type"])
            return cached.value

        client = await self._ensure_client()
        try:
            response = await client.post(self.base_url, json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            logger.warning("data_source_request_failed", query=body["type"], error=str(exc))
            raise DataSourceError(f"{body['type']} query failed: {exc}") from exc
        except ValueError as exc:
            raise DataSourceError(f"{body['type']} returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise DataSourceError(f"{body['type']} returned unexpected payload: {payload!r}")

        value = _decimal_field(payload, key)
        if self.cache_ttl_seconds > 0:
            self._cache[cache_key] = CachedValue(
                value=value,
                expires_at=time.monotonic() + self.cache_ttl_seconds,
            )
        return value

    async def close(self) -> None:
        """Dispose the underlying HTTP client if owned by the adapter."""
        if self._client is not None and not self._client_provided:
            await self._client.aclose()
            self._client = None
        logger.info("data_source_closed")


def _decimal_field(payload: dict[str, Any], key: str) -> Decimal:
    raw = payload.get(key)
    try:
        value = Decimal(str(raw))
    except InvalidOperation as exc:
        raise DataSourceError(f"response has no usable '{key}': {raw!r}") from exc
    if not value.is_finite():
        raise DataSourceError(f"response has non-finite '{key}': {raw!r}")
    return value


def _scale_price(raw: Decimal, decimals: int) -> int:
    return int(raw.scaleb(decimals).to_integral_value(rounding=ROUND_FLOOR))


def _scale_metric(raw: Decimal, decimals: int, query: str) -> int:
    scaled = raw.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise DataSourceError(f"{query} value {raw} is not exact at {decimals} decimals")
    return int(scaled)


__all__ = ["HyperliquidDataSource"]
