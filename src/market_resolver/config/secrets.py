"""Signing-key and webhook-secret lookup with AWS Secrets Manager and .env fallback."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

logger = structlog.get_logger(__name__)


class SecretNotFoundError(RuntimeError):
    """Raised when a requested secret cannot be loaded from any source."""


@dataclass(slots=True)
class CachedSecret:
    """Cached secret payload with expiry metadata."""

    value: str
    expires_at: float


class SecretsManager:
    """Fetch secrets from AWS Secrets Manager when a region is set, else the environment."""

    def __init__(
        self,
        *,
        region: str | None,
        prefix: str = "",
        cache_ttl_seconds: int = 300,
    ) -> None:
        self._prefix = prefix if not prefix or prefix.endswith("/") else prefix + "/"
        self._cache_ttl = max(cache_ttl_seconds, 1)
        self._cache: dict[str, CachedSecret] = {}
        self._logger = logger.bind(component="secrets_manager")
        self._client: Any | None = None

        load_dotenv(override=False)

        if region:
            try:
                self._client = boto3.client("secretsmanager", region_name=region)
            except (BotoCoreError, ClientError) as exc:
                self._logger.warning(
                    "secretsmanager_initialization_failed",
                    error=str(exc),
                    region=region,
                )

    def get_secret(
        self,
        name: str,
        *,
        default: str | None = None,
        raise_on_missing: bool = False,
    ) -> str | None:
        """Return the secret called ``name``; AWS first, then the environment."""

        now = time.time()
        cached = self._cache.get(name)
        if cached and cached.expires_at > now:
            return cached.value

        value = self._load_from_aws(name)
        if value is None:
            value = os.getenv(name)

        if value is not None:
            self._cache[name] = CachedSecret(value=value, expires_at=now + self._cache_ttl)
            return value

        if raise_on_missing:
            raise SecretNotFoundError(f"Secret '{name}' could not be retrieved from AWS or environment.")
        return default

    def clear_cache(self) -> None:
        """Invalidate any cached secret payloads."""

        self._cache.clear()

    def _load_from_aws(self, name: str) -> str | None:
        if self._client is None:
            return None

        secret_id = name if name.startswith("arn:") else f"{self._prefix}{name}"
        try:
            response = self._client.get_secret_value(SecretId=secret_id)
        except (ClientError, BotoCoreError) as exc:
            self._logger.warning("aws_secret_lookup_failed", secret_id=secret_id, error=str(exc))
            return None
        return response.get("SecretString")


__all__ = ["CachedSecret", "SecretNotFoundError", "SecretsManager"]
