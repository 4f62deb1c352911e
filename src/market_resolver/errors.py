"""Error taxonomy shared by the ingress, queue and resolution layers."""

from __future__ import annotations


class ResolverError(RuntimeError):
    """Base class for all resolver failures."""


class AuthenticationError(ResolverError):
    """Webhook signature missing or wrong; the request is rejected."""


class ValidationError(ResolverError):
    """Malformed or irrelevant change event; the event is dropped."""


class ConfigurationError(ResolverError):
    """Market or process configuration that can never resolve; not retried."""


class TransientError(ResolverError):
    """Failure that may succeed on a later attempt."""


class DataSourceError(TransientError):
    """The metric/price API timed out, failed or returned an unusable payload."""


class ChainError(TransientError):
    """RPC failure, timeout or reverted transaction."""


class ProtocolStateError(ResolverError):
    """Market is already resolved or cancelled on-chain."""

    def __init__(self, market_id: str, *, cancelled: bool = False) -> None:
        self.market_id = market_id
        self.cancelled = cancelled
        status = "cancelled" if cancelled else "resolved"
        super().__init__(f"market {market_id} already {status}")


__all__ = [
    "AuthenticationError",
    "ChainError",
    "ConfigurationError",
    "DataSourceError",
    "ProtocolStateError",
    "ResolverError",
    "TransientError",
    "ValidationError",
]
