"""Chain gateway contract consumed by the resolution state machine."""

from __future__ import annotations

from typing import Protocol

from market_resolver.domain.markets import Market
from market_resolver.events.models import PendingResolution


class ChainGateway(Protocol):
    """Reads oracle/market state and submits commit and finalize transactions.

    Submission methods return the transaction hash once the receipt is
    confirmed. Implementations serialize submissions per signer and raise
    ``ChainError`` on RPC failure or revert.
    """

    async def load_market(self, market_id: str) -> Market:
        ...

    async def pending_resolution(self, market_id: str) -> PendingResolution | None:
        ...

    async def dispute_window_seconds(self) -> int:
        ...

    async def commit(self, market_id: str, outcome: int, data_hash: str) -> str:
        ...

    async def finalize(self, market_id: str) -> str:
        ...


__all__ = ["ChainGateway"]
