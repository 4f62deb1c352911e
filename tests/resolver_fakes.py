"""In-memory stand-ins for the chain gateway and data source."""

from __future__ import annotations

from typing import Any

from market_resolver.domain.markets import ExtremumDirection, Market, SubjectKind
from market_resolver.errors import ChainError, DataSourceError
from market_resolver.events.models import PendingResolution

MARKET_ID = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
NOW = 1_750_000_000


def make_market(**overrides: Any) -> Market:
    fields: dict[str, Any] = {
        "id": MARKET_ID,
        "title": "ETH above 100?",
        "subject_kind": "TOKEN_PRICE",
        "token": "ETH",
        "window_kind": "SNAPSHOT_AT",
        "window_start": NOW - 3_600,
        "window_end": NOW - 60,
        "predicate_op": "GT",
        "threshold": 100,
        "resolve_time": NOW - 60,
        "pool_yes": 100,
        "pool_no": 0,
    }
    fields.update(overrides)
    return Market(**fields)


class FakeChain:
    """Oracle that records submissions and tracks pending state like the contract."""

    def __init__(
        self,
        market: Market,
        *,
        pending: PendingResolution | None = None,
        dispute_window: int = 600,
        commit_failures: int = 0,
        dispute_window_failures: int = 0,
        clock=lambda: NOW,
    ) -> None:
        self.market = market
        self.pending = pending
        self.dispute_window = dispute_window
        self.commit_failures = commit_failures
        self.dispute_window_failures = dispute_window_failures
        self.clock = clock
        self.commits: list[tuple[str, int, str]] = []
        self.finalizations: list[str] = []

    async def load_market(self, market_id: str) -> Market:
        return self.market

    async def pending_resolution(self, market_id: str) -> PendingResolution | None:
        return self.pending

    async def dispute_window_seconds(self) -> int:
        if self.dispute_window_failures > 0:
            self.dispute_window_failures -= 1
            raise ChainError("rpc timeout")
        return self.dispute_window

    async def commit(self, market_id: str, outcome: int, data_hash: str) -> str:
        if self.commit_failures > 0:
            self.commit_failures -= 1
            raise ChainError("rpc timeout")
        self.commits.append((market_id, outcome, data_hash))
        self.pending = PendingResolution(
            outcome=outcome,
            data_hash=data_hash,
            commit_time=int(self.clock()),
        )
        return "0x" + "c1" * 32

    async def finalize(self, market_id: str) -> str:
        self.finalizations.append(market_id)
        self.pending = None
        self.market = self.market.model_copy(update={"resolved": True})
        return "0x" + "f1" * 32


class FakeDataSource:
    """Returns a fixed value after failing a configurable number of times.

    ``values`` maps an identifier to its own answer; other identifiers get
    ``value``. The requested fixed-point scale of each call lands in ``decimals``.
    """

    def __init__(self, value: int = 0, *, failures: int = 0, values: dict[str, int] | None = None) -> None:
        self.value = value
        self.values = values or {}
        self.failures = failures
        self.calls: list[tuple[Any, ...]] = []
        self.decimals: list[int] = []

    def _answer(self, call: tuple[Any, ...], decimals: int) -> int:
        self.calls.append(call)
        self.decimals.append(decimals)
        if self.failures > 0:
            self.failures -= 1
            raise DataSourceError("upstream 503")
        return self.values.get(call[1], self.value)

    async def snapshot_value(
        self, identifier: str, at_time: int, *, subject: SubjectKind, decimals: int
    ) -> int:
        return self._answer(("snapshot", identifier, at_time, subject), decimals)

    async def time_average_value(
        self, identifier: str, start: int, end: int, *, subject: SubjectKind, decimals: int
    ) -> int:
        return self._answer(("average", identifier, start, end, subject), decimals)

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
        return self._answer(("extremum", identifier, start, end, direction, subject), decimals)
