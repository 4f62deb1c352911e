"""Tests for the commit / dispute / finalize state machine."""

from __future__ import annotations

import pytest

from resolver_fakes import MARKET_ID, NOW, FakeChain, FakeDataSource, make_market

from market_resolver.domain.markets import ExtremumDirection, SubjectKind
from market_resolver.events.models import PendingResolution, ResolutionState
from market_resolver.resolution.state_machine import ResolutionStateMachine


def machine(chain, data_source, *, retry_attempts=3, clock=lambda: NOW):
    return ResolutionStateMachine(
        chain=chain,
        data_source=data_source,
        retry_attempts=retry_attempts,
        retry_delay_ms=0,
        clock=clock,
    )


class TestCommit:
    @pytest.mark.asyncio
    async def test_commits_yes_when_snapshot_exceeds_threshold(self, chain, data_source):
        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert result.success is True
        assert result.state is ResolutionState.COMMIT_SUBMITTED
        assert result.outcome == 1
        assert result.attempts == 1
        assert result.retry_after == 600
        assert data_source.calls == [("snapshot", "ETH", NOW - 60, SubjectKind.TOKEN_PRICE)]
        assert len(chain.commits) == 1
        market_id, outcome, data_hash = chain.commits[0]
        assert (market_id, outcome) == (MARKET_ID, 1)
        assert data_hash == result.data_hash
        assert data_hash.startswith("0x") and len(data_hash) == 66

    @pytest.mark.asyncio
    async def test_commits_no_when_predicate_fails(self, chain):
        result = await machine(chain, FakeDataSource(value=100)).resolve(MARKET_ID)

        assert result.outcome == 0
        assert chain.commits[0][1] == 0

    @pytest.mark.asyncio
    async def test_extremum_uses_max_for_greater_than(self):
        market = make_market(window_kind="EXTREMUM", predicate_op="GT", threshold=100)
        chain = FakeChain(market)
        data_source = FakeDataSource(value=150)

        result = await machine(chain, data_source).resolve(MARKET_ID)

        kind, identifier, start, end, direction, subject = data_source.calls[0]
        assert kind == "extremum"
        assert direction is ExtremumDirection.MAX
        assert (start, end) == (market.window_start, market.window_end)
        assert subject is SubjectKind.TOKEN_PRICE
        assert result.outcome == 1

    @pytest.mark.asyncio
    async def test_extremum_uses_min_for_less_than(self):
        chain = FakeChain(make_market(window_kind="EXTREMUM", predicate_op="LTE", threshold=100))
        data_source = FakeDataSource(value=90)

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert data_source.calls[0][4] is ExtremumDirection.MIN
        assert result.outcome == 1

    @pytest.mark.asyncio
    async def test_time_average_for_metric_subject(self):
        market = make_market(subject_kind="METRIC", metric_id="daily_volume", token="", window_kind="TIME_AVERAGE")
        data_source = FakeDataSource(value=5)

        await machine(FakeChain(market), data_source).resolve(MARKET_ID)

        assert data_source.calls == [
            ("average", "daily_volume", market.window_start, market.window_end, SubjectKind.METRIC)
        ]

    @pytest.mark.asyncio
    async def test_generic_subject_reads_primary_source(self):
        market = make_market(subject_kind="GENERIC", token="", primary_source_id="ipfs-feed")
        data_source = FakeDataSource(value=1)

        await machine(FakeChain(market), data_source).resolve(MARKET_ID)

        assert data_source.calls[0][1] == "ipfs-feed"

    @pytest.mark.asyncio
    async def test_waits_until_resolve_time(self, data_source):
        chain = FakeChain(make_market(resolve_time=NOW + 120))

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert result.success is False
        assert result.reason == "resolve time not reached"
        assert result.retry_after == 120
        assert data_source.calls == []
        assert chain.commits == []


class TestDisputeWindow:
    @pytest.mark.asyncio
    async def test_reports_waiting_inside_dispute_window(self, market, data_source):
        pending = PendingResolution(outcome=1, data_hash="0x" + "ab" * 32, commit_time=NOW - 300)
        chain = FakeChain(market, pending=pending, dispute_window=600)

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert result.success is False
        assert result.state is ResolutionState.AWAITING_DISPUTE
        assert "waiting" in result.reason
        assert result.retry_after == 300
        assert chain.commits == []
        assert chain.finalizations == []
        assert data_source.calls == []

    @pytest.mark.asyncio
    async def test_finalizes_once_window_elapsed(self, market, data_source):
        pending = PendingResolution(outcome=0, data_hash="0x" + "ab" * 32, commit_time=NOW - 600)
        chain = FakeChain(market, pending=pending, dispute_window=600)

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert result.success is True
        assert result.state is ResolutionState.FINALIZED
        assert result.outcome == 0
        assert result.transaction_hash == "0x" + "f1" * 32
        assert chain.finalizations == [MARKET_ID]
        assert chain.commits == []

    @pytest.mark.asyncio
    async def test_full_two_phase_progression(self, market, data_source):
        now = [NOW]
        chain = FakeChain(market, dispute_window=600, clock=lambda: now[0])
        resolver = machine(chain, data_source, clock=lambda: now[0])

        committed = await resolver.resolve(MARKET_ID)
        now[0] += 599
        waiting = await resolver.resolve(MARKET_ID)
        now[0] += 1
        finalized = await resolver.resolve(MARKET_ID)
        after = await resolver.resolve(MARKET_ID)

        assert committed.state is ResolutionState.COMMIT_SUBMITTED
        assert waiting.state is ResolutionState.AWAITING_DISPUTE
        assert finalized.state is ResolutionState.FINALIZED
        assert finalized.outcome == committed.outcome
        assert after.success is True
        assert after.reason == f"market {MARKET_ID} already resolved"
        assert len(chain.commits) == 1
        assert chain.finalizations == [MARKET_ID]


class TestTerminalStates:
    @pytest.mark.asyncio
    async def test_resolved_market_is_noop(self, data_source):
        chain = FakeChain(make_market(resolved=True))

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert result.success is True
        assert result.state is ResolutionState.FINALIZED
        assert chain.commits == []
        assert data_source.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_market_is_noop(self, data_source):
        chain = FakeChain(make_market(cancelled=True))

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert result.success is True
        assert result.state is ResolutionState.CANCELLED


class TestRetries:
    @pytest.mark.asyncio
    async def test_recovers_after_two_data_source_failures(self, chain):
        data_source = FakeDataSource(value=150, failures=2)

        result = await machine(chain, data_source, retry_attempts=3).resolve(MARKET_ID)

        assert result.success is True
        assert result.attempts == 3
        assert len(data_source.calls) == 3
        assert len(chain.commits) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_budget(self, chain):
        data_source = FakeDataSource(value=150, failures=4)

        result = await machine(chain, data_source, retry_attempts=3).resolve(MARKET_ID)

        assert result.success is False
        assert "max retry attempts" in result.reason
        assert result.state is ResolutionState.UNRESOLVED
        assert result.attempts == 4
        assert len(data_source.calls) == 4
        assert chain.commits == []

    @pytest.mark.asyncio
    async def test_zero_retries_means_single_attempt(self, chain):
        data_source = FakeDataSource(value=150, failures=1)

        result = await machine(chain, data_source, retry_attempts=0).resolve(MARKET_ID)

        assert result.success is False
        assert len(data_source.calls) == 1

    @pytest.mark.asyncio
    async def test_commit_failure_is_retried(self, market, data_source):
        chain = FakeChain(market, commit_failures=1)

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert result.success is True
        assert result.attempts == 2
        assert len(chain.commits) == 1

    @pytest.mark.asyncio
    async def test_missing_identifier_is_fatal(self, data_source):
        chain = FakeChain(make_market(token=""))

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert result.success is False
        assert result.attempts == 1
        assert "no data source identifier" in result.reason
        assert data_source.calls == []

    @pytest.mark.asyncio
    async def test_dispute_window_failure_never_follows_a_landed_commit(self, market, data_source):
        chain = FakeChain(market, dispute_window_failures=1)

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert result.success is True
        assert result.state is ResolutionState.COMMIT_SUBMITTED
        assert result.retry_after == 600
        assert result.attempts == 2
        assert len(chain.commits) == 1


class TestValueScale:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("window_kind", ["SNAPSHOT_AT", "TIME_AVERAGE", "EXTREMUM"])
    async def test_every_window_asks_for_market_decimals(self, window_kind):
        market = make_market(window_kind=window_kind, value_decimals=8, threshold=350_000_000_000)
        data_source = FakeDataSource(value=360_050_000_000)

        result = await machine(FakeChain(market), data_source).resolve(MARKET_ID)

        assert data_source.decimals == [8]
        assert result.outcome == 1


class TestFallbackSource:
    @pytest.mark.asyncio
    async def test_generic_subject_falls_back_within_one_attempt(self):
        market = make_market(
            subject_kind="GENERIC",
            token="",
            primary_source_id="feed-a",
            fallback_source_id="feed-b",
        )
        data_source = FakeDataSource(value=0, failures=1, values={"feed-b": 150})
        chain = FakeChain(market)

        result = await machine(chain, data_source).resolve(MARKET_ID)

        assert [call[1] for call in data_source.calls] == ["feed-a", "feed-b"]
        assert result.success is True
        assert result.attempts == 1
        assert result.outcome == 1

    @pytest.mark.asyncio
    async def test_failed_fallback_is_retried_as_a_whole(self):
        market = make_market(
            subject_kind="GENERIC",
            token="",
            primary_source_id="feed-a",
            fallback_source_id="feed-b",
        )
        data_source = FakeDataSource(value=150, failures=2)

        result = await machine(FakeChain(market), data_source).resolve(MARKET_ID)

        assert [call[1] for call in data_source.calls] == ["feed-a", "feed-b", "feed-a"]
        assert result.success is True
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_token_subject_has_no_fallback(self):
        market = make_market(fallback_source_id="coinmarketcap")
        data_source = FakeDataSource(value=150, failures=1)

        result = await machine(FakeChain(market), data_source).resolve(MARKET_ID)

        assert [call[1] for call in data_source.calls] == ["ETH", "ETH"]
        assert result.attempts == 2
