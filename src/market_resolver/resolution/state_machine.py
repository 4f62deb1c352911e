"""Commit / dispute-window / finalize state machine for a single market."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, assert_never

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from market_resolver.chain.gateway import ChainGateway
from market_resolver.datasource.base import DataSourceAdapter
from market_resolver.domain.markets import Market, WindowKind
from market_resolver.errors import ConfigurationError, DataSourceError, ProtocolStateError, TransientError
from market_resolver.events.models import ResolutionResult, ResolutionState
from market_resolver.resolution.predicate import compute_audit_hash, evaluate, extremum_direction

logger = structlog.get_logger(__name__)

MAX_RETRIES_REASON = "max retry attempts exceeded"


@dataclass(slots=True)
class ResolutionStateMachine:
    """Drives one market one step along commit -> dispute window -> finalize.

    Every attempt re-reads market and oracle state from the chain, so a job
    carries nothing but the market id and a repeated run never double-commits.
    """

    chain: ChainGateway
    data_source: DataSourceAdapter
    retry_attempts: int = 3
    retry_delay_ms: int = 5000
    clock: Callable[[], float] = time.time

    async def resolve(self, market_id: str) -> ResolutionResult:
        """Run the next transition for ``market_id`` and report where it landed."""

        log = logger.bind(market_id=market_id)
        attempts = 0

        def _log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            log.warning(
                "resolution_retry_scheduled",
                attempt=retry_state.attempt_number,
                max_attempts=self.retry_attempts + 1,
                error=str(error),
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts + 1),
                wait=wait_fixed(self.retry_delay_ms / 1000),
                retry=retry_if_exception_type(TransientError),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    result = await self._step(market_id, log)
        except TransientError as exc:
            log.error("resolution_retries_exhausted", attempts=attempts, error=str(exc))
            return ResolutionResult(
                market_id=market_id,
                success=False,
                reason=f"{MAX_RETRIES_REASON}: {exc}",
                attempts=attempts,
            )
        except ProtocolStateError as exc:
            log.info("resolution_not_needed", cancelled=exc.cancelled)
            return ResolutionResult(
                market_id=market_id,
                success=True,
                state=ResolutionState.CANCELLED if exc.cancelled else ResolutionState.FINALIZED,
                reason=str(exc),
                attempts=attempts,
            )
        except ConfigurationError as exc:
            log.error("resolution_misconfigured", error=str(exc))
            return ResolutionResult(
                market_id=market_id,
                success=False,
                reason=str(exc),
                attempts=attempts,
            )
        except Exception as exc:
            log.exception("resolution_crashed")
            return ResolutionResult(
                market_id=market_id,
                success=False,
                reason=f"unexpected error: {exc}",
                attempts=attempts,
            )

        result.attempts = attempts
        return result

    async def _step(self, market_id: str, log: structlog.stdlib.BoundLogger) -> ResolutionResult:
        market = await self.chain.load_market(market_id)
        if market.resolved or market.cancelled:
            raise ProtocolStateError(market_id, cancelled=market.cancelled)

        pending = await self.chain.pending_resolution(market_id)
        if pending is not None:
            dispute_window = await self.chain.dispute_window_seconds()
            finalizable_at = pending.finalizable_at(dispute_window)
            now = int(self.clock())
            if now < finalizable_at:
                log.debug("resolution_awaiting_dispute_window", finalizable_at=finalizable_at)
                return ResolutionResult(
                    market_id=market_id,
                    success=False,
                    state=ResolutionState.AWAITING_DISPUTE,
                    outcome=pending.outcome,
                    data_hash=pending.data_hash,
                    reason="waiting for dispute window",
                    retry_after=finalizable_at - now,
                )

            log.info("finalizing_resolution", outcome=pending.outcome)
            tx_hash = await self.chain.finalize(market_id)
            log.info("resolution_finalized", tx_hash=tx_hash, outcome=pending.outcome)
            return ResolutionResult(
                market_id=market_id,
                success=True,
                state=ResolutionState.FINALIZED,
                outcome=pending.outcome,
                data_hash=pending.data_hash,
                transaction_hash=tx_hash,
            )

        now = int(self.clock())
        if now < market.resolve_time:
            log.info("resolution_too_early", resolve_time=market.resolve_time)
            return ResolutionResult(
                market_id=market_id,
                success=False,
                reason="resolve time not reached",
                retry_after=market.resolve_time - now,
            )

        # Nothing retryable may run after the commit lands.
        dispute_window = await self.chain.dispute_window_seconds()
        value = await self.fetch_value(market)
        outcome = evaluate(value, market.threshold, market.predicate_op)
        data_hash = compute_audit_hash(value, market_id, int(self.clock() * 1000))

        log.info(
            "committing_resolution",
            value=str(value),
            threshold=str(market.threshold),
            op=market.predicate_op.value,
            outcome=outcome,
        )
        tx_hash = await self.chain.commit(market_id, outcome, data_hash)
        log.info("resolution_committed", tx_hash=tx_hash, outcome=outcome)
        return ResolutionResult(
            market_id=market_id,
            success=True,
            state=ResolutionState.COMMIT_SUBMITTED,
            outcome=outcome,
            data_hash=data_hash,
            transaction_hash=tx_hash,
            retry_after=dispute_window,
        )

    async def fetch_value(self, market: Market) -> int:
        """Fetch the authoritative subject value for the market's window.

        When the primary identifier fails and the market names a fallback
        source, the fallback is queried once before the error propagates.
        """

        try:
            return await self._query(market, market.source_identifier())
        except DataSourceError as exc:
            fallback = market.fallback_identifier()
            if fallback is None:
                raise
            logger.warning(
                "primary_data_source_failed",
                market_id=market.id,
                fallback=fallback,
                error=str(exc),
            )
            return await self._query(market, fallback)

    async def _query(self, market: Market, identifier: str) -> int:
        subject = market.subject_kind
        decimals = market.value_decimals
        match market.window_kind:
            case WindowKind.SNAPSHOT_AT:
                return await self.data_source.snapshot_value(
                    identifier, market.window_end, subject=subject, decimals=decimals
                )
            case WindowKind.TIME_AVERAGE:
                return await self.data_source.time_average_value(
                    identifier, market.window_start, market.window_end, subject=subject, decimals=decimals
                )
            case WindowKind.EXTREMUM:
                return await self.data_source.extremum_value(
                    identifier,
                    market.window_start,
                    market.window_end,
                    extremum_direction(market.predicate_op),
                    subject=subject,
                    decimals=decimals,
                )
            case _:
                assert_never(market.window_kind)


__all__ = ["MAX_RETRIES_REASON", "ResolutionStateMachine"]
