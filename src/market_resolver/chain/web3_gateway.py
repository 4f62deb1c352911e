"""web3-backed chain gateway with locally signed, serialized transactions."""

from __future__ import annotations

import asyncio
from typing import Any, Sequence

import structlog
from eth_account import Account
from web3 import AsyncWeb3, Web3

from market_resolver.chain.abis import MARKET_ABI, ORACLE_ABI
from market_resolver.config.settings import ChainSettings
from market_resolver.domain.markets import Market, PredicateOp, SubjectKind, WindowKind
from market_resolver.errors import ChainError, ConfigurationError, ResolverError
from market_resolver.events.models import PendingResolution

logger = structlog.get_logger(__name__)

ZERO_ADDRESS = "0x" + "00" * 20

# Contract enum ordinals.
SUBJECT_KINDS = (SubjectKind.METRIC, SubjectKind.TOKEN_PRICE, SubjectKind.GENERIC)
PREDICATE_OPS = (
    PredicateOp.GT,
    PredicateOp.GTE,
    PredicateOp.LT,
    PredicateOp.LTE,
    PredicateOp.EQ,
    PredicateOp.NEQ,
)
WINDOW_KINDS = (WindowKind.SNAPSHOT_AT, WindowKind.TIME_AVERAGE, WindowKind.EXTREMUM)


def _ordinal(table: Sequence[Any], value: int, label: str, market_id: str) -> Any:
    if not 0 <= value < len(table):
        raise ConfigurationError(f"market {market_id} has unknown {label} ordinal {value}")
    return table[value]


def _bytes32_to_str(raw: bytes) -> str:
    """Render a bytes32 identifier as text when it is padded ASCII, else as hex."""

    stripped = raw.rstrip(b"\x00")
    if not stripped:
        return ""
    try:
        text = stripped.decode("ascii")
    except UnicodeDecodeError:
        return "0x" + raw.hex()
    return text if text.isprintable() else "0x" + raw.hex()


def market_from_params(market_id: str, params: Sequence[Any], *, resolved: bool, cancelled: bool) -> Market:
    """Build a ``Market`` from the decoded ``params()`` tuple of a market contract."""

    title, _description, subject, predicate, window, oracle, cutoff_time = params[:7]
    subject_kind, metric_id, token, value_decimals = subject
    op, threshold = predicate
    window_kind, t_start, t_end = window
    primary_source, fallback_source, rounding_decimals = oracle

    return Market(
        id=market_id,
        title=title,
        subject_kind=_ordinal(SUBJECT_KINDS, subject_kind, "subject kind", market_id),
        metric_id=_bytes32_to_str(metric_id),
        token="" if token == ZERO_ADDRESS else token,
        value_decimals=value_decimals,
        window_kind=_ordinal(WINDOW_KINDS, window_kind, "window kind", market_id),
        window_start=t_start,
        window_end=t_end,
        predicate_op=_ordinal(PREDICATE_OPS, op, "predicate operator", market_id),
        threshold=threshold,
        primary_source_id=_bytes32_to_str(primary_source),
        fallback_source_id=_bytes32_to_str(fallback_source),
        rounding_decimals=rounding_decimals,
        resolve_time=max(cutoff_time, t_end),
        resolved=resolved,
        cancelled=cancelled,
    )


class Web3ChainGateway:
    """Oracle gateway over an ``AsyncWeb3`` HTTP provider.

    A single lock covers nonce assignment, submission and the receipt wait, so
    one transaction per signer is in flight at any time, across all markets.
    """

    def __init__(
        self,
        settings: ChainSettings,
        private_key: str | None,
        *,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        if not private_key:
            raise ConfigurationError("PRIVATE_KEY missing; the gateway cannot sign transactions.")
        if not settings.oracle_address:
            raise ConfigurationError("ORACLE_ADDRESS missing; the gateway has no oracle to call.")

        self._settings = settings
        self._account = Account.from_key(private_key)
        self.address = self._account.address
        self._w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.rpc_url))
        self._oracle = self._w3.eth.contract(
            address=Web3.to_checksum_address(settings.oracle_address),
            abi=ORACLE_ABI,
        )
        self._tx_lock = asyncio.Lock()
        self._dispute_window: int | None = None

    async def load_market(self, market_id: str) -> Market:
        market = self._w3.eth.contract(address=self._checksum(market_id), abi=MARKET_ABI)
        params, resolved, cancelled = await self._call(
            "load_market",
            market_id,
            asyncio.gather(
                market.functions.params().call(),
                market.functions.resolved().call(),
                market.functions.cancelled().call(),
            ),
        )
        return market_from_params(market_id, params, resolved=resolved, cancelled=cancelled)

    async def pending_resolution(self, market_id: str) -> PendingResolution | None:
        outcome, data_hash, commit_time = await self._call(
            "pending_resolution",
            market_id,
            self._oracle.functions.pendingResolutions(self._checksum(market_id)).call(),
        )
        if commit_time == 0:
            return None
        return PendingResolution(
            outcome=outcome,
            data_hash=Web3.to_hex(data_hash),
            commit_time=commit_time,
        )

    async def dispute_window_seconds(self) -> int:
        if self._dispute_window is None:
            self._dispute_window = int(
                await self._call("dispute_window", None, self._oracle.functions.DISPUTE_WINDOW().call())
            )
        return self._dispute_window

    async def commit(self, market_id: str, outcome: int, data_hash: str) -> str:
        function = self._oracle.functions.commit(
            self._checksum(market_id),
            outcome,
            Web3.to_bytes(hexstr=data_hash),
        )
        return await self._transact("commit", market_id, function)

    async def finalize(self, market_id: str) -> str:
        function = self._oracle.functions.finalize(self._checksum(market_id))
        return await self._transact("finalize", market_id, function)

    async def _transact(self, action: str, market_id: str, function: Any) -> str:
        async with self._tx_lock:
            try:
                gas_estimate = await function.estimate_gas({"from": self.address})
                nonce = await self._w3.eth.get_transaction_count(self.address, "pending")
                tx = await function.build_transaction(
                    {
                        "from": self.address,
                        "nonce": nonce,
                        "gas": int(gas_estimate * self._settings.gas_limit_multiplier),
                        "chainId": self._settings.chain_id,
                    }
                )
                signed = self._account.sign_transaction(tx)
                tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
                logger.info(
                    "transaction_submitted",
                    action=action,
                    market_id=market_id,
                    tx_hash=Web3.to_hex(tx_hash),
                    nonce=nonce,
                )
                receipt = await self._w3.eth.wait_for_transaction_receipt(
                    tx_hash,
                    timeout=self._settings.transaction_timeout_seconds,
                )
            except Exception as exc:
                logger.error("transaction_failed", action=action, market_id=market_id, error=str(exc))
                raise ChainError(f"{action} for {market_id} failed: {exc}") from exc

        if receipt["status"] != 1:
            raise ChainError(f"{action} for {market_id} reverted in {Web3.to_hex(tx_hash)}")
        return Web3.to_hex(tx_hash)

    async def _call(self, action: str, market_id: str | None, awaitable: Any) -> Any:
        try:
            return await awaitable
        except ResolverError:
            raise
        except Exception as exc:
            logger.warning("rpc_call_failed", action=action, market_id=market_id, error=str(exc))
            raise ChainError(f"{action} failed: {exc}") from exc

    @staticmethod
    def _checksum(market_id: str) -> str:
        try:
            return Web3.to_checksum_address(market_id)
        except ValueError as exc:
            raise ConfigurationError(f"market id {market_id!r} is not a valid address") from exc


__all__ = ["Web3ChainGateway", "market_from_params"]
