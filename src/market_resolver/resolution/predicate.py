"""Pure predicate evaluation and resolution evidence hashing."""

from __future__ import annotations

from typing import assert_never

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from market_resolver.domain.markets import ExtremumDirection, PredicateOp
from market_resolver.errors import ConfigurationError

YES = 1
NO = 0


def evaluate(value: int, threshold: int, op: PredicateOp) -> int:
    """Return YES (1) when ``value <op> threshold`` holds, else NO (0)."""

    match op:
        case PredicateOp.GT:
            holds = value > threshold
        case PredicateOp.GTE:
            holds = value >= threshold
        case PredicateOp.LT:
            holds = value < threshold
        case PredicateOp.LTE:
            holds = value <= threshold
        case PredicateOp.EQ:
            holds = value == threshold
        case PredicateOp.NEQ:
            holds = value != threshold
        case _:
            assert_never(op)
    return YES if holds else NO


def extremum_direction(op: PredicateOp) -> ExtremumDirection:
    """Pick the window extremum that answers the question ``op`` asks.

    "Above" questions look at the window maximum, everything else at the
    minimum.
    """

    match op:
        case PredicateOp.GT | PredicateOp.GTE:
            return ExtremumDirection.MAX
        case PredicateOp.LT | PredicateOp.LTE | PredicateOp.EQ | PredicateOp.NEQ:
            return ExtremumDirection.MIN
        case _:
            assert_never(op)


def compute_audit_hash(value: int, market_id: str, timestamp_ms: int) -> str:
    """keccak256 of ``abi.encode(int256 value, address market, uint256 timestamp)``.

    The timestamp makes the hash an evidence fingerprint of this attempt, not
    a commitment reproducible from ``(value, market)`` alone.
    """

    try:
        market = to_checksum_address(market_id)
    except ValueError as exc:
        raise ConfigurationError(f"market id {market_id!r} is not a valid address") from exc
    encoded = encode(["int256", "address", "uint256"], [value, market, timestamp_ms])
    return "0x" + keccak(encoded).hex()


__all__ = [
    "NO",
    "YES",
    "ExtremumDirection",
    "compute_audit_hash",
    "evaluate",
    "extremum_direction",
]
