"""Data source abstraction consumed by the resolution state machine."""

from __future__ import annotations

from typing import Protocol

from market_resolver.domain.markets import ExtremumDirection, SubjectKind


class DataSourceAdapter(Protocol):
    """Fetches the authoritative subject value for a window.

    Values are signed fixed-point integers at ``decimals``, the market's
    ``value_decimals``, so they compare directly against its threshold.
    Implementations raise ``DataSourceError`` for anything worth retrying.
    """

    async def snapshot_value(
        self, identifier: str, at_time: int, *, subject: SubjectKind, decimals: int
    ) -> int:
        ...

    async def time_average_value(
        self, identifier: str, start: int, end: int, *, subject: SubjectKind, decimals: int
    ) -> int:
        ...

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
        ...


__all__ = ["DataSourceAdapter"]
