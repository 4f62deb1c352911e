"""Market definition as delivered by the indexer or read from the market contract."""

from __future__ import annotations

import time
from decimal import Decimal
from enum import Enum
from typing import assert_never

from pydantic import BaseModel, ConfigDict, Field, field_validator

from market_resolver.errors import ConfigurationError


class SubjectKind(str, Enum):
    """Quantity a market asks about."""

    METRIC = "METRIC"
    TOKEN_PRICE = "TOKEN_PRICE"
    GENERIC = "GENERIC"


class WindowKind(str, Enum):
    """Aggregation applied to the subject over the market window."""

    SNAPSHOT_AT = "SNAPSHOT_AT"
    TIME_AVERAGE = "TIME_AVERAGE"
    EXTREMUM = "EXTREMUM"


class PredicateOp(str, Enum):
    """Comparison between the observed value and the threshold."""

    GT = "GT"
    GTE = "GTE"
    LT = "LT"
    LTE = "LTE"
    EQ = "EQ"
    NEQ = "NEQ"


class ExtremumDirection(str, Enum):
    MAX = "max"
    MIN = "min"


# The indexer still emits the pre-rename subject name.
_SUBJECT_ALIASES = {"HL_METRIC": SubjectKind.METRIC.value}


class Market(BaseModel):
    """Binary market; owned upstream and only read here."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Market contract address.")
    title: str = ""
    subject_kind: SubjectKind = Field(..., alias="subjectKind")
    metric_id: str = Field("", alias="metricId")
    token: str = ""
    value_decimals: int = Field(0, alias="valueDecimals", ge=0, le=18)
    window_kind: WindowKind = Field(..., alias="windowKind")
    window_start: int = Field(0, alias="windowStart")
    window_end: int = Field(0, alias="windowEnd")
    predicate_op: PredicateOp = Field(..., alias="predicateOp")
    threshold: int = Field(..., description="Signed fixed-point value at value_decimals.")
    primary_source_id: str = Field("", alias="primarySourceId")
    fallback_source_id: str = Field("", alias="fallbackSourceId")
    rounding_decimals: int = Field(0, alias="roundingDecimals")
    resolve_time: int = Field(..., alias="resolveTime")
    pool_yes: Decimal = Field(Decimal(0), alias="poolYes")
    pool_no: Decimal = Field(Decimal(0), alias="poolNo")
    resolved: bool = False
    cancelled: bool = False

    @field_validator("subject_kind", mode="before")
    @classmethod
    def _normalize_subject(cls, value: object) -> object:
        if isinstance(value, str):
            return _SUBJECT_ALIASES.get(value, value)
        return value

    @property
    def has_activity(self) -> bool:
        return self.pool_yes > 0 or self.pool_no > 0

    def source_identifier(self) -> str:
        """Identifier passed to the data source for this market's subject."""

        match self.subject_kind:
            case SubjectKind.METRIC:
                identifier = self.metric_id
            case SubjectKind.TOKEN_PRICE:
                identifier = self.token
            case SubjectKind.GENERIC:
                identifier = self.primary_source_id
            case _:
                assert_never(self.subject_kind)
        if not identifier:
            raise ConfigurationError(
                f"market {self.id} has no data source identifier for subject {self.subject_kind.value}"
            )
        return identifier

    def fallback_identifier(self) -> str | None:
        """Alternate feed for GENERIC subjects, queried when the primary fails.

        METRIC and TOKEN_PRICE subjects are keyed by metric id or token, which
        have no alternate.
        """

        if self.subject_kind is SubjectKind.GENERIC and self.fallback_source_id:
            if self.fallback_source_id != self.primary_source_id:
                return self.fallback_source_id
        return None


def is_eligible(market: Market, now: int | None = None) -> bool:
    """Return True when the market is ready to enter the resolution pipeline."""

    if market.resolved or market.cancelled:
        return False
    if now is None:
        now = int(time.time())
    if now < market.resolve_time:
        return False
    return market.has_activity


__all__ = ["ExtremumDirection", "Market", "PredicateOp", "SubjectKind", "WindowKind", "is_eligible"]
