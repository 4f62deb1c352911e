"""Change-event payloads, on-chain pending state and resolution results."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ChangeOp(str, Enum):
    """Change-data-capture operation."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class WebhookData(BaseModel):
    """Row images carried by a change event."""

    new: Optional[dict[str, Any]] = None
    old: Optional[dict[str, Any]] = None


class WebhookPayload(BaseModel):
    """Change event delivered by the indexer's webhook sink."""

    webhook_id: str = ""
    webhook_name: str = ""
    op: ChangeOp
    entity: str
    data: WebhookData = Field(default_factory=WebhookData)

    class Config:
        json_schema_extra = {
            "example": {
                "webhook_id": "wh_01",
                "webhook_name": "market-updates",
                "op": "UPDATE",
                "entity": "Market",
                "data": {
                    "new": {
                        "id": "0x5fbdb2315678afecb367f032d93f642f64180aa3",
                        "subjectKind": "TOKEN_PRICE",
                        "token": "ETH",
                        "windowKind": "SNAPSHOT_AT",
                        "predicateOp": "GT",
                        "threshold": "350000000000",
                        "resolveTime": "1735689600",
                        "poolYes": "100",
                        "poolNo": "0",
                        "resolved": False,
                        "cancelled": False,
                    }
                },
            }
        }


class PendingResolution(BaseModel):
    """Oracle record of a committed but not yet finalized outcome."""

    outcome: int = Field(..., ge=0, le=1)
    data_hash: str
    commit_time: int

    def finalizable_at(self, dispute_window: int) -> int:
        return self.commit_time + dispute_window


class ResolutionState(str, Enum):
    """Where a market stands after a resolution attempt."""

    UNRESOLVED = "unresolved"
    COMMIT_SUBMITTED = "commit_submitted"
    AWAITING_DISPUTE = "awaiting_dispute"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


class ResolutionResult(BaseModel):
    """Outcome of one resolution job; logged by the caller, never persisted."""

    market_id: str
    success: bool
    state: ResolutionState = ResolutionState.UNRESOLVED
    outcome: Optional[int] = Field(None, ge=0, le=1)
    reason: Optional[str] = None
    transaction_hash: Optional[str] = None
    data_hash: Optional[str] = None
    attempts: int = 0
    retry_after: Optional[int] = Field(
        None, description="Seconds until the market can be finalized, when known."
    )


__all__ = [
    "ChangeOp",
    "PendingResolution",
    "ResolutionResult",
    "ResolutionState",
    "WebhookData",
    "WebhookPayload",
]
