"""Wire and result models exchanged between resolver components."""

from .models import (
    ChangeOp,
    PendingResolution,
    ResolutionResult,
    ResolutionState,
    WebhookPayload,
)

__all__ = [
    "ChangeOp",
    "PendingResolution",
    "ResolutionResult",
    "ResolutionState",
    "WebhookPayload",
]
