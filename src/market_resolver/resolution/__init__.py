"""Resolution pipeline: predicate evaluation, state machine and job queue."""

from market_resolver.resolution.predicate import (
    ExtremumDirection,
    compute_audit_hash,
    evaluate,
    extremum_direction,
)
from market_resolver.resolution.queue import ResolutionQueue
from market_resolver.resolution.state_machine import ResolutionStateMachine

__all__ = [
    "ExtremumDirection",
    "ResolutionQueue",
    "ResolutionStateMachine",
    "compute_audit_hash",
    "evaluate",
    "extremum_direction",
]
