"""Domain models shared across the resolver."""

from .markets import ExtremumDirection, Market, PredicateOp, SubjectKind, WindowKind, is_eligible

__all__ = [
    "ExtremumDirection",
    "Market",
    "PredicateOp",
    "SubjectKind",
    "WindowKind",
    "is_eligible",
]
