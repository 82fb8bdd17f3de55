"""Domain model for phantom reaction accounting."""

from __future__ import annotations

from .audit import AuditFilter, AuditRecord
from .counters import CounterAdjustment, CounterEntry
from .enums import (
    LIKE,
    CounterField,
    Direction,
    HistoryKind,
    Lifecycle,
    NotificationKind,
)
from .reactions import ExcludedAction, NamedReaction, ReactionAction, ReactionEvent

__all__ = [
    "LIKE",
    "AuditFilter",
    "AuditRecord",
    "CounterAdjustment",
    "CounterEntry",
    "CounterField",
    "Direction",
    "ExcludedAction",
    "HistoryKind",
    "Lifecycle",
    "NamedReaction",
    "NotificationKind",
    "ReactionAction",
    "ReactionEvent",
]
