"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum
from typing import Final

LIKE: Final[str] = "like"


class Direction(StrEnum):
    """Which side of a two-party reaction an event describes."""

    GIVEN = "given"
    RECEIVED = "received"


class Lifecycle(StrEnum):
    CREATED = "created"
    REMOVED = "removed"


class CounterField(StrEnum):
    GIVEN = "likes_given"
    RECEIVED = "likes_received"


class HistoryKind(StrEnum):
    """Dual history views of a single like."""

    LIKE = "like"
    WAS_LIKED = "was_liked"


class NotificationKind(StrEnum):
    LIKED = "liked"


COUNTER_FIELD_BY_DIRECTION: Final[dict[Direction, CounterField]] = {
    Direction.GIVEN: CounterField.GIVEN,
    Direction.RECEIVED: CounterField.RECEIVED,
}

HISTORY_KIND_BY_DIRECTION: Final[dict[Direction, HistoryKind]] = {
    Direction.GIVEN: HistoryKind.LIKE,
    Direction.RECEIVED: HistoryKind.WAS_LIKED,
}
