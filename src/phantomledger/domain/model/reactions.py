"""Reaction lifecycle events as observed from the actions subsystem."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .enums import (
    COUNTER_FIELD_BY_DIRECTION,
    HISTORY_KIND_BY_DIRECTION,
    LIKE,
    CounterField,
    Direction,
    HistoryKind,
    Lifecycle,
)

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class ReactionEvent:
    """One directional view of a reaction being created or removed.

    ``subject_id`` is always the acting user; ``object_id`` is the author of the
    target (absent for self-contained actions). ``category_id`` may be omitted, in
    which case the gate resolves it from ``target_id``.
    """

    target_id: int
    subject_id: int
    object_id: int | None
    direction: Direction
    lifecycle: Lifecycle
    category_id: int | None = None
    reaction_type: str = LIKE
    occurred_at: datetime | None = None

    @property
    def counter_owner_id(self) -> int | None:
        """User whose counter this event moves."""
        if self.direction == Direction.GIVEN:
            return self.subject_id
        return self.object_id

    @property
    def counter_field(self) -> CounterField:
        return COUNTER_FIELD_BY_DIRECTION[self.direction]

    @property
    def history_kind(self) -> HistoryKind:
        return HISTORY_KIND_BY_DIRECTION[self.direction]

    @property
    def delta(self) -> int:
        return 1 if self.lifecycle == Lifecycle.CREATED else -1

    @property
    def is_countable(self) -> bool:
        return self.reaction_type == LIKE


@dataclass(frozen=True, slots=True, kw_only=True)
class ReactionAction:
    """A two-party reaction owned by the external actions subsystem."""

    id: int
    target_id: int
    subject_id: int
    object_id: int | None
    category_id: int | None = None
    reaction_type: str = LIKE
    created_at: datetime | None = None
    removed_at: datetime | None = None

    def events(self, lifecycle: Lifecycle) -> tuple[ReactionEvent, ...]:
        """Fan the action out into its "given" and "received" views."""

        directions = [Direction.GIVEN]
        if self.object_id is not None:
            directions.append(Direction.RECEIVED)
        occurred_at = self.created_at if lifecycle == Lifecycle.CREATED else self.removed_at
        return tuple(
            ReactionEvent(
                target_id=self.target_id,
                subject_id=self.subject_id,
                object_id=self.object_id,
                direction=direction,
                lifecycle=lifecycle,
                category_id=self.category_id,
                reaction_type=self.reaction_type,
                occurred_at=occurred_at,
            )
            for direction in directions
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class NamedReaction:
    """A non-countable emoji reaction (e.g. ``"+1"``, ``"laughing"``)."""

    target_id: int
    subject_id: int
    reaction_value: str
    category_id: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ExcludedAction:
    """A live like in the ground-truth log whose target sits in an excluded category."""

    target_id: int
    subject_id: int
    object_id: int | None
    category_id: int
    reaction_type: str = LIKE
