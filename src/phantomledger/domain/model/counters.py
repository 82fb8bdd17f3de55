"""Derived per-user aggregate counters."""

from __future__ import annotations

from dataclasses import dataclass

from .enums import CounterField


@dataclass(frozen=True, slots=True)
class CounterEntry:
    user_id: int
    given: int = 0
    received: int = 0

    def __post_init__(self) -> None:
        if self.given < 0 or self.received < 0:
            raise ValueError(
                f"Counters must be non-negative (user={self.user_id}, "
                f"given={self.given}, received={self.received})"
            )

    def value(self, counter_field: CounterField) -> int:
        return self.given if counter_field == CounterField.GIVEN else self.received


@dataclass(frozen=True, slots=True, kw_only=True)
class CounterAdjustment:
    """Result of a clamped counter mutation."""

    user_id: int
    field: CounterField
    delta: int
    value: int
    clamped: bool = False
