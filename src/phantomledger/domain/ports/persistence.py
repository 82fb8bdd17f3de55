"""Ports for the persisted state the accounting core reads and mutates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence
    from datetime import datetime

    from phantomledger.domain.model import (
        AuditFilter,
        AuditRecord,
        CounterAdjustment,
        CounterEntry,
        CounterField,
        ExcludedAction,
        HistoryKind,
        NotificationKind,
        ReactionEvent,
    )


class TargetUnresolvableError(RuntimeError):
    """Raised by a category resolver when the lookup itself fails."""


@runtime_checkable
class AuditLogRepository(Protocol):
    """Append-only phantom audit trail."""

    def record(self, record: AuditRecord) -> bool:
        """Insert ``record`` unless its key exists; return whether a row was added."""
        ...

    def query(self, criteria: AuditFilter) -> Sequence[AuditRecord]: ...


@runtime_checkable
class CounterRepository(Protocol):
    """Per-user aggregate counters, never negative."""

    def get(self, user_id: int) -> CounterEntry: ...

    def adjust(self, user_id: int, field: CounterField, delta: int) -> CounterAdjustment: ...

    def set(self, entry: CounterEntry) -> None: ...


@runtime_checkable
class CategoryResolver(Protocol):
    def category_of(self, target_id: int) -> int | None: ...


@runtime_checkable
class GroundTruthRepository(Protocol):
    """Authoritative action log queries."""

    def count(
        self,
        user_id: int,
        *,
        excluded_category_ids: Collection[int],
        reaction_type: str,
    ) -> CounterEntry: ...

    def excluded_actions(
        self,
        category_ids: Collection[int],
        *,
        reaction_type: str,
    ) -> Iterable[ExcludedAction]: ...


@runtime_checkable
class NotificationRepository(Protocol):
    def delete_recent(
        self,
        *,
        recipient_id: int,
        kind: NotificationKind,
        target_id: int,
        since: datetime,
    ) -> int: ...


@runtime_checkable
class HistoryRepository(Protocol):
    """User activity history mirror owned by the host."""

    def record(self, event: ReactionEvent) -> bool: ...

    def remove(self, event: ReactionEvent) -> int: ...

    def purge(self, *, kinds: Collection[HistoryKind], category_ids: Collection[int]) -> int: ...
