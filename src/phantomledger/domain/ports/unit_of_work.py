"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from contextlib import AbstractContextManager
    from types import TracebackType

    from phantomledger.domain.ports.persistence import (
        AuditLogRepository,
        CategoryResolver,
        CounterRepository,
        GroundTruthRepository,
        HistoryRepository,
        NotificationRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def savepoint(self) -> AbstractContextManager[object]:
        """Scope one side-effect step; a failure inside rolls back only that step."""
        ...


@dataclass(slots=True)
class AccountingRepositories(RepositoryCollection):
    """Everything the gate and the reconciliation job touch."""

    audit: AuditLogRepository
    counters: CounterRepository
    categories: CategoryResolver
    ground_truth: GroundTruthRepository
    notifications: NotificationRepository
    history: HistoryRepository


type AccountingUnitOfWork = UnitOfWork[AccountingRepositories]
