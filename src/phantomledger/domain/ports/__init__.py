"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    AuditLogRepository,
    CategoryResolver,
    CounterRepository,
    GroundTruthRepository,
    HistoryRepository,
    NotificationRepository,
    TargetUnresolvableError,
)
from .unit_of_work import (
    AccountingRepositories,
    AccountingUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "AccountingRepositories",
    "AccountingUnitOfWork",
    "AuditLogRepository",
    "CategoryResolver",
    "CounterRepository",
    "GroundTruthRepository",
    "HistoryRepository",
    "NotificationRepository",
    "RepositoryCollection",
    "TargetUnresolvableError",
    "UnitOfWork",
]
