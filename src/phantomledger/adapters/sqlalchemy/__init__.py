"""SQLAlchemy adapter package for phantomledger."""

from __future__ import annotations

from .host_schema import create_host_tables, host_metadata
from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAuditLogRepository,
    SqlAlchemyCategoryResolver,
    SqlAlchemyCounterRepository,
    SqlAlchemyGroundTruthRepository,
    SqlAlchemyHistoryRepository,
    SqlAlchemyNotificationRepository,
)
from .settings import SqlAlchemyPolicySource
from .unit_of_work import (
    SqlAlchemyAccountingUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAccountingUnitOfWork",
    "SqlAlchemyAuditLogRepository",
    "SqlAlchemyCategoryResolver",
    "SqlAlchemyCounterRepository",
    "SqlAlchemyGroundTruthRepository",
    "SqlAlchemyHistoryRepository",
    "SqlAlchemyNotificationRepository",
    "SqlAlchemyPolicySource",
    "StartupError",
    "configured_engine",
    "create_host_tables",
    "host_metadata",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
