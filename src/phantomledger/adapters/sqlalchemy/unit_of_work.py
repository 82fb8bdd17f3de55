"""SQLAlchemy-backed unit of work for phantom accounting."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from phantomledger.adapters.sqlalchemy.host_schema import create_host_tables
from phantomledger.adapters.sqlalchemy.mappings import start_mappers
from phantomledger.adapters.sqlalchemy.migrations import upgrade_head
from phantomledger.adapters.sqlalchemy.repositories import (
    SqlAlchemyAuditLogRepository,
    SqlAlchemyCategoryResolver,
    SqlAlchemyCounterRepository,
    SqlAlchemyGroundTruthRepository,
    SqlAlchemyHistoryRepository,
    SqlAlchemyNotificationRepository,
)
from phantomledger.config import get_database_config
from phantomledger.domain.ports.unit_of_work import AccountingRepositories, RepositoryCollection

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import SessionTransaction

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call phantomledger.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
    create_host_schema: bool = False,
) -> None:
    """Initialise the engine, run migrations and build the session factory.

    ``create_host_schema`` also creates the host reference tables; only useful
    against a database that is not already owned by the host forum.
    """

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_engine(
        database_uri or get_database_config().uri, future=True
    )
    start_mappers()
    upgrade_head(engine=resolved_engine)
    if create_host_schema:
        create_host_tables(resolved_engine)

    log.info("SQLAlchemy adapter started on %s", resolved_engine.url.render_as_string())
    _STATE.engine = resolved_engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory: sessionmaker[Session] = session_factory or _STATE.session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def savepoint(self) -> SessionTransaction:
        """Open a SAVEPOINT; leaving it with an exception rolls back to it."""
        return self.session.begin_nested()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyAccountingUnitOfWork(BaseSqlAlchemyUnitOfWork[AccountingRepositories]):
    """Unit of work spanning the audit log, counters and host tables."""

    def _build_repositories(self, session: Session) -> AccountingRepositories:
        return AccountingRepositories(
            audit=SqlAlchemyAuditLogRepository(session),
            counters=SqlAlchemyCounterRepository(session),
            categories=SqlAlchemyCategoryResolver(session),
            ground_truth=SqlAlchemyGroundTruthRepository(session),
            notifications=SqlAlchemyNotificationRepository(session),
            history=SqlAlchemyHistoryRepository(session),
        )


if TYPE_CHECKING:
    from phantomledger.domain.ports.unit_of_work import AccountingUnitOfWork

    _uow_check: AccountingUnitOfWork = SqlAlchemyAccountingUnitOfWork()
