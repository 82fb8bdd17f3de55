from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from phantomledger.adapters.policy import StaticPolicySource
from phantomledger.adapters.sqlalchemy import create_host_tables, start_mappers
from phantomledger.adapters.sqlalchemy.migrations import upgrade_head
from phantomledger.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyAccountingUnitOfWork,
    shutdown,
    startup,
)
from phantomledger.domain.gate import ActionGate
from phantomledger.domain.notifications import NotificationSuppressor
from phantomledger.domain.policy import ExclusionPolicy, PolicySnapshot
from tests.helpers.accounting import FakeStores, FakeUnitOfWork, fixed_clock

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    create_host_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyAccountingUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyAccountingUnitOfWork:
        return SqlAlchemyAccountingUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def policy_source() -> StaticPolicySource:
    """Mutable policy: tests flip ``policy_source.snapshot`` to change configuration."""

    return StaticPolicySource(PolicySnapshot())


@pytest.fixture
def policy(policy_source: StaticPolicySource) -> ExclusionPolicy:
    return ExclusionPolicy(policy_source)


@pytest.fixture
def stores() -> FakeStores:
    return FakeStores()


@pytest.fixture
def fake_unit_of_work(stores: FakeStores) -> Callable[[], FakeUnitOfWork]:
    def factory() -> FakeUnitOfWork:
        return FakeUnitOfWork(stores)

    return factory


@pytest.fixture
def gate(policy: ExclusionPolicy) -> ActionGate:
    return ActionGate(
        policy,
        suppressor=NotificationSuppressor(clock=fixed_clock),
        clock=fixed_clock,
    )
