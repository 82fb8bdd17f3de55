"""Policy source reading the host's plugin settings table."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Final

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from phantomledger.adapters.sqlalchemy.host_schema import plugin_setting_table
from phantomledger.config import ConfigurationError, parse_policy
from phantomledger.domain.policy import PolicySnapshot, PolicyUnavailableError

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

SETTING_PREFIX: Final[str] = "phantom_"


class SqlAlchemyPolicySource:
    """Read ``phantom_*`` rows from ``plugin_setting`` on every call.

    Each call opens its own short connection so a settings change made by an
    administrator is seen by the very next event.
    """

    def __init__(self, engine: Engine, *, prefix: str = SETTING_PREFIX) -> None:
        self.engine = engine
        self.prefix = prefix

    def __call__(self) -> PolicySnapshot:
        columns = plugin_setting_table.c
        stmt = select(columns.name, columns.value).where(columns.name.startswith(self.prefix))
        try:
            with self.engine.connect() as connection:
                rows = connection.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise PolicyUnavailableError("Could not read plugin settings") from exc

        values = {
            name.removeprefix(self.prefix).lower(): value
            for name, value in rows
            if value is not None
        }
        log.debug("Loaded %d phantom settings from the database", len(values))
        try:
            return parse_policy(values)
        except ConfigurationError as exc:
            raise PolicyUnavailableError(str(exc)) from exc


if TYPE_CHECKING:
    from typing import cast

    from phantomledger.domain.policy import PolicySource

    _source_check: PolicySource = SqlAlchemyPolicySource(cast("Engine", object()))
