"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from phantomledger.adapters.sqlalchemy.host_schema import (
    HISTORY_KEY_COLUMNS,
    notification_table,
    post_action_table,
    post_table,
    topic_table,
    user_action_table,
)
from phantomledger.adapters.sqlalchemy.mappings import (
    AUDIT_KEY_COLUMNS,
    phantom_reaction_table,
    user_stat_table,
)
from phantomledger.domain.model import (
    AuditRecord,
    CounterAdjustment,
    CounterEntry,
    ExcludedAction,
)
from phantomledger.domain.ports.persistence import TargetUnresolvableError

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping, Sequence

    from sqlalchemy import ColumnElement, FromClause, Table
    from sqlalchemy.engine import CursorResult
    from sqlalchemy.orm import Session

    from phantomledger.domain.model import (
        AuditFilter,
        CounterField,
        HistoryKind,
        NotificationKind,
        ReactionEvent,
    )

log = logging.getLogger(__name__)


def _rowcount(result: object) -> int:
    return cast("CursorResult[Any]", result).rowcount


def insert_ignoring_conflicts(
    session: Session,
    table: Table,
    values: Mapping[str, object],
    *,
    index_elements: Sequence[str],
) -> bool:
    """Insert one row unless it collides with ``index_elements``; return whether it landed."""

    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        stmt = (
            sqlite_insert(table).values(dict(values)).on_conflict_do_nothing(
                index_elements=list(index_elements)
            )
        )
    elif dialect == "postgresql":
        stmt = (
            postgresql_insert(table).values(dict(values)).on_conflict_do_nothing(
                index_elements=list(index_elements)
            )
        )
    else:
        stmt = table.insert().values(dict(values)).prefix_with("IGNORE")
    return _rowcount(session.execute(stmt)) > 0


class SqlAlchemyAuditLogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def record(self, record: AuditRecord) -> bool:
        return insert_ignoring_conflicts(
            self.session,
            phantom_reaction_table,
            {
                "post_id": record.target_id,
                "user_id": record.subject_id,
                "category_id": record.category_id,
                "reaction_type": record.reaction_type,
                "created_at": record.created_at,
                "updated_at": record.created_at,
            },
            index_elements=AUDIT_KEY_COLUMNS,
        )

    def query(self, criteria: AuditFilter) -> Sequence[AuditRecord]:
        columns = phantom_reaction_table.c
        stmt = select(AuditRecord)
        if criteria.category_ids is not None:
            stmt = stmt.where(columns.category_id.in_(sorted(criteria.category_ids)))
        if criteria.user_id is not None:
            stmt = stmt.where(columns.user_id == criteria.user_id)
        if criteria.reaction_type is not None:
            stmt = stmt.where(columns.reaction_type == criteria.reaction_type)
        stmt = stmt.order_by(columns.created_at.desc(), columns.id.desc())
        if criteria.limit is not None:
            stmt = stmt.limit(criteria.limit)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyCounterRepository:
    """Counters mutated with single-row conditional updates; no application locks."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> CounterEntry:
        columns = user_stat_table.c
        row = self.session.execute(
            select(columns.likes_given, columns.likes_received).where(columns.user_id == user_id)
        ).one_or_none()
        if row is None:
            return CounterEntry(user_id)
        given, received = row
        return CounterEntry(user_id, given=given, received=received)

    def adjust(self, user_id: int, field: CounterField, delta: int) -> CounterAdjustment:
        columns = user_stat_table.c
        column = columns[field.value]
        self._ensure_row(user_id)
        current = columns.user_id == user_id
        previous = self.session.execute(select(column).where(current)).scalar_one()
        # clamped within the same UPDATE as the increment
        self.session.execute(
            update(user_stat_table)
            .where(current)
            .values({column: case((column + delta < 0, 0), else_=column + delta)})
        )
        clamped = previous + delta < 0
        if clamped:
            log.warning(
                "Clamped %s for user %s to zero (delta=%s); counters have drifted",
                field.value,
                user_id,
                delta,
            )
        value = self.session.execute(select(column).where(current)).scalar_one()
        return CounterAdjustment(
            user_id=user_id, field=field, delta=delta, value=value, clamped=clamped
        )

    def set(self, entry: CounterEntry) -> None:
        columns = user_stat_table.c
        self._ensure_row(entry.user_id)
        self.session.execute(
            update(user_stat_table)
            .where(columns.user_id == entry.user_id)
            .values(likes_given=entry.given, likes_received=entry.received)
        )

    def _ensure_row(self, user_id: int) -> None:
        insert_ignoring_conflicts(
            self.session,
            user_stat_table,
            {"user_id": user_id, "likes_given": 0, "likes_received": 0},
            index_elements=("user_id",),
        )


def _live_reactions(reaction_type: str) -> tuple[FromClause, list[ColumnElement[bool]]]:
    """Join of undeleted reactions on undeleted posts in undeleted topics."""

    source = post_action_table.join(
        post_table,
        and_(post_table.c.id == post_action_table.c.post_id, post_table.c.deleted_at.is_(None)),
    ).join(
        topic_table,
        and_(topic_table.c.id == post_table.c.topic_id, topic_table.c.deleted_at.is_(None)),
    )
    conditions = [
        post_action_table.c.action_type == reaction_type,
        post_action_table.c.deleted_at.is_(None),
    ]
    return source, conditions


class SqlAlchemyCategoryResolver:
    def __init__(self, session: Session) -> None:
        self.session = session

    def category_of(self, target_id: int) -> int | None:
        stmt = (
            select(topic_table.c.category_id)
            .select_from(post_table.join(topic_table, topic_table.c.id == post_table.c.topic_id))
            .where(
                post_table.c.id == target_id,
                post_table.c.deleted_at.is_(None),
                topic_table.c.deleted_at.is_(None),
            )
        )
        try:
            return self.session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise TargetUnresolvableError(f"Could not resolve category of {target_id}") from exc


class SqlAlchemyGroundTruthRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def count(
        self,
        user_id: int,
        *,
        excluded_category_ids: Collection[int],
        reaction_type: str,
    ) -> CounterEntry:
        given = self._count(
            post_action_table.c.user_id == user_id, excluded_category_ids, reaction_type
        )
        received = self._count(
            post_table.c.user_id == user_id, excluded_category_ids, reaction_type
        )
        return CounterEntry(user_id, given=given, received=received)

    def excluded_actions(
        self,
        category_ids: Collection[int],
        *,
        reaction_type: str,
    ) -> list[ExcludedAction]:
        if not category_ids:
            return []
        source, conditions = _live_reactions(reaction_type)
        stmt = (
            select(
                post_action_table.c.post_id,
                post_action_table.c.user_id,
                post_table.c.user_id.label("author_id"),
                topic_table.c.category_id,
            )
            .select_from(source)
            .where(*conditions, topic_table.c.category_id.in_(sorted(category_ids)))
            .order_by(post_action_table.c.id)
        )
        return [
            ExcludedAction(
                target_id=post_id,
                subject_id=subject_id,
                object_id=author_id,
                category_id=category_id,
                reaction_type=reaction_type,
            )
            for post_id, subject_id, author_id, category_id in self.session.execute(stmt)
        ]

    def _count(
        self,
        owner: ColumnElement[bool],
        excluded_category_ids: Collection[int],
        reaction_type: str,
    ) -> int:
        source, conditions = _live_reactions(reaction_type)
        stmt = select(func.count()).select_from(source).where(owner, *conditions)
        if excluded_category_ids:
            category = topic_table.c.category_id
            stmt = stmt.where(
                or_(category.is_(None), category.not_in(sorted(excluded_category_ids)))
            )
        return int(self.session.execute(stmt).scalar_one())


class SqlAlchemyNotificationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def delete_recent(
        self,
        *,
        recipient_id: int,
        kind: NotificationKind,
        target_id: int,
        since: datetime,
    ) -> int:
        columns = notification_table.c
        stmt = delete(notification_table).where(
            columns.user_id == recipient_id,
            columns.notification_type == kind,
            columns.post_id == target_id,
            columns.created_at >= since,
        )
        return _rowcount(self.session.execute(stmt))


class SqlAlchemyHistoryRepository:
    """Activity history rows: ``like`` for the actor, ``was_liked`` for the author."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def record(self, event: ReactionEvent) -> bool:
        owner_id = event.counter_owner_id
        if owner_id is None:
            return False
        return insert_ignoring_conflicts(
            self.session,
            user_action_table,
            {
                "action_type": event.history_kind,
                "user_id": owner_id,
                "acting_user_id": event.subject_id,
                "target_post_id": event.target_id,
                "created_at": event.occurred_at or datetime.now(tz=UTC),
            },
            index_elements=HISTORY_KEY_COLUMNS,
        )

    def remove(self, event: ReactionEvent) -> int:
        owner_id = event.counter_owner_id
        if owner_id is None:
            return 0
        columns = user_action_table.c
        stmt = delete(user_action_table).where(
            columns.action_type == event.history_kind,
            columns.user_id == owner_id,
            columns.acting_user_id == event.subject_id,
            columns.target_post_id == event.target_id,
        )
        return _rowcount(self.session.execute(stmt))

    def purge(self, *, kinds: Collection[HistoryKind], category_ids: Collection[int]) -> int:
        if not kinds or not category_ids:
            return 0
        excluded_posts = (
            select(post_table.c.id)
            .select_from(post_table.join(topic_table, topic_table.c.id == post_table.c.topic_id))
            .where(topic_table.c.category_id.in_(sorted(category_ids)))
        )
        columns = user_action_table.c
        stmt = delete(user_action_table).where(
            columns.action_type.in_(list(kinds)),
            columns.target_post_id.in_(excluded_posts),
        )
        return _rowcount(self.session.execute(stmt))


if TYPE_CHECKING:
    from phantomledger.domain.ports.persistence import (
        AuditLogRepository,
        CategoryResolver,
        CounterRepository,
        GroundTruthRepository,
        HistoryRepository,
        NotificationRepository,
    )

    _session_stub = cast("Session", object())
    _audit_check: AuditLogRepository = SqlAlchemyAuditLogRepository(_session_stub)
    _counter_check: CounterRepository = SqlAlchemyCounterRepository(_session_stub)
    _category_check: CategoryResolver = SqlAlchemyCategoryResolver(_session_stub)
    _truth_check: GroundTruthRepository = SqlAlchemyGroundTruthRepository(_session_stub)
    _notification_check: NotificationRepository = SqlAlchemyNotificationRepository(_session_stub)
    _history_check: HistoryRepository = SqlAlchemyHistoryRepository(_session_stub)
