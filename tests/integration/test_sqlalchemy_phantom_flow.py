from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import text

from phantomledger.adapters.sqlalchemy.repositories import SqlAlchemyAuditLogRepository
from phantomledger.app import (
    list_phantom_reactions,
    reconcile_phantom_reactions,
    record_named_reaction,
    record_reaction,
    replay_feed,
)
from phantomledger.domain.model import (
    LIKE,
    CounterEntry,
    CounterField,
    Lifecycle,
    NamedReaction,
    ReactionAction,
)
from phantomledger.domain.policy import PolicySnapshot, VisibilityConfig
from tests.helpers.host_rows import (
    add_like,
    add_notification,
    add_post,
    add_topic,
    delete_like,
    history_rows,
    notification_count,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session

    from phantomledger.adapters.policy import StaticPolicySource
    from phantomledger.adapters.sqlalchemy.unit_of_work import SqlAlchemyAccountingUnitOfWork
    from phantomledger.domain.model import AuditRecord, CounterAdjustment
    from phantomledger.domain.policy import ExclusionPolicy

    UnitOfWorkFactory = Callable[[], SqlAlchemyAccountingUnitOfWork]

ALICE = 1
BOB = 2
CATEGORY = 7
REGULAR = 4
PHANTOM_POSTS = (300, 301, 302, 303, 304)
REGULAR_POST = 200
LIKERS = (ALICE, 3, 5, 6, 8, 9, 10, 11, 12, 13)


@pytest.fixture
def forum(sqlite_unit_of_work: UnitOfWorkFactory, sqlite_session: Session) -> Session:
    # Requesting the unit of work first makes its shutdown() run after the session closes.
    del sqlite_unit_of_work
    add_topic(sqlite_session, 1, category_id=CATEGORY)
    add_topic(sqlite_session, 2, category_id=REGULAR)
    for post_id in PHANTOM_POSTS:
        add_post(sqlite_session, post_id, topic_id=1, author_id=BOB)
    add_post(sqlite_session, REGULAR_POST, topic_id=2, author_id=BOB)
    sqlite_session.commit()
    return sqlite_session


def _exclude(
    source: StaticPolicySource,
    *,
    show_in_history: bool = False,
    count_in_aggregate: bool = False,
) -> None:
    source.snapshot = PolicySnapshot(
        excluded_category_ids=frozenset({CATEGORY}),
        visibility=VisibilityConfig(
            show_in_history=show_in_history, count_in_aggregate=count_in_aggregate
        ),
    )


def _host_like(
    session: Session, post_id: int, user_id: int, *, notify: bool = True
) -> ReactionAction:
    action_id = add_like(session, post_id, user_id)
    if notify:
        add_notification(
            session, BOB, post_id, created_at=datetime.now(tz=UTC) - timedelta(seconds=1)
        )
    session.commit()
    return ReactionAction(id=action_id, target_id=post_id, subject_id=user_id, object_id=BOB)


def _counters(uow_factory: UnitOfWorkFactory, user_id: int) -> CounterEntry:
    with uow_factory() as uow:
        return uow.repositories.counters.get(user_id)


@pytest.mark.integration
def test_counted_hidden_like_end_to_end(
    forum: Session,
    sqlite_unit_of_work: UnitOfWorkFactory,
    policy: ExclusionPolicy,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source, show_in_history=False, count_in_aggregate=True)
    action = _host_like(forum, 300, ALICE)

    outcomes = record_reaction(
        action, Lifecycle.CREATED, policy=policy, unit_of_work_factory=sqlite_unit_of_work
    )

    assert all(outcome.ok for outcome in outcomes)
    assert _counters(sqlite_unit_of_work, BOB) == CounterEntry(BOB, received=1)
    assert _counters(sqlite_unit_of_work, ALICE) == CounterEntry(ALICE, given=1)
    assert notification_count(forum) == 0
    assert history_rows(forum) == set()
    records = list_phantom_reactions(unit_of_work_factory=sqlite_unit_of_work)
    assert [(record.target_id, record.subject_id, record.category_id) for record in records] == [
        (300, ALICE, CATEGORY)
    ]


@pytest.mark.integration
def test_history_visible_like_end_to_end(
    forum: Session,
    sqlite_unit_of_work: UnitOfWorkFactory,
    policy: ExclusionPolicy,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source, show_in_history=True, count_in_aggregate=False)
    action = _host_like(forum, 300, ALICE)

    record_reaction(
        action, Lifecycle.CREATED, policy=policy, unit_of_work_factory=sqlite_unit_of_work
    )

    assert _counters(sqlite_unit_of_work, BOB) == CounterEntry(BOB)
    assert notification_count(forum) == 1
    assert history_rows(forum) == {("like", ALICE, ALICE, 300), ("was_liked", BOB, ALICE, 300)}
    assert len(list_phantom_reactions(unit_of_work_factory=sqlite_unit_of_work)) == 1


@pytest.mark.integration
def test_policy_change_then_reconcile(
    forum: Session,
    sqlite_unit_of_work: UnitOfWorkFactory,
    policy: ExclusionPolicy,
    policy_source: StaticPolicySource,
) -> None:
    regular = _host_like(forum, REGULAR_POST, ALICE, notify=False)
    record_reaction(
        regular, Lifecycle.CREATED, policy=policy, unit_of_work_factory=sqlite_unit_of_work
    )
    for index, user_id in enumerate(LIKERS):
        action = _host_like(forum, PHANTOM_POSTS[index % len(PHANTOM_POSTS)], user_id, notify=False)
        record_reaction(
            action, Lifecycle.CREATED, policy=policy, unit_of_work_factory=sqlite_unit_of_work
        )

    _exclude(policy_source)
    assert _counters(sqlite_unit_of_work, BOB).received == 11
    assert _counters(sqlite_unit_of_work, ALICE).given == 2

    report = reconcile_phantom_reactions(
        policy=policy, unit_of_work_factory=sqlite_unit_of_work, batch_size=4
    )

    assert report.audit_rows_inserted == 10
    assert report.failed_user_ids == []
    assert _counters(sqlite_unit_of_work, BOB) == CounterEntry(BOB, received=1)
    assert _counters(sqlite_unit_of_work, ALICE) == CounterEntry(ALICE, given=1)
    assert _counters(sqlite_unit_of_work, 3) == CounterEntry(3)
    assert history_rows(forum) == {
        ("like", ALICE, ALICE, REGULAR_POST),
        ("was_liked", BOB, ALICE, REGULAR_POST),
    }

    second = reconcile_phantom_reactions(policy=policy, unit_of_work_factory=sqlite_unit_of_work)

    assert second.audit_rows_inserted == 0
    assert second.history_rows_purged == 0
    assert _counters(sqlite_unit_of_work, BOB) == CounterEntry(BOB, received=1)


@pytest.mark.integration
def test_removed_likes_drop_out_of_ground_truth(
    forum: Session,
    sqlite_unit_of_work: UnitOfWorkFactory,
    policy: ExclusionPolicy,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source, count_in_aggregate=True)
    action = _host_like(forum, 301, ALICE)
    record_reaction(
        action, Lifecycle.CREATED, policy=policy, unit_of_work_factory=sqlite_unit_of_work
    )
    delete_like(forum, 301, ALICE)
    forum.commit()
    record_reaction(
        action, Lifecycle.REMOVED, policy=policy, unit_of_work_factory=sqlite_unit_of_work
    )

    assert _counters(sqlite_unit_of_work, BOB) == CounterEntry(BOB)
    report = reconcile_phantom_reactions(policy=policy, unit_of_work_factory=sqlite_unit_of_work)
    assert report.affected_users == 0


@pytest.mark.integration
def test_named_reaction_is_audited(
    forum: Session,
    sqlite_unit_of_work: UnitOfWorkFactory,
    policy: ExclusionPolicy,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source)
    reaction = NamedReaction(target_id=302, subject_id=ALICE, reaction_value="clap")

    assert record_named_reaction(
        reaction, policy=policy, unit_of_work_factory=sqlite_unit_of_work
    )

    records = list_phantom_reactions(
        reaction_type="clap", unit_of_work_factory=sqlite_unit_of_work
    )
    assert [record.target_id for record in records] == [302]
    assert list_phantom_reactions(
        reaction_type=LIKE, unit_of_work_factory=sqlite_unit_of_work
    ) == []


@pytest.mark.integration
def test_replay_feed(
    forum: Session,
    sqlite_unit_of_work: UnitOfWorkFactory,
    policy: ExclusionPolicy,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source)
    lines = [
        json.dumps({"id": 9, "post_id": 303, "user_id": 3, "action_type": "bookmark"}),
        json.dumps({"id": 1, "post_id": 303, "user_id": ALICE, "post_user_id": BOB}),
        json.dumps({"id": 2, "post_id": REGULAR_POST, "user_id": ALICE, "post_user_id": BOB}),
        json.dumps({"id": 3, "post_id": 304, "user_id": 3, "reaction": "tada"}),
        "",
        "{not json",
    ]

    summary = replay_feed(lines, policy=policy, unit_of_work_factory=sqlite_unit_of_work)

    assert summary.processed == 4
    assert summary.phantom == 1
    assert summary.named_recorded == 1
    assert summary.invalid == 1
    assert summary.step_errors == []
    assert _counters(sqlite_unit_of_work, BOB) == CounterEntry(BOB, received=1)
    assert _counters(sqlite_unit_of_work, ALICE) == CounterEntry(ALICE, given=1)


@pytest.mark.integration
def test_failed_audit_step_keeps_counter_change(
    forum: Session,
    sqlite_unit_of_work: UnitOfWorkFactory,
    policy: ExclusionPolicy,
    policy_source: StaticPolicySource,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def broken_record(self: SqlAlchemyAuditLogRepository, record: AuditRecord) -> bool:
        self.session.execute(text("INSERT INTO missing_audit_table (id) VALUES (1)"))
        return True

    monkeypatch.setattr(SqlAlchemyAuditLogRepository, "record", broken_record)
    _exclude(policy_source, show_in_history=False, count_in_aggregate=True)
    action = _host_like(forum, 300, ALICE)

    outcomes = record_reaction(
        action, Lifecycle.CREATED, policy=policy, unit_of_work_factory=sqlite_unit_of_work
    )

    assert [outcome.errors for outcome in outcomes] == [["audit"], ["audit"]]
    assert _counters(sqlite_unit_of_work, BOB) == CounterEntry(BOB, received=1)
    assert _counters(sqlite_unit_of_work, ALICE) == CounterEntry(ALICE, given=1)
    assert notification_count(forum) == 0
    assert list_phantom_reactions(unit_of_work_factory=sqlite_unit_of_work) == []


@pytest.mark.integration
def test_counter_never_goes_below_zero(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    deltas = [1, -1, -1, 1, -1, -1, -1, 1]
    adjustments: list[CounterAdjustment] = []
    for delta in deltas:
        with sqlite_unit_of_work() as uow:
            adjustments.append(uow.repositories.counters.adjust(BOB, CounterField.RECEIVED, delta))
            uow.commit()

    assert [adjustment.value for adjustment in adjustments] == [1, 0, 0, 1, 0, 0, 0, 1]
    assert [adjustment.clamped for adjustment in adjustments] == [
        False,
        False,
        True,
        False,
        False,
        True,
        True,
        False,
    ]
    assert _counters(sqlite_unit_of_work, BOB) == CounterEntry(BOB, received=1)
