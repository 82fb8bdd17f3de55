from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from phantomledger.domain.gate import ActionGate
from phantomledger.domain.model import LIKE, CounterEntry, HistoryKind
from phantomledger.domain.policy import PolicySnapshot, VisibilityConfig
from phantomledger.domain.reconciliation import ReconciliationEngine
from tests.helpers.accounting import FakeStores, FakeUnitOfWork, fixed_clock, like, unlike

if TYPE_CHECKING:
    from collections.abc import Callable

    from phantomledger.adapters.policy import StaticPolicySource
    from phantomledger.domain.policy import ExclusionPolicy

ALICE = 1
BOB = 2
CAROL = 3
CATEGORY = 7
REGULAR = 4
REGULAR_POST = 200
LIKERS_BY_POST = {
    300: (ALICE, CAROL),
    301: (ALICE, CAROL),
    302: (5, 6),
    303: (5, 6),
    304: (8, ALICE),
}
AFFECTED = {ALICE, BOB, CAROL, 5, 6, 8}


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


@pytest.fixture
def counted_forum(stores: FakeStores, gate: ActionGate) -> FakeStores:
    """Ten likes in CATEGORY and one regular like, all counted before any exclusion."""

    stores.forum.add_post(REGULAR_POST, author_id=BOB, category_id=REGULAR)
    for post_id in LIKERS_BY_POST:
        stores.forum.add_post(post_id, author_id=BOB, category_id=CATEGORY)
    like(stores, gate, REGULAR_POST, ALICE)
    for post_id, likers in LIKERS_BY_POST.items():
        for user_id in likers:
            like(stores, gate, post_id, user_id)
    return stores


@pytest.fixture
def engine(
    policy: ExclusionPolicy, fake_unit_of_work: Callable[[], FakeUnitOfWork]
) -> ReconciliationEngine:
    return ReconciliationEngine(
        policy=policy, unit_of_work_factory=fake_unit_of_work, clock=fixed_clock
    )


def _assert_matches_ground_truth(stores: FakeStores, excluded: frozenset[int]) -> None:
    for user_id in AFFECTED:
        expected = stores.ground_truth.count(
            user_id, excluded_category_ids=excluded, reaction_type=LIKE
        )
        assert stores.counters.get(user_id) == expected


def test_policy_change_is_corrected_by_reconciliation(
    counted_forum: FakeStores,
    engine: ReconciliationEngine,
    policy_source: StaticPolicySource,
) -> None:
    stores = counted_forum
    _exclude(policy_source)

    # nothing changes until the job runs
    assert stores.counters.get(BOB).received == 11
    assert stores.counters.get(ALICE).given == 4

    report = engine.reconcile()

    assert report.audit_rows_inserted == 10
    assert report.affected_users == len(AFFECTED)
    assert report.users_recounted == len(AFFECTED)
    assert report.failed_user_ids == []
    assert stores.counters.get(BOB) == CounterEntry(BOB, received=1)
    assert stores.counters.get(ALICE) == CounterEntry(ALICE, given=1)
    for user_id in (CAROL, 5, 6, 8):
        assert stores.counters.get(user_id) == CounterEntry(user_id)
    assert report.history_rows_purged == 20
    assert stores.history.kinds_for(REGULAR_POST) == {HistoryKind.LIKE, HistoryKind.WAS_LIKED}
    assert all(stores.history.kinds_for(post_id) == set() for post_id in LIKERS_BY_POST)


def test_second_run_is_a_fixed_point(
    counted_forum: FakeStores,
    engine: ReconciliationEngine,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source)
    engine.reconcile()
    counters_after_first = dict(counted_forum.counters.entries)
    audit_after_first = set(counted_forum.audit.records)

    report = engine.reconcile()

    assert report.audit_rows_inserted == 0
    assert report.history_rows_purged == 0
    assert counted_forum.counters.entries == counters_after_first
    assert set(counted_forum.audit.records) == audit_after_first


def test_reconciliation_converges_after_drift(
    counted_forum: FakeStores,
    gate: ActionGate,
    engine: ReconciliationEngine,
    policy_source: StaticPolicySource,
) -> None:
    stores = counted_forum
    _exclude(policy_source, count_in_aggregate=False)
    unlike(stores, gate, 300, ALICE)
    like(stores, gate, 300, ALICE)
    unlike(stores, gate, 302, 5)
    # lost updates
    stores.counters.set(CounterEntry(BOB, received=42))
    stores.counters.set(CounterEntry(CAROL, given=0, received=3))

    engine.reconcile()

    _assert_matches_ground_truth(stores, frozenset({CATEGORY}))


def test_counted_exclusion_skips_recount_but_purges_history(
    counted_forum: FakeStores,
    engine: ReconciliationEngine,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source, show_in_history=False, count_in_aggregate=True)

    report = engine.reconcile()

    assert report.users_recounted == 0
    assert counted_forum.counters.get(BOB).received == 11
    assert report.history_rows_purged == 20
    assert report.audit_rows_inserted == 10


def test_visible_history_is_kept(
    counted_forum: FakeStores,
    engine: ReconciliationEngine,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source, show_in_history=True, count_in_aggregate=False)

    report = engine.reconcile()

    assert report.history_rows_purged == 0
    assert counted_forum.history.kinds_for(300) == {HistoryKind.LIKE, HistoryKind.WAS_LIKED}
    assert counted_forum.counters.get(BOB).received == 1


def test_inactive_policy_skips_every_step(
    counted_forum: FakeStores, engine: ReconciliationEngine
) -> None:
    report = engine.reconcile()

    assert report.skipped
    assert counted_forum.audit.records == {}
    assert counted_forum.counters.get(BOB).received == 11


def test_failing_user_is_isolated(
    counted_forum: FakeStores,
    engine: ReconciliationEngine,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source)
    counted_forum.counters.failing_users.add(CAROL)

    report = engine.reconcile()

    assert report.failed_user_ids == [CAROL]
    assert report.users_recounted == len(AFFECTED) - 1
    assert counted_forum.counters.get(CAROL).given == 2
    assert counted_forum.counters.get(BOB).received == 1


def test_backfill_commits_in_batches(
    counted_forum: FakeStores,
    policy: ExclusionPolicy,
    policy_source: StaticPolicySource,
) -> None:
    _exclude(policy_source)
    created: list[FakeUnitOfWork] = []

    def factory() -> FakeUnitOfWork:
        uow = FakeUnitOfWork(counted_forum)
        created.append(uow)
        return uow

    engine = ReconciliationEngine(
        policy=policy, unit_of_work_factory=factory, batch_size=3, clock=fixed_clock
    )

    inserted = engine.backfill(frozenset({CATEGORY}))

    assert inserted == 10
    # three full batches plus the final commit
    assert created[0].committed == 4
    records = counted_forum.audit.records.values()
    assert all(record.created_at == fixed_clock() for record in records)
