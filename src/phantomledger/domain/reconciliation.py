"""Reconciliation engine: re-derive audit trail, counters and history from ground truth.

Every step is independently idempotent, so an interrupted run is recovered by
running again; overlapping runs converge to the same end state.

1) backfill the audit trail for excluded likes missing from it
2) collect users appearing on either side of an excluded like
3) overwrite their counters with ground-truth counts (unless excluded likes count)
4) purge the history mirror for excluded likes (unless history stays visible)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from phantomledger.config.sync import DEFAULT_RECONCILE_BATCH_SIZE
from phantomledger.domain.model import LIKE, AuditRecord, HistoryKind
from phantomledger.domain.notifications import utcnow

if TYPE_CHECKING:
    from collections.abc import Callable

    from phantomledger.domain.model import CounterEntry
    from phantomledger.domain.notifications import Clock
    from phantomledger.domain.policy import ExclusionPolicy
    from phantomledger.domain.ports.unit_of_work import AccountingUnitOfWork

log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationReport:
    """Summary of one reconciliation run."""

    audit_rows_inserted: int = 0
    users_recounted: int = 0
    history_rows_purged: int = 0
    affected_users: int = 0
    failed_user_ids: list[int] = field(default_factory=list[int])
    skipped: bool = False


def ground_truth_entry(
    uow: AccountingUnitOfWork,
    user_id: int,
    excluded_category_ids: frozenset[int],
) -> CounterEntry:
    """True given/received like counts for ``user_id`` outside the excluded categories."""

    return uow.repositories.ground_truth.count(
        user_id,
        excluded_category_ids=excluded_category_ids,
        reaction_type=LIKE,
    )


@dataclass(slots=True)
class ReconciliationEngine:
    policy: ExclusionPolicy
    unit_of_work_factory: Callable[[], AccountingUnitOfWork]
    batch_size: int = DEFAULT_RECONCILE_BATCH_SIZE
    clock: Clock = utcnow

    def reconcile(self) -> ReconciliationReport:
        """Run every reconciliation step against the current policy."""

        snapshot = self.policy.snapshot()
        if not snapshot.active:
            log.info("Phantom reconciliation skipped: nothing is excluded")
            return ReconciliationReport(skipped=True)

        excluded = snapshot.excluded_categories()
        report = ReconciliationReport()
        report.audit_rows_inserted = self.backfill(excluded)

        affected = self.affected_users(excluded)
        report.affected_users = len(affected)

        if not snapshot.visibility.count_in_aggregate:
            for user_id in sorted(affected):
                if self.recount(user_id, excluded):
                    report.users_recounted += 1
                else:
                    report.failed_user_ids.append(user_id)
            log.info("Phantom reconciliation recounted %s users", report.users_recounted)

        if not snapshot.visibility.show_in_history:
            report.history_rows_purged = self.purge_history(excluded)
            log.info(
                "Phantom reconciliation purged %s history rows", report.history_rows_purged
            )

        log.info(
            "Phantom reconciliation complete: audit_inserted=%s, recounted=%s, purged=%s, "
            "failed=%s",
            report.audit_rows_inserted,
            report.users_recounted,
            report.history_rows_purged,
            len(report.failed_user_ids),
        )
        return report

    def backfill(self, excluded: frozenset[int]) -> int:
        inserted = 0
        pending = 0
        with self.unit_of_work_factory() as uow:
            repositories = uow.repositories
            now = self.clock()
            for action in repositories.ground_truth.excluded_actions(excluded, reaction_type=LIKE):
                record = AuditRecord(
                    target_id=action.target_id,
                    subject_id=action.subject_id,
                    category_id=action.category_id,
                    reaction_type=action.reaction_type,
                    created_at=now,
                )
                if repositories.audit.record(record):
                    inserted += 1
                    pending += 1
                if pending >= self.batch_size:
                    uow.commit()
                    pending = 0
            uow.commit()
        return inserted

    def affected_users(self, excluded: frozenset[int]) -> set[int]:
        users: set[int] = set()
        with self.unit_of_work_factory() as uow:
            for action in uow.repositories.ground_truth.excluded_actions(
                excluded, reaction_type=LIKE
            ):
                users.add(action.subject_id)
                if action.object_id is not None:
                    users.add(action.object_id)
        return users

    def recount(self, user_id: int, excluded: frozenset[int]) -> bool:
        """Overwrite one user's counters; failures are logged and isolated."""

        try:
            with self.unit_of_work_factory() as uow:
                entry = ground_truth_entry(uow, user_id, excluded)
                uow.repositories.counters.set(entry)
                uow.commit()
        except Exception:
            log.exception("Phantom reconciliation failed to recount user %s", user_id)
            return False
        return True

    def purge_history(self, excluded: frozenset[int]) -> int:
        with self.unit_of_work_factory() as uow:
            purged = uow.repositories.history.purge(
                kinds=(HistoryKind.LIKE, HistoryKind.WAS_LIKED),
                category_ids=excluded,
            )
            uow.commit()
        return purged
