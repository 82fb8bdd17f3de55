"""Action gate: per-event routing of reactions to history, counters and the audit trail.

Routing for a target in an excluded category, by visibility flags::

    show_in_history  count_in_aggregate   route
    true             true                 FULL           (as if not excluded)
    true             false                HISTORY_ONLY   (counters untouched)
    false            true                 COUNTERS_ONLY  (direct, clamped counter update)
    false            false                SUPPRESSED

Targets outside the exclusion set always take the FULL route; events of a
non-countable kind pass through without side effects. The decision is
computed once by :func:`decide` from a single policy snapshot and then handed to
every side-effect step of :meth:`ActionGate.apply`.
"""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import StrEnum
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Final

from phantomledger.domain.model import (
    AuditRecord,
    Direction,
    Lifecycle,
    NotificationKind,
)
from phantomledger.domain.notifications import NotificationSuppressor, utcnow
from phantomledger.domain.ports.persistence import TargetUnresolvableError

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractContextManager
    from datetime import timedelta

    from phantomledger.domain.model import (
        CounterAdjustment,
        NamedReaction,
        ReactionAction,
        ReactionEvent,
    )
    from phantomledger.domain.notifications import Clock
    from phantomledger.domain.policy import ExclusionPolicy, PolicySnapshot
    from phantomledger.domain.ports.persistence import (
        CategoryResolver,
        CounterRepository,
        HistoryRepository,
    )
    from phantomledger.domain.ports.unit_of_work import AccountingRepositories

log = getLogger(__name__)

type StepScope = Callable[[], AbstractContextManager[object]]


class Route(StrEnum):
    PASS_THROUGH = "pass_through"
    FULL = "full"
    HISTORY_ONLY = "history_only"
    COUNTERS_ONLY = "counters_only"
    SUPPRESSED = "suppressed"


_ROUTES: Final[dict[tuple[bool, bool], Route]] = {
    (True, True): Route.FULL,
    (True, False): Route.HISTORY_ONLY,
    (False, True): Route.COUNTERS_ONLY,
    (False, False): Route.SUPPRESSED,
}


@dataclass(frozen=True, slots=True, kw_only=True)
class GateDecision:
    event: ReactionEvent
    category_id: int | None
    phantom: bool
    route: Route
    record_audit: bool = False
    suppress_notification: bool = False
    notification_window: timedelta | None = None

    @property
    def forwards_history(self) -> bool:
        return self.route in {Route.FULL, Route.HISTORY_ONLY}

    @property
    def touches_counters(self) -> bool:
        return self.route in {Route.FULL, Route.COUNTERS_ONLY}


@dataclass(slots=True)
class GateOutcome:
    """Side effects actually performed for one event."""

    decision: GateDecision
    history_changed: bool = False
    counter: CounterAdjustment | None = None
    audit_inserted: bool = False
    notifications_suppressed: int = 0
    errors: list[str] = field(default_factory=list[str])

    @property
    def ok(self) -> bool:
        return not self.errors


def decide(
    event: ReactionEvent, *, category_id: int | None, policy: PolicySnapshot
) -> GateDecision:
    """Pure routing decision for ``event`` under ``policy``."""

    if not policy.is_excluded(category_id):
        return GateDecision(event=event, category_id=category_id, phantom=False, route=Route.FULL)

    visibility = policy.visibility
    created = event.lifecycle == Lifecycle.CREATED
    suppress = (
        created
        and not visibility.show_in_history
        and event.direction == Direction.RECEIVED
        and event.object_id is not None
    )
    return GateDecision(
        event=event,
        category_id=category_id,
        phantom=True,
        route=_ROUTES[(visibility.show_in_history, visibility.count_in_aggregate)],
        record_audit=created,
        suppress_notification=suppress,
        notification_window=policy.notification_window,
    )


class ActionGate:
    """Registered step of the reaction lifecycle deciding what each event may touch."""

    def __init__(
        self,
        policy: ExclusionPolicy,
        *,
        suppressor: NotificationSuppressor | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._policy = policy
        self._clock = clock
        self._suppressor = suppressor or NotificationSuppressor(clock=clock)

    def observe(
        self,
        action: ReactionAction,
        lifecycle: Lifecycle,
        repositories: AccountingRepositories,
        *,
        step_scope: StepScope = nullcontext,
    ) -> list[GateOutcome]:
        """Evaluate both directional views of ``action`` against one policy snapshot.

        ``step_scope`` wraps every side-effect step; a unit of work passes its
        savepoint factory so one failed step leaves the others intact.
        """

        snapshot = self._policy.snapshot()
        return [
            self.evaluate(event, repositories, snapshot=snapshot, step_scope=step_scope)
            for event in action.events(lifecycle)
        ]

    def evaluate(
        self,
        event: ReactionEvent,
        repositories: AccountingRepositories,
        *,
        snapshot: PolicySnapshot | None = None,
        step_scope: StepScope = nullcontext,
    ) -> GateOutcome:
        if not event.is_countable:
            log.debug("Passing through %r event on target %s", event.reaction_type, event.target_id)
            return GateOutcome(
                decision=GateDecision(
                    event=event,
                    category_id=event.category_id,
                    phantom=False,
                    route=Route.PASS_THROUGH,
                )
            )
        policy = snapshot or self._policy.snapshot()
        category_id = self._resolve_category(
            event.target_id, event.category_id, repositories.categories, policy
        )
        decision = decide(event, category_id=category_id, policy=policy)
        return self.apply(decision, repositories, step_scope=step_scope)

    def apply(
        self,
        decision: GateDecision,
        repositories: AccountingRepositories,
        *,
        step_scope: StepScope = nullcontext,
    ) -> GateOutcome:
        outcome = GateOutcome(decision=decision)
        event = decision.event
        attempt = partial(self._attempt, outcome, step_scope)

        if decision.forwards_history:
            changed = attempt(
                "history", partial(self._forward_history, event, repositories.history)
            )
            outcome.history_changed = bool(changed)

        if decision.touches_counters:
            outcome.counter = attempt(
                "counters", partial(self._adjust_counter, event, repositories.counters)
            )

        if decision.record_audit and decision.category_id is not None:
            record = AuditRecord(
                target_id=event.target_id,
                subject_id=event.subject_id,
                category_id=decision.category_id,
                reaction_type=event.reaction_type,
                created_at=event.occurred_at or self._clock(),
            )
            inserted = attempt("audit", partial(repositories.audit.record, record))
            outcome.audit_inserted = bool(inserted)

        if decision.suppress_notification and event.object_id is not None:
            suppressed = attempt(
                "notification",
                partial(
                    self._suppressor.suppress,
                    repositories.notifications,
                    recipient_id=event.object_id,
                    kind=NotificationKind.LIKED,
                    target_id=event.target_id,
                    within=decision.notification_window,
                ),
            )
            outcome.notifications_suppressed = suppressed or 0

        return outcome

    def observe_named_reaction(
        self,
        reaction: NamedReaction,
        repositories: AccountingRepositories,
        *,
        snapshot: PolicySnapshot | None = None,
        step_scope: StepScope = nullcontext,
    ) -> bool:
        """Record a non-main emoji reaction on an excluded target in the audit trail."""

        policy = snapshot or self._policy.snapshot()
        if reaction.reaction_value == policy.main_reaction_id:
            # the main reaction arrives separately as a like
            return False
        category_id = self._resolve_category(
            reaction.target_id, reaction.category_id, repositories.categories, policy
        )
        if category_id is None or not policy.is_excluded(category_id):
            return False
        record = AuditRecord(
            target_id=reaction.target_id,
            subject_id=reaction.subject_id,
            category_id=category_id,
            reaction_type=reaction.reaction_value,
            created_at=self._clock(),
        )
        try:
            with step_scope():
                return repositories.audit.record(record)
        except Exception:
            log.exception("Failed to record phantom %r reaction", reaction.reaction_value)
            return False

    def _resolve_category(
        self,
        target_id: int,
        category_id: int | None,
        categories: CategoryResolver,
        policy: PolicySnapshot,
    ) -> int | None:
        if category_id is not None or not policy.active:
            return category_id
        try:
            return categories.category_of(target_id)
        except TargetUnresolvableError:
            log.warning(
                "Category of target %s could not be resolved; treating as not excluded",
                target_id,
                exc_info=True,
            )
            return None

    @staticmethod
    def _forward_history(event: ReactionEvent, history: HistoryRepository) -> bool:
        if event.lifecycle == Lifecycle.CREATED:
            return history.record(event)
        return history.remove(event) > 0

    @staticmethod
    def _adjust_counter(
        event: ReactionEvent, counters: CounterRepository
    ) -> CounterAdjustment | None:
        owner_id = event.counter_owner_id
        if owner_id is None:
            return None
        return counters.adjust(owner_id, event.counter_field, event.delta)

    @staticmethod
    def _attempt[T](
        outcome: GateOutcome, step_scope: StepScope, step: str, action: Callable[[], T]
    ) -> T | None:
        try:
            with step_scope():
                return action()
        except Exception:
            log.exception("Gate step %r failed for %s", step, outcome.decision.event)
            outcome.errors.append(step)
            return None
