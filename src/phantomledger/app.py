"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from phantomledger.adapters.events import (
    ensure_payload,
    parse_lifecycle,
    parse_named_reaction,
    parse_reaction_action,
)
from phantomledger.adapters.policy import EnvironmentPolicySource
from phantomledger.adapters.sqlalchemy import (
    SqlAlchemyAccountingUnitOfWork,
    SqlAlchemyPolicySource,
    StartupError,
    configured_engine,
    is_started,
    startup,
)
from phantomledger.config import get_policy_source_name, get_reconcile_config
from phantomledger.domain.gate import ActionGate
from phantomledger.domain.model import AuditFilter
from phantomledger.domain.policy import ExclusionPolicy
from phantomledger.domain.ports.unit_of_work import AccountingUnitOfWork
from phantomledger.domain.reconciliation import ReconciliationEngine

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Sequence

    from phantomledger.config.phantoms import PolicySourceName
    from phantomledger.domain.gate import GateOutcome
    from phantomledger.domain.model import (
        AuditRecord,
        Lifecycle,
        NamedReaction,
        ReactionAction,
    )
    from phantomledger.domain.policy import PolicySnapshot, PolicySource
    from phantomledger.domain.reconciliation import ReconciliationReport

UnitOfWorkFactory = Callable[[], AccountingUnitOfWork]


log = getLogger(__name__)


@dataclass(slots=True)
class ReplaySummary:
    """Counts from feeding a batch of payloads through the gate."""

    processed: int = 0
    phantom: int = 0
    named_recorded: int = 0
    invalid: int = 0
    step_errors: list[str] = field(default_factory=list[str])


def ensure_started(*, database_uri: str | None = None, create_host_schema: bool = False) -> None:
    """Start the SQLAlchemy adapter once per process."""

    if is_started():
        return
    startup(database_uri=database_uri, create_host_schema=create_host_schema)


def build_policy(source_name: PolicySourceName | None = None) -> ExclusionPolicy:
    """Exclusion policy reading either ``PHANTOMLEDGER_*`` variables or plugin settings."""

    name = source_name or get_policy_source_name()
    source: PolicySource
    if name == "database":
        engine = configured_engine()
        if engine is None:
            ensure_started()
            engine = configured_engine()
        if engine is None:
            raise StartupError("Database policy source requested but no engine is configured")
        source = SqlAlchemyPolicySource(engine)
    else:
        source = EnvironmentPolicySource()
    log.debug("Using %s policy source", name)
    return ExclusionPolicy(source)


def _resolve(
    policy: ExclusionPolicy | None,
    unit_of_work_factory: UnitOfWorkFactory | None,
) -> tuple[ExclusionPolicy, UnitOfWorkFactory]:
    if unit_of_work_factory is None:
        ensure_started()
        unit_of_work_factory = SqlAlchemyAccountingUnitOfWork
    return policy or build_policy(), unit_of_work_factory


def record_reaction(
    action: ReactionAction,
    lifecycle: Lifecycle,
    *,
    policy: ExclusionPolicy | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[GateOutcome]:
    """Route both views of ``action`` through the gate and commit the side effects."""

    effective_policy, effective_uow = _resolve(policy, unit_of_work_factory)
    gate = ActionGate(effective_policy)
    with effective_uow() as uow:
        outcomes = gate.observe(action, lifecycle, uow.repositories, step_scope=uow.savepoint)
        uow.commit()

    for outcome in outcomes:
        if outcome.decision.phantom:
            log.debug(
                "Phantom %s %s on target %s routed %s",
                outcome.decision.event.direction,
                lifecycle,
                action.target_id,
                outcome.decision.route,
            )
    return outcomes


def record_named_reaction(
    reaction: NamedReaction,
    *,
    policy: ExclusionPolicy | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> bool:
    """Audit a non-main emoji reaction placed on an excluded target."""

    effective_policy, effective_uow = _resolve(policy, unit_of_work_factory)
    gate = ActionGate(effective_policy)
    with effective_uow() as uow:
        recorded = gate.observe_named_reaction(
            reaction, uow.repositories, step_scope=uow.savepoint
        )
        uow.commit()
    return recorded


def replay_feed(
    payloads: Iterable[str | bytes],
    *,
    policy: ExclusionPolicy | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ReplaySummary:
    """Feed serialized reaction payloads through the gate, one unit of work each.

    Blank lines are ignored; invalid payloads are logged and counted, never fatal.
    """

    effective_policy, effective_uow = _resolve(policy, unit_of_work_factory)
    summary = ReplaySummary()
    for number, raw in enumerate(payloads, start=1):
        if not raw.strip():
            continue
        try:
            payload = ensure_payload(raw)
        except ValueError:
            log.warning("Skipping invalid payload on line %s", number, exc_info=True)
            summary.invalid += 1
            continue

        summary.processed += 1
        if payload.is_named_reaction:
            if record_named_reaction(
                parse_named_reaction(payload),
                policy=effective_policy,
                unit_of_work_factory=effective_uow,
            ):
                summary.named_recorded += 1
            continue

        outcomes = record_reaction(
            parse_reaction_action(payload),
            parse_lifecycle(payload),
            policy=effective_policy,
            unit_of_work_factory=effective_uow,
        )
        if any(outcome.decision.phantom for outcome in outcomes):
            summary.phantom += 1
        for outcome in outcomes:
            summary.step_errors.extend(outcome.errors)

    log.info(
        "Replayed %s payloads: phantom=%s, named=%s, invalid=%s, step_errors=%s",
        summary.processed,
        summary.phantom,
        summary.named_recorded,
        summary.invalid,
        len(summary.step_errors),
    )
    return summary


def reconcile_phantom_reactions(
    *,
    policy: ExclusionPolicy | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    batch_size: int | None = None,
) -> ReconciliationReport:
    """Run the reconciliation job once against the current policy."""

    effective_policy, effective_uow = _resolve(policy, unit_of_work_factory)
    engine = ReconciliationEngine(
        policy=effective_policy,
        unit_of_work_factory=effective_uow,
        batch_size=batch_size or get_reconcile_config().batch_size,
    )
    log.info("Starting phantom reconciliation: batch_size=%s", engine.batch_size)
    return engine.reconcile()


def list_phantom_reactions(
    *,
    category_ids: Collection[int] | None = None,
    user_id: int | None = None,
    reaction_type: str | None = None,
    limit: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Sequence[AuditRecord]:
    """Query the audit trail, newest first."""

    if unit_of_work_factory is None:
        ensure_started()
        unit_of_work_factory = SqlAlchemyAccountingUnitOfWork
    criteria = AuditFilter(
        category_ids=frozenset(category_ids) if category_ids is not None else None,
        user_id=user_id,
        reaction_type=reaction_type,
        limit=limit,
    )
    with unit_of_work_factory() as uow:
        return uow.repositories.audit.query(criteria)


def current_policy(policy: ExclusionPolicy | None = None) -> PolicySnapshot:
    return (policy or build_policy()).snapshot()


def can_like(
    category_id: int | None,
    user_group_ids: Collection[int] = (),
    *,
    policy: ExclusionPolicy | None = None,
) -> bool:
    """Whether a member of ``user_group_ids`` may like a target in ``category_id``."""

    return current_policy(policy).may_like(category_id, user_group_ids)
