"""Audit records for phantom (excluded) reactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import LIKE


@dataclass(eq=False, kw_only=True)
class AuditRecord:
    """Immutable trail entry: one per (target, subject, reaction type)."""

    target_id: int
    subject_id: int
    category_id: int
    reaction_type: str = LIKE
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    id: int | None = None

    @property
    def key(self) -> tuple[int, int, str]:
        return (self.target_id, self.subject_id, self.reaction_type)


@dataclass(frozen=True, slots=True, kw_only=True)
class AuditFilter:
    """Inspection criteria; unset fields do not constrain the result."""

    category_ids: frozenset[int] | None = None
    user_id: int | None = None
    reaction_type: str | None = None
    limit: int | None = None

    def matches(self, record: AuditRecord) -> bool:
        if self.category_ids is not None and record.category_id not in self.category_ids:
            return False
        if self.user_id is not None and record.subject_id != self.user_id:
            return False
        return self.reaction_type is None or record.reaction_type == self.reaction_type
