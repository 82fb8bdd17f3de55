"""Exclusion policy: which categories hold phantom reactions, and how they are treated.

A :class:`PolicySnapshot` is one consistent read of the configuration. The gate and
the reconciliation job take exactly one snapshot per unit of work and pass it along
explicitly, so a policy toggle can never split a single event's handling in two.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Final, Protocol

if TYPE_CHECKING:
    from collections.abc import Collection

DEFAULT_NOTIFICATION_WINDOW: Final[timedelta] = timedelta(seconds=30)
DEFAULT_MAIN_REACTION_ID: Final[str] = "heart"

log = getLogger(__name__)


class PolicyUnavailableError(RuntimeError):
    """Raised by a policy source when the configuration cannot be read."""


@dataclass(frozen=True, slots=True)
class VisibilityConfig:
    show_in_history: bool = False
    count_in_aggregate: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class PolicySnapshot:
    excluded_category_ids: frozenset[int] = frozenset()
    visibility: VisibilityConfig = field(default_factory=VisibilityConfig)
    enabled: bool = True
    notification_window: timedelta = DEFAULT_NOTIFICATION_WINDOW
    main_reaction_id: str = DEFAULT_MAIN_REACTION_ID
    hide_like_button: bool = False
    allowed_like_groups: frozenset[int] = frozenset()

    @property
    def active(self) -> bool:
        """False means the gate and the reconciliation job are pass-through."""
        return self.enabled and bool(self.excluded_category_ids)

    def excluded_categories(self) -> frozenset[int]:
        return self.excluded_category_ids if self.active else frozenset()

    def is_excluded(self, category_id: int | None) -> bool:
        if category_id is None:
            return False
        return category_id in self.excluded_categories()

    def may_like(self, category_id: int | None, user_group_ids: Collection[int] = ()) -> bool:
        """Whether a user in ``user_group_ids`` may like a target in ``category_id``."""

        if not self.is_excluded(category_id):
            return True
        if self.hide_like_button:
            return False
        if self.allowed_like_groups:
            return not self.allowed_like_groups.isdisjoint(user_group_ids)
        return True


class PolicySource(Protocol):
    """Callable returning the latest configuration value."""

    def __call__(self) -> PolicySnapshot: ...


class ExclusionPolicy:
    """Reads the current policy from ``source`` on every call, never caching."""

    def __init__(self, source: PolicySource) -> None:
        self._source = source

    def snapshot(self) -> PolicySnapshot:
        try:
            return self._source()
        except PolicyUnavailableError:
            log.warning("Phantom policy unavailable; treating nothing as excluded", exc_info=True)
            return PolicySnapshot()

    def is_excluded(self, category_id: int | None) -> bool:
        return self.snapshot().is_excluded(category_id)

    def excluded_categories(self) -> frozenset[int]:
        return self.snapshot().excluded_categories()
