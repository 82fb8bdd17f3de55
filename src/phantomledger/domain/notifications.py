"""Suppression of the "liked" notification for phantom reactions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from phantomledger.domain.policy import DEFAULT_NOTIFICATION_WINDOW

if TYPE_CHECKING:
    from phantomledger.domain.model import NotificationKind
    from phantomledger.domain.ports.persistence import NotificationRepository

log = getLogger(__name__)


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class NotificationSuppressor:
    """Delete a matching notification created within a short window of now.

    Notification creation is an asynchronous side effect of the same reaction, so it
    may not exist yet or may already be gone; zero matches is a normal outcome.
    """

    window: timedelta = DEFAULT_NOTIFICATION_WINDOW
    clock: Clock = utcnow

    def suppress(
        self,
        notifications: NotificationRepository,
        *,
        recipient_id: int,
        kind: NotificationKind,
        target_id: int,
        within: timedelta | None = None,
    ) -> int:
        effective_window = within if within is not None else self.window
        if effective_window < timedelta(0):
            raise ValueError("Suppression window must be non-negative")
        since = self.clock() - effective_window
        deleted = notifications.delete_recent(
            recipient_id=recipient_id,
            kind=kind,
            target_id=target_id,
            since=since,
        )
        if deleted:
            log.debug(
                "Suppressed %s %s notification(s) for user %s on target %s",
                deleted,
                kind,
                recipient_id,
                target_id,
            )
        return deleted
