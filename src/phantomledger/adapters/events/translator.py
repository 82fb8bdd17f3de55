"""Translate event feed payloads into domain reactions."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from logging import getLogger

from phantomledger.domain.model import Lifecycle, NamedReaction, ReactionAction

from .schema import ReactionActionPayload, ReactionActionPayloadInput

log = getLogger(__name__)


def ensure_payload(raw: ReactionActionPayloadInput) -> ReactionActionPayload:
    if isinstance(raw, ReactionActionPayload):
        return raw
    if isinstance(raw, str | bytes):
        return ReactionActionPayload.model_validate_json(raw)
    if isinstance(raw, Mapping):
        return ReactionActionPayload.model_validate(dict(raw))
    raise TypeError(f"Unsupported payload type: {type(raw).__name__}")


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def parse_lifecycle(raw: ReactionActionPayloadInput) -> Lifecycle:
    return Lifecycle(ensure_payload(raw).lifecycle)


def parse_reaction_action(raw: ReactionActionPayloadInput) -> ReactionAction:
    payload = ensure_payload(raw)
    if payload.is_named_reaction:
        raise ValueError(
            f"Payload {payload.id} is a named reaction; use parse_named_reaction"
        )
    return ReactionAction(
        id=payload.id,
        target_id=payload.post_id,
        subject_id=payload.user_id,
        object_id=payload.post_user_id,
        category_id=payload.category_id,
        reaction_type=payload.action_type,
        created_at=_as_utc(payload.created_at),
        removed_at=_as_utc(payload.deleted_at),
    )


def parse_named_reaction(raw: ReactionActionPayloadInput) -> NamedReaction:
    payload = ensure_payload(raw)
    if payload.reaction is None:
        raise ValueError(f"Payload {payload.id} carries no reaction value")
    return NamedReaction(
        target_id=payload.post_id,
        subject_id=payload.user_id,
        reaction_value=payload.reaction,
        category_id=payload.category_id,
    )
