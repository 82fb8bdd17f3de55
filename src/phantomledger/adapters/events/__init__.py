"""Public interface for the reaction event feed adapter."""

from __future__ import annotations

from .schema import ReactionActionPayload, ReactionActionPayloadInput
from .translator import (
    ensure_payload,
    parse_lifecycle,
    parse_named_reaction,
    parse_reaction_action,
)

__all__ = [
    "ReactionActionPayload",
    "ReactionActionPayloadInput",
    "ensure_payload",
    "parse_lifecycle",
    "parse_named_reaction",
    "parse_reaction_action",
]
