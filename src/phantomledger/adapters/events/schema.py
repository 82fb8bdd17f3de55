"""Pydantic models describing reaction payloads from the host's event feed."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from phantomledger.domain.model import LIKE

type ReactionActionPayloadInput = ReactionActionPayload | Mapping[str, object] | str | bytes


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class FeedBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class ReactionActionPayload(FeedBaseModel):
    """One reaction lifecycle notification.

    A plain like carries ``action_type == "like"``; an emoji reaction carries its
    value in ``reaction`` instead.
    """

    id: int = Field(ge=0)
    post_id: int = Field(gt=0)
    user_id: int = Field(gt=0)
    post_user_id: int | None = Field(default=None, alias="author_id")
    category_id: int | None = None
    action_type: str = LIKE
    reaction: str | None = None
    lifecycle: Literal["created", "removed"] = "created"
    created_at: datetime | None = None
    deleted_at: datetime | None = None

    _normalize_reaction = field_validator("reaction", mode="before")(_blank_to_none)

    @field_validator("category_id", "post_user_id", mode="before")
    @classmethod
    def _zero_to_none(cls, value: object) -> object:
        value = _blank_to_none(value)
        if value in (0, "0"):
            return None
        return value

    @model_validator(mode="after")
    def _check_removed_at(self) -> ReactionActionPayload:
        if self.lifecycle == "created" and self.deleted_at is not None:
            raise ValueError("a created reaction cannot carry deleted_at")
        return self

    @property
    def is_named_reaction(self) -> bool:
        return self.reaction is not None
