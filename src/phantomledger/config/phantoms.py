"""Phantom policy settings, parsed from the environment or a settings table."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import TYPE_CHECKING, Final, Literal

from phantomledger.domain.policy import (
    DEFAULT_MAIN_REACTION_ID,
    DEFAULT_NOTIFICATION_WINDOW,
    PolicySnapshot,
    VisibilityConfig,
)

from .env import prefixed_env
from .errors import ConfigurationError, InvalidSettingError

if TYPE_CHECKING:
    from collections.abc import Mapping

ENV_PREFIX: Final[str] = "PHANTOMLEDGER_"

PolicySourceName = Literal["env", "database"]

_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off", ""})
_ID_SEPARATORS = re.compile(r"[|,\s]+")


def parse_flag(value: str | None, *, default: bool, name: str = "flag") -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise InvalidSettingError(name, value, "boolean")


def parse_id_set(value: str | None, *, name: str = "ids") -> frozenset[int]:
    """Parse ``"3|7|12"`` (or comma/space separated) into ids, dropping blanks and zeros."""

    if value is None:
        return frozenset()
    ids: set[int] = set()
    for token in _ID_SEPARATORS.split(value.strip()):
        if not token:
            continue
        try:
            parsed = int(token)
        except ValueError as exc:
            raise InvalidSettingError(name, token, "id") from exc
        if parsed:
            ids.add(parsed)
    return frozenset(ids)


def parse_seconds(value: str | None, *, default: timedelta, name: str = "seconds") -> timedelta:
    if value is None or not value.strip():
        return default
    try:
        seconds = float(value)
    except ValueError as exc:
        raise InvalidSettingError(name, value, "number of seconds") from exc
    if seconds < 0:
        raise InvalidSettingError(name, value, "non-negative number of seconds")
    return timedelta(seconds=seconds)


def parse_policy(values: Mapping[str, str]) -> PolicySnapshot:
    """Build a policy snapshot from lower-case setting names; absent keys use defaults."""

    main_reaction = (values.get("main_reaction_id") or "").strip()
    return PolicySnapshot(
        enabled=parse_flag(values.get("enabled"), default=True, name="enabled"),
        excluded_category_ids=parse_id_set(
            values.get("excluded_category_ids"), name="excluded_category_ids"
        ),
        visibility=VisibilityConfig(
            show_in_history=parse_flag(
                values.get("show_in_history"), default=False, name="show_in_history"
            ),
            count_in_aggregate=parse_flag(
                values.get("count_in_aggregate"), default=False, name="count_in_aggregate"
            ),
        ),
        notification_window=parse_seconds(
            values.get("notification_window_seconds"),
            default=DEFAULT_NOTIFICATION_WINDOW,
            name="notification_window_seconds",
        ),
        main_reaction_id=main_reaction or DEFAULT_MAIN_REACTION_ID,
        hide_like_button=parse_flag(
            values.get("hide_like_button"), default=False, name="hide_like_button"
        ),
        allowed_like_groups=parse_id_set(
            values.get("allowed_like_groups"), name="allowed_like_groups"
        ),
    )


def get_phantom_policy() -> PolicySnapshot:
    """Read the policy from ``PHANTOMLEDGER_*`` environment variables."""

    return parse_policy(prefixed_env(ENV_PREFIX))


def get_policy_source_name() -> PolicySourceName:
    raw = prefixed_env(ENV_PREFIX).get("policy_source", "env").strip().lower() or "env"
    if raw == "env":
        return "env"
    if raw == "database":
        return "database"
    raise ConfigurationError(f"Unknown policy source: {raw!r}")
