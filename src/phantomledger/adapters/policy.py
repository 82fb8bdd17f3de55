"""Policy sources backed by process configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from phantomledger.config.errors import ConfigurationError
from phantomledger.config.phantoms import get_phantom_policy
from phantomledger.domain.policy import PolicyUnavailableError

if TYPE_CHECKING:
    from phantomledger.domain.policy import PolicySnapshot


class EnvironmentPolicySource:
    """Re-read ``PHANTOMLEDGER_*`` variables on every call."""

    def __call__(self) -> PolicySnapshot:
        try:
            return get_phantom_policy()
        except ConfigurationError as exc:
            raise PolicyUnavailableError(str(exc)) from exc


class StaticPolicySource:
    """Fixed policy, mostly for tooling and tests."""

    def __init__(self, snapshot: PolicySnapshot) -> None:
        self.snapshot = snapshot

    def __call__(self) -> PolicySnapshot:
        return self.snapshot


if TYPE_CHECKING:
    from phantomledger.domain.policy import PolicySource

    _env_check: PolicySource = EnvironmentPolicySource()
