"""Errors raised while loading phantomledger configuration."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Configuration is present but unusable."""


class MissingConfigurationError(ConfigurationError):
    """A required environment variable is unset or blank."""


class InvalidSettingError(ConfigurationError):
    """One policy setting could not be parsed; keeps the offending key and raw value."""

    def __init__(self, setting: str, value: object, expected: str) -> None:
        super().__init__(f"Invalid {expected} for {setting}: {value!r}")
        self.setting = setting
        self.value = value
