"""Pipeline options.

Options are validated with pydantic. Validation failures are reported as
`ConfigError` so that callers only have to deal with one exception type for
bad configuration.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ._errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping


class StrEnumWithDoc(StrEnum):
    """Base class for string enums with docstrings on each member.

    Implementation based on this article: https://guicommits.com/add-docstrings-python-enum-members/
    """

    def __new__(cls, value: str, doc: str = "") -> Self:
        """Create a new enum member with a docstring."""
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.__doc__ = doc
        return obj


class StableUniqueNames(StrEnumWithDoc):
    """What to do when a requested transform name had to be made unique."""

    OFF = "off", "Proceed silently."
    WARNING = "warning", "Proceed and log a warning."
    ERROR = "error", "Abort pipeline construction with StableNameError."

    @classmethod
    def parse(cls, value: str | StableUniqueNames) -> StableUniqueNames:
        """Parse a policy from its value or one of the aliases ignore/warn/fail.

        Raises:
            ConfigError: If the value is not recognised.

        """
        if isinstance(value, StableUniqueNames):
            return value
        if not isinstance(value, str):
            msg = f"Unrecognized value for stable unique names: {value!r}"
            raise ConfigError(msg)
        key = value.strip().lower()
        key = _POLICY_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            msg = f"Unrecognized value for stable unique names: {value!r}"
            raise ConfigError(msg) from None


_POLICY_ALIASES = {
    "ignore": StableUniqueNames.OFF.value,
    "warn": StableUniqueNames.WARNING.value,
    "fail": StableUniqueNames.ERROR.value,
}


class PipelineOptions(BaseModel):
    """Options controlling how a pipeline is constructed.

    Attributes:
        stable_unique_names: Policy applied when a transform name collides.
        executor: Name of the registered executor used to expand transforms.

    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    stable_unique_names: StableUniqueNames = StableUniqueNames.WARNING
    executor: str = "direct"

    @field_validator("stable_unique_names", mode="before")
    @classmethod
    def _parse_policy(cls, value: Any) -> StableUniqueNames:
        try:
            return StableUniqueNames.parse(value)
        except ConfigError as e:
            # pydantic only wraps ValueError/AssertionError into ValidationError
            raise ValueError(str(e)) from None

    @field_validator("executor")
    @classmethod
    def _check_executor(cls, value: str) -> str:
        if not value.strip():
            msg = "executor must be a non-empty string"
            raise ValueError(msg)
        return value.strip()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PipelineOptions:
        """Build options from a plain mapping, e.g. a `[tool.pipegraph]` table.

        Raises:
            ConfigError: If a key is unknown or a value is invalid.

        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            msg = f"Invalid pipeline options: {e}"
            raise ConfigError(msg) from e
