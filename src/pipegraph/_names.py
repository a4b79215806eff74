"""Fully-qualified transform names."""

from __future__ import annotations

from dataclasses import dataclass, field

from ._errors import InvalidTransformNameError

SEPARATOR = "/"


def build_name(prefix: str, name: str) -> str:
    """Join an enclosing full name and a local name with '/'.

    Example:
        >>> build_name("", "Read")
        'Read'
        >>> build_name("Pipeline/Count", "Sum")
        'Pipeline/Count/Sum'

    """
    return f"{prefix}{SEPARATOR}{name}" if prefix else name


@dataclass(frozen=True, slots=True)
class AllocatedName:
    """Result of a name allocation.

    Attributes:
        full_name: The registered fully-qualified name.
        requested_name: The local name that was asked for.
        is_unique: False if a numeric suffix had to be appended.

    """

    full_name: str
    requested_name: str
    is_unique: bool


@dataclass(slots=True)
class NameAllocator:
    """Hands out fully-qualified names that are unique within one pipeline."""

    _used: set[str] = field(default_factory=set)

    def allocate(self, prefix: str, name: str) -> AllocatedName:
        """Register and return a unique full name for `name` under `prefix`.

        The first candidate is `prefix/name`. While a candidate is taken, the
        local name is retried as `name2`, `name3`, ... Every candidate is
        checked against all registered names, including ones that were
        requested explicitly, so a suffixed name never collides.

        Raises:
            InvalidTransformNameError: If `name` is empty.

        """
        if not name:
            msg = "Transform name must be a non-empty string"
            raise InvalidTransformNameError(msg)

        local_name = name
        suffix = 2
        while True:
            candidate = build_name(prefix, local_name)
            if candidate not in self._used:
                self._used.add(candidate)
                return AllocatedName(
                    full_name=candidate,
                    requested_name=name,
                    is_unique=local_name == name,
                )
            local_name = f"{name}{suffix}"
            suffix += 1

    def __contains__(self, full_name: str) -> bool:
        return full_name in self._used

    def __len__(self) -> int:
        return len(self._used)
