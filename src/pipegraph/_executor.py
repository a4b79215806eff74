"""Executors expand transforms into the pipeline.

The pipeline calls `Executor.apply(transform, input)` once per application,
with the new node already open as the current scope. An executor may apply
further transforms from inside `apply`; those become children of that node.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from ._errors import ConfigError

if TYPE_CHECKING:
    from ._transform import Transform


class Executor(Protocol):
    def apply(self, transform: Transform, input: Any) -> Any:  # noqa: A002
        """Return the output of `transform` applied to `input`."""
        ...


ExecutorFactory = Callable[[], Executor]

_REGISTRY: dict[str, ExecutorFactory] = {}


def register_executor(name: str) -> Callable[[ExecutorFactory], ExecutorFactory]:
    """Register an executor factory under `name` for `PipelineOptions.executor`."""

    def decorator(factory: ExecutorFactory) -> ExecutorFactory:
        _REGISTRY[name] = factory
        return factory

    return decorator


def get_executor(name: str) -> Executor:
    """Instantiate the executor registered under `name`.

    Raises:
        ConfigError: If no executor is registered under that name.

    """
    try:
        factory = _REGISTRY[name]
    except KeyError:
        known = ", ".join(sorted(_REGISTRY))
        msg = f"No executor registered under '{name}' (known: {known})"
        raise ConfigError(msg) from None
    return factory()


@register_executor("direct")
class DirectExecutor:
    """Expands every transform by calling its own `expand`."""

    def apply(self, transform: Transform, input: Any) -> Any:  # noqa: A002
        return transform.expand(input)
