"""Transforms: the operations applied to artifacts.

A transform is anything satisfying the `Transform` protocol. `TransformBase`
adds the pipe syntax and default naming, and a few ready-made transforms
cover the common shapes used when building graphs:

    words = pipeline.begin() | "Read" >> Create(["a", "b"]) | Map(str.upper)

Whether an application is primitive or composite follows from what
`expand` does: a transform that applies nested transforms is composite and
must return only artifacts authored by them, a transform that applies nothing
is primitive and must author every artifact it returns.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, overload, runtime_checkable

from ._values import expand_values, pipeline_of

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


@runtime_checkable
class Transform(Protocol):
    """Capabilities every transform must provide."""

    def validate(self, input: Any) -> None:  # noqa: A002
        """Check the input before anything is expanded. Raise to reject it."""
        ...

    def default_name(self) -> str:
        """Name used for an application when none is given explicitly."""
        ...

    def expand(self, input: Any) -> Any:  # noqa: A002
        """Build the output of this transform for `input`."""
        ...


class TransformBase:
    """Shared behaviour for transforms.

    Args:
        label: Name used for applications of this transform. Defaults to the
            class name.

    """

    def __init__(self, label: str | None = None) -> None:
        self.label = label

    def default_name(self) -> str:
        return self.label or type(self).__name__

    def validate(self, input: Any) -> None:  # noqa: A002
        pass

    def expand(self, input: Any) -> Any:  # noqa: A002
        msg = f"{type(self).__name__} does not implement expand()"
        raise NotImplementedError(msg)

    def __ror__(self, input: Any) -> Any:  # noqa: A002
        return pipeline_of(input).apply_transform(input, self)

    def __rrshift__(self, label: str) -> NamedTransform:
        if not isinstance(label, str):
            return NotImplemented
        return NamedTransform(label, self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.default_name()!r})"


class NamedTransform:
    """A transform paired with the explicit name to apply it under.

    Created by `"Name" >> transform`.
    """

    def __init__(self, name: str, transform: Transform) -> None:
        self.name = name
        self.transform = transform

    def __ror__(self, input: Any) -> Any:  # noqa: A002
        return pipeline_of(input).apply_transform(input, self.transform, self.name)

    def __repr__(self) -> str:
        return f"{self.name!r} >> {self.transform!r}"


class FunctionTransform(TransformBase):
    """A composite transform defined by a plain function `fn(input) -> output`."""

    def __init__(self, fn: Callable[[Any], Any], label: str | None = None) -> None:
        if label is None:
            if not hasattr(fn, "__name__") or not isinstance(fn.__name__, str):
                msg = "Function must have a valid name."
                raise TypeError(msg)
            label = fn.__name__
        super().__init__(label)
        self.fn = fn

    def expand(self, input: Any) -> Any:  # noqa: A002
        return self.fn(input)


@overload
def composite(fn: Callable[[Any], Any], /) -> FunctionTransform: ...
@overload
def composite(name: str | None = None) -> Callable[[Callable[[Any], Any]], FunctionTransform]: ...


def composite(
    fn_or_name: Callable[[Any], Any] | str | None = None,
) -> FunctionTransform | Callable[[Callable[[Any], Any]], FunctionTransform]:
    """Decorator turning a function into a transform.

    Example:
        @composite("CountWords")
        def count_words(lines):
            return lines | Map(str.split) | "Sum" >> Combine(sum)

    """
    if callable(fn_or_name):
        return FunctionTransform(fn_or_name)

    def decorator(fn: Callable[[Any], Any]) -> FunctionTransform:
        return FunctionTransform(fn, fn_or_name)

    return decorator


class Create(TransformBase):
    """Primitive root transform producing one artifact from in-memory values."""

    def __init__(self, values: Iterable[Any], label: str | None = None) -> None:
        super().__init__(label)
        self.values = tuple(values)

    def expand(self, input: Any) -> Any:  # noqa: A002
        return pipeline_of(input).create_artifact(self.default_name())


class Map(TransformBase):
    """Primitive element-wise transform.

    The function is kept as configuration only; nothing is executed.
    """

    def __init__(self, fn: Callable[[Any], Any], label: str | None = None) -> None:
        super().__init__(label)
        self.fn = fn

    def default_name(self) -> str:
        if self.label:
            return self.label
        return f"Map({getattr(self.fn, '__name__', type(self.fn).__name__)})"

    def validate(self, input: Any) -> None:  # noqa: A002
        if len(expand_values(input)) != 1:
            msg = f"{self.default_name()} expects exactly one input artifact"
            raise ValueError(msg)

    def expand(self, input: Any) -> Any:  # noqa: A002
        return pipeline_of(input).create_artifact()


class Combine(Map):
    """Primitive global combine, e.g. `Combine(sum)`."""

    def default_name(self) -> str:
        if self.label:
            return self.label
        return f"Combine({getattr(self.fn, '__name__', type(self.fn).__name__)})"


class Flatten(TransformBase):
    """Primitive merge of several artifacts into one."""

    def validate(self, input: Any) -> None:  # noqa: A002
        if not expand_values(input):
            msg = "Flatten expects at least one input artifact"
            raise ValueError(msg)

    def expand(self, input: Any) -> Any:  # noqa: A002
        return pipeline_of(input).create_artifact()
