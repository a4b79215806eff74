"""Artifacts: the values flowing between transform applications."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ._errors import ForeignArtifactError, ProducerAttributionError, UnsupportedValueError
from ._node import describe_transform

if TYPE_CHECKING:
    from ._node import ArtifactId, Node, NodeId
    from ._pipeline import Pipeline
    from ._transform import Transform

logger = logging.getLogger(__name__)


class Artifact:
    """A data-producing value owned by one pipeline.

    Artifacts compare and hash by identity. An artifact has at most one
    producing node; it is set once when the producing application finishes.
    """

    __slots__ = ("_handle", "_label", "_pipeline", "_producer")

    def __init__(self, pipeline: Pipeline, handle: ArtifactId, label: str | None = None) -> None:
        self._pipeline = pipeline
        self._handle = handle
        self._label = label
        self._producer: NodeId | None = None

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    @property
    def handle(self) -> ArtifactId:
        return self._handle

    @property
    def label(self) -> str | None:
        return self._label

    @property
    def producer_id(self) -> NodeId | None:
        return self._producer

    @property
    def producer(self) -> Node | None:
        """The node that produced this artifact, or None for a root input."""
        if self._producer is None:
            return None
        return self._pipeline.node(self._producer)

    def record_producer(self, node: Node) -> None:
        """Attribute this artifact to `node`.

        Recording the same node again is a no-op.

        Raises:
            ProducerAttributionError: If a different node was recorded before.

        """
        if self._producer is None:
            self._producer = node.id
            logger.debug("Recorded %s as output of %s", self, node.full_name)
            return
        if self._producer == node.id:
            return
        previous = self._pipeline.node(self._producer)
        msg = (
            f"{self} is already produced by '{previous.full_name}' "
            f"({describe_transform(previous.transform)}) and cannot also be produced by "
            f"'{node.full_name}' ({describe_transform(node.transform)})"
        )
        raise ProducerAttributionError(
            msg,
            full_name=node.full_name,
            transform=node.transform,
            producing_transform=previous.transform,
        )

    def apply(self, transform: Transform, name: str | None = None) -> Any:
        """Apply `transform` to this artifact. Same as `artifact | transform`."""
        return self._pipeline.apply_transform(self, transform, name)

    def __repr__(self) -> str:
        label = f" {self._label!r}" if self._label else ""
        return f"Artifact#{self._handle}{label}"


class Begin:
    """The empty input of a pipeline, used to apply root transforms."""

    __slots__ = ("_pipeline",)

    def __init__(self, pipeline: Pipeline) -> None:
        self._pipeline = pipeline

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    def apply(self, transform: Transform, name: str | None = None) -> Any:
        """Apply a root transform. Same as `pipeline.begin() | transform`."""
        return self._pipeline.apply_transform(self, transform, name)

    def __repr__(self) -> str:
        return f"Begin({self._pipeline!r})"


def expand_values(value: Any) -> tuple[Artifact, ...]:
    """Flatten an input or output value into its distinct artifacts.

    Supported shapes are `Artifact`, `Begin` and `None` (no artifacts),
    tuples and lists, and mappings (values in insertion order), nested
    arbitrarily.

    Raises:
        UnsupportedValueError: For any other shape.

    """
    result: dict[Artifact, None] = {}
    _collect(value, result)
    return tuple(result)


def _collect(value: Any, out: dict[Artifact, None]) -> None:
    match value:
        case Artifact():
            out.setdefault(value, None)
        case Begin() | None:
            pass
        case tuple() | list():
            for item in value:
                _collect(item, out)
        case Mapping():
            for item in value.values():
                _collect(item, out)
        case _:
            msg = f"Expected an Artifact, Begin, None or a collection of them, got {type(value).__name__}"
            raise UnsupportedValueError(msg)


def _owners(value: Any) -> list[Pipeline]:
    match value:
        case Artifact() | Begin():
            return [value.pipeline]
        case tuple() | list():
            return [p for item in value for p in _owners(item)]
        case Mapping():
            return [p for item in value.values() for p in _owners(item)]
        case _:
            return []


def pipeline_of(value: Any) -> Pipeline:
    """Return the pipeline that owns every artifact in `value`.

    Raises:
        ForeignArtifactError: If the artifacts belong to different pipelines.
        ValueError: If `value` contains nothing that belongs to a pipeline.

    """
    owners = _owners(value)
    if not owners:
        msg = f"Cannot determine the pipeline of {value!r}"
        raise ValueError(msg)
    first = owners[0]
    for other in owners[1:]:
        if other is not first:
            msg = f"Input mixes values of {first!r} and {other!r}"
            raise ForeignArtifactError(msg)
    return first
