"""The pipeline: a DAG of transform applications and the artifacts between them."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ._errors import (
    AlreadyTraversedError,
    ForeignArtifactError,
    IncompleteTraversalError,
    PipelineError,
    PipelineFailedError,
    PipelineFrozenError,
    ProducerAttributionError,
    StableNameError,
    UserCodeError,
)
from ._executor import get_executor
from ._graph import DataflowGraph
from ._hierarchy import TransformHierarchy
from ._names import NameAllocator
from ._node import ArtifactId, Node, NodeId, describe_transform
from ._options import PipelineOptions, StableUniqueNames
from ._values import Artifact, Begin, expand_values, pipeline_of
from ._visitor import traverse

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from ._executor import Executor
    from ._transform import Transform
    from ._visitor import PipelineVisitor

logger = logging.getLogger(__name__)

_PACKAGE_DIR = Path(__file__).resolve().parent


class Pipeline:
    """Builds and owns a DAG of transform applications.

    Transforms are applied one call at a time, each call adding a node to a
    tree whose nesting mirrors composite expansion. Every node gets a unique
    '/'-delimited name and every artifact is attributed to the primitive
    node that produced it. When construction is complete, an executor
    consumes the graph exactly once through `traverse_topologically`.

    Pipelines share no state; several may be built concurrently from
    different threads, but a single pipeline must be built from one thread.

    Example:
        >>> p = Pipeline()
        >>> lines = p.apply(Create(["a b", "c"]), name="Read")
        >>> words = lines | Map(str.split)
        >>> words.producer.full_name
        'Map(split)'

    """

    def __init__(self, options: PipelineOptions | None = None, executor: Executor | None = None) -> None:
        self._options = options if options is not None else PipelineOptions()
        self._executor = executor if executor is not None else get_executor(self._options.executor)
        self._hierarchy = TransformHierarchy()
        self._names = NameAllocator()
        self._artifacts: list[Artifact] = []
        self._values: dict[ArtifactId, None] = {}
        self._expected: dict[ArtifactId, None] = {}
        self._failure: tuple[str, Exception] | None = None
        self._applications: dict[int, list[NodeId]] = {}
        self._traversed = False

    @classmethod
    def create(cls, options: PipelineOptions | None = None) -> Pipeline:
        """Create a pipeline using the executor named in `options`."""
        pipeline = cls(options)
        logger.debug("Creating %s", pipeline)
        return pipeline

    @property
    def options(self) -> PipelineOptions:
        return self._options

    @property
    def stable_unique_names(self) -> StableUniqueNames:
        """The policy applied when a transform name had to be made unique."""
        return self._options.stable_unique_names

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def hierarchy(self) -> TransformHierarchy:
        return self._hierarchy

    @property
    def traversed(self) -> bool:
        return self._traversed

    def begin(self) -> Begin:
        """The empty input, to apply root transforms to."""
        return Begin(self)

    def apply(self, transform: Transform, name: str | None = None) -> Any:
        """Apply a root transform. Alias for `self.begin().apply(transform, name)`."""
        return self.apply_transform(self.begin(), transform, name)

    # Artifacts and nodes

    def create_artifact(self, label: str | None = None) -> Artifact:
        """Create a new artifact owned by this pipeline.

        An artifact created while a transform is being applied belongs to the
        graph and must be reached by the traversal. One created outside of
        any application is an external input.
        """
        artifact = Artifact(self, ArtifactId(len(self._artifacts)), label)
        self._artifacts.append(artifact)
        if self._hierarchy.depth:
            self._expected.setdefault(artifact.handle, None)
        return artifact

    def artifact(self, handle: ArtifactId) -> Artifact:
        return self._artifacts[handle]

    def node(self, handle: NodeId) -> Node:
        return self._hierarchy.node(handle)

    def nodes(self) -> Iterator[Node]:
        """All applied nodes in application order."""
        return self._hierarchy.nodes()

    def values(self) -> list[Artifact]:
        """All artifacts recorded as the output of some node, in recording order."""
        return [self._artifacts[handle] for handle in self._values]

    # Construction

    def apply_transform(self, input: Any, transform: Transform, name: str | None = None) -> Any:  # noqa: A002
        """Apply `transform` to `input` and return its output.

        The application is identified by `name`, or by the transform's
        default name. The new node stays the current scope while the
        transform is validated and expanded, so any transform applied during
        expansion is nested under it.

        Raises:
            PipelineFrozenError: If the pipeline has already been traversed.
            ForeignArtifactError: If `input` belongs to another pipeline.
            StableNameError: If the name collided and the policy is ERROR.
            UserCodeError: If the transform's validation or expansion raised.
            ProducerAttributionError: If the output is attributed incorrectly.
            PipelineFailedError: If an earlier application of this pipeline failed.

        """
        if self._traversed:
            msg = f"Cannot apply {transform!r}: {self} has already been traversed"
            raise PipelineFrozenError(msg)
        self._check_not_failed(f"apply {transform!r}")
        self._check_owned(input)
        inputs = expand_values(input)

        parent = self._hierarchy.current
        local_name = name if name is not None else transform.default_name()
        allocated = self._names.allocate(parent.full_name, local_name)
        if not allocated.is_unique:
            self._apply_naming_policy(allocated.full_name, local_name)

        node = self._hierarchy.add_node(
            allocated.full_name,
            transform,
            requested_name=local_name,
            stable_name=allocated.is_unique,
        )
        self._hierarchy.record_inputs(node, tuple(a.handle for a in inputs))
        self._applications.setdefault(id(transform), []).append(node.id)
        logger.debug("Adding %s to %s as '%s'", transform, self, node.full_name)

        try:
            with self._hierarchy.scope(node):
                output = self._expand(node, transform, input)
                produced = expand_values(output)
                self._check_owned(produced)
                for artifact in produced:
                    self._hierarchy.record_output(node, artifact.handle)
                    if artifact.producer_id is None:
                        artifact.record_producer(node)
                    self._values.setdefault(artifact.handle, None)
                self._verify_output_state(node, produced)
        except Exception as e:
            # The innermost failing node is recorded; enclosing applies re-raise it.
            if self._failure is None:
                self._failure = (node.full_name, e)
            raise
        return output

    def _check_not_failed(self, action: str) -> None:
        if self._failure is None:
            return
        full_name, failure = self._failure
        msg = (
            f"Cannot {action}: {self} is unusable after applying '{full_name}' failed "
            f"with {type(failure).__name__}: {failure}"
        )
        raise PipelineFailedError(msg, full_name=full_name, failure=failure)

    def _check_owned(self, value: Any) -> None:
        try:
            owner = pipeline_of(value)
        except ValueError:
            return
        if owner is not self:
            msg = f"{value!r} belongs to {owner!r}, not to {self!r}"
            raise ForeignArtifactError(msg)

    def _apply_naming_policy(self, full_name: str, requested_name: str) -> None:
        match self.stable_unique_names:
            case StableUniqueNames.OFF:
                pass
            case StableUniqueNames.WARNING:
                logger.warning(
                    "Transform %s does not have a stable unique name. This will prevent reloading of pipelines.",
                    full_name,
                )
            case StableUniqueNames.ERROR:
                raise StableNameError(full_name, requested_name)

    def _expand(self, node: Node, transform: Transform, input: Any) -> Any:  # noqa: A002
        try:
            transform.validate(input)
            return self._executor.apply(transform, input)
        except PipelineError:
            raise
        except Exception as e:
            e.with_traceback(_strip_internal_frames(e.__traceback__))
            raise UserCodeError(node.full_name, e) from e

    def _verify_output_state(self, node: Node, produced: tuple[Artifact, ...]) -> None:
        """Check that the outputs of a finished node are attributed correctly.

        A primitive node must have produced every one of its outputs. A
        composite node must have produced none of them: its outputs come from
        the primitive nodes nested inside it, which were checked when they
        finished.
        """
        for artifact in produced:
            producer = artifact.producer
            if producer is None:
                continue
            if not node.is_composite and producer is not node:
                msg = (
                    f"Output of non-composite transform '{node.full_name}' "
                    f"({describe_transform(node.transform)}) is registered as being produced by "
                    f"a different transform: '{producer.full_name}' ({describe_transform(producer.transform)})"
                )
                raise ProducerAttributionError(
                    msg,
                    full_name=node.full_name,
                    transform=node.transform,
                    producing_transform=producer.transform,
                )
            if node.is_composite and producer is node:
                msg = (
                    f"Output {artifact!r} of composite transform '{node.full_name}' "
                    f"({describe_transform(node.transform)}) is registered as being produced by it, "
                    "but the output of every composite transform should be produced by "
                    "a primitive transform contained therein."
                )
                raise ProducerAttributionError(
                    msg,
                    full_name=node.full_name,
                    transform=node.transform,
                    producing_transform=node.transform,
                )

    # Consumption

    def traverse_topologically(self, visitor: PipelineVisitor) -> None:
        """Replay the pipeline to `visitor` in forward topological order.

        A pipeline can be traversed only once; afterwards no transform can be
        applied to it.

        Raises:
            AlreadyTraversedError: On a second traversal.
            PipelineFailedError: If an application of this pipeline failed.
            IncompleteTraversalError: If an artifact created or produced by an
                application was not visited.

        """
        if self._traversed:
            msg = f"{self} has already been traversed"
            raise AlreadyTraversedError(msg)
        self._check_not_failed("traverse")
        if self._hierarchy.depth:
            msg = f"Cannot traverse {self} while '{self._hierarchy.current}' is still being applied"
            raise PipelineFrozenError(msg)
        self._traversed = True
        self._hierarchy.root.freeze()

        visited = traverse(self._hierarchy, visitor, self.artifact)
        expected = self._values | self._expected
        missing = [self._artifacts[h] for h in expected if h not in visited]
        if missing:
            msg = f"internal error: should have visited all the values after visiting all the transforms, missing {missing}"
            raise IncompleteTraversalError(msg)

    # Inspection

    def full_name_for_testing(self, transform: Transform) -> str:
        """Return the full name of the single application of `transform`.

        Raises:
            ValueError: If the transform was never applied or applied more than once.

        """
        uses = self._applications.get(id(transform), [])
        if not uses:
            msg = f"Unknown transform: {transform!r}"
            raise ValueError(msg)
        if len(uses) > 1:
            msg = f"Transform used multiple times: {transform!r}"
            raise ValueError(msg)
        return self.node(uses[0]).full_name

    def dataflow_graph(self) -> DataflowGraph[str]:
        """Edges between primitive applications, keyed by full name."""
        primitives = [node for node in self.nodes() if not node.is_composite]
        edges: list[tuple[str, str]] = []
        for node in primitives:
            for handle in node.inputs or ():
                producer = self._artifacts[handle].producer
                if producer is not None:
                    edges.append((producer.full_name, node.full_name))
        return DataflowGraph.from_edges(edges, nodes=[node.full_name for node in primitives])

    def __repr__(self) -> str:
        return f"Pipeline#{id(self)}"


def _strip_internal_frames(tb: TracebackType | None) -> TracebackType | None:
    """Drop the leading traceback frames that belong to this package.

    The frame that raised is always kept.
    """
    while tb is not None and tb.tb_next is not None and _is_internal(tb.tb_frame.f_code.co_filename):
        tb = tb.tb_next
    return tb


def _is_internal(filename: str) -> bool:
    try:
        return Path(filename).resolve().is_relative_to(_PACKAGE_DIR)
    except OSError:
        return False
