"""Graph query functions for CLI commands.

This module provides pure functions for querying a pipeline.
These are the functional core - no I/O, no Rich rendering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import TYPE_CHECKING

from pipegraph._visitor import PipelineVisitorBase

if TYPE_CHECKING:
    from pipegraph._node import Node
    from pipegraph._pipeline import Pipeline
    from pipegraph._values import Artifact


class NodeKind(StrEnum):
    """The kind of entry in a rendered pipeline tree."""

    COMPOSITE = auto()
    PRIMITIVE = auto()
    ARTIFACT = auto()


def node_kind(node: Node) -> NodeKind:
    return NodeKind.COMPOSITE if node.is_composite else NodeKind.PRIMITIVE


@dataclass(frozen=True, slots=True)
class NodeInfo:
    """Basic information about a node for listing."""

    full_name: str
    kind: NodeKind
    input_count: int
    output_count: int
    stable_name: bool
    requested_name: str


@dataclass(frozen=True, slots=True)
class NodeDetail:
    """Detailed information about a primitive node's dataflow neighbourhood."""

    full_name: str
    kind: NodeKind
    transform: str
    upstream: tuple[str, ...]
    downstream: tuple[str, ...]


@dataclass(slots=True)
class TreeNode:
    """A node in a pipeline tree for rendering."""

    label: str
    kind: NodeKind
    children: list[TreeNode] = field(default_factory=list)


def _info(node: Node) -> NodeInfo:
    return NodeInfo(
        full_name=node.full_name,
        kind=node_kind(node),
        input_count=len(node.inputs or ()),
        output_count=len(node.outputs),
        stable_name=node.stable_name,
        requested_name=node.requested_name,
    )


def list_nodes(pipeline: Pipeline, *, kinds: list[NodeKind] | None = None) -> list[NodeInfo]:
    """List applied nodes in application order, optionally filtered by kind."""
    infos = [_info(node) for node in pipeline.nodes()]
    if kinds:
        infos = [info for info in infos if info.kind in kinds]
    return infos


def find_unstable_names(pipeline: Pipeline) -> list[NodeInfo]:
    """Nodes whose requested name collided and had to be suffixed."""
    return [info for info in list_nodes(pipeline) if not info.stable_name]


def get_node_detail(pipeline: Pipeline, full_name: str) -> NodeDetail:
    """Get the upstream and downstream primitives of a node.

    For a composite node, the neighbourhood is that of the primitives nested
    inside it, excluding those primitives themselves.

    Raises:
        KeyError: If no node has that name.

    """
    by_name = {node.full_name: node for node in pipeline.nodes()}
    try:
        node = by_name[full_name]
    except KeyError:
        msg = f"Node not found: {full_name}"
        raise KeyError(msg) from None

    graph = pipeline.dataflow_graph()
    prefix = f"{full_name}/"
    members = [name for name in graph.nodes if name == full_name or name.startswith(prefix)]
    upstream: set[str] = set()
    downstream: set[str] = set()
    for member in members:
        upstream |= graph.upstream(member)
        downstream |= graph.downstream(member)

    order = {name: i for i, name in enumerate(graph.topological_order())}
    inside = set(members)
    return NodeDetail(
        full_name=full_name,
        kind=node_kind(node),
        transform=repr(node.transform),
        upstream=tuple(sorted(upstream - inside, key=order.__getitem__)),
        downstream=tuple(sorted(downstream - inside, key=order.__getitem__)),
    )


class _TreeBuilder(PipelineVisitorBase):
    def __init__(self, root: TreeNode) -> None:
        self._stack = [root]

    def enter_composite_transform(self, node: Node) -> None:
        child = TreeNode(label=node.full_name, kind=NodeKind.COMPOSITE)
        self._stack[-1].children.append(child)
        self._stack.append(child)

    def leave_composite_transform(self, node: Node) -> None:  # noqa: ARG002
        self._stack.pop()

    def visit_transform(self, node: Node) -> None:
        self._stack[-1].children.append(TreeNode(label=node.full_name, kind=NodeKind.PRIMITIVE))

    def visit_value(self, value: Artifact, producer: Node | None) -> None:
        source = producer.full_name if producer is not None else "external"
        self._stack[-1].children.append(TreeNode(label=f"{value!r} <- {source}", kind=NodeKind.ARTIFACT))


def build_tree(pipeline: Pipeline) -> TreeNode:
    """Traverse the pipeline and return its tree of applications and artifacts.

    This consumes the pipeline's single traversal.
    """
    root = TreeNode(label=repr(pipeline), kind=NodeKind.COMPOSITE)
    pipeline.traverse_topologically(_TreeBuilder(root))
    return root
