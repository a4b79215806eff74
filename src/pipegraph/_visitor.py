"""Forward topological traversal of a finished pipeline.

For every node, in application order:

1. each input artifact not yet seen is passed to `visit_value`;
2. a composite node gets `enter_composite_transform`, then all its
   children recursively, then `leave_composite_transform`; a primitive node
   gets `visit_transform`;
3. each output artifact not yet seen is passed to `visit_value` together
   with its producing node.

Because every artifact is produced by a primitive node that was applied
before any node consuming it, producers are always visited before their
consumers. The root node itself is not reported.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._hierarchy import TransformHierarchy
    from ._node import ArtifactId, Node
    from ._values import Artifact


@runtime_checkable
class PipelineVisitor(Protocol):
    """Callbacks invoked by `Pipeline.traverse_topologically`."""

    def enter_composite_transform(self, node: Node) -> None: ...

    def leave_composite_transform(self, node: Node) -> None: ...

    def visit_transform(self, node: Node) -> None: ...

    def visit_value(self, value: Artifact, producer: Node | None) -> None: ...


class PipelineVisitorBase:
    """Visitor with no-op callbacks, to override selectively."""

    def enter_composite_transform(self, node: Node) -> None:
        pass

    def leave_composite_transform(self, node: Node) -> None:
        pass

    def visit_transform(self, node: Node) -> None:
        pass

    def visit_value(self, value: Artifact, producer: Node | None) -> None:
        pass


def traverse(
    hierarchy: TransformHierarchy,
    visitor: PipelineVisitor,
    resolve: Callable[[ArtifactId], Artifact],
) -> set[ArtifactId]:
    """Walk the whole hierarchy and return the handles of all visited artifacts."""
    visited: set[ArtifactId] = set()
    for child in hierarchy.root.children:
        _visit(hierarchy, hierarchy.node(child), visitor, resolve, visited)
    return visited


def _visit(
    hierarchy: TransformHierarchy,
    node: Node,
    visitor: PipelineVisitor,
    resolve: Callable[[ArtifactId], Artifact],
    visited: set[ArtifactId],
) -> None:
    _visit_values(node.inputs or (), visitor, resolve, visited)

    if node.is_composite:
        visitor.enter_composite_transform(node)
        for child in node.children:
            _visit(hierarchy, hierarchy.node(child), visitor, resolve, visited)
        visitor.leave_composite_transform(node)
    else:
        visitor.visit_transform(node)

    _visit_values(node.outputs, visitor, resolve, visited)


def _visit_values(
    handles: tuple[ArtifactId, ...] | list[ArtifactId],
    visitor: PipelineVisitor,
    resolve: Callable[[ArtifactId], Artifact],
    visited: set[ArtifactId],
) -> None:
    for handle in handles:
        if handle in visited:
            continue
        visited.add(handle)
        value = resolve(handle)
        visitor.visit_value(value, value.producer)
