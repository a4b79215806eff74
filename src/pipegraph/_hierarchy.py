"""The tree of transform applications under construction."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from ._errors import ScopeStackError
from ._node import ROOT_ID, Node, NodeId

if TYPE_CHECKING:
    from collections.abc import Generator, Iterator

    from ._node import ArtifactId
    from ._transform import Transform


class TransformHierarchy:
    """Arena of nodes plus the stack of currently open applications.

    The root node stands for "no transform applied yet"; it is composite and
    is the parent of every root application. `current` is the innermost open
    application. Pushes and pops must nest exactly like the apply calls that
    cause them; any mismatch raises `ScopeStackError`.
    """

    def __init__(self) -> None:
        root = Node(id=ROOT_ID, full_name="", transform=None, parent=None)
        root.set_inputs(())
        self._nodes: list[Node] = [root]
        self._stack: list[NodeId] = [ROOT_ID]

    @property
    def root(self) -> Node:
        return self._nodes[ROOT_ID]

    @property
    def current(self) -> Node:
        """The node presently open for construction."""
        return self._nodes[self._stack[-1]]

    @property
    def depth(self) -> int:
        """Number of open applications, not counting the root."""
        return len(self._stack) - 1

    def node(self, node_id: NodeId) -> Node:
        return self._nodes[node_id]

    def nodes(self) -> Iterator[Node]:
        """All nodes except the root, in creation order."""
        return iter(self._nodes[1:])

    def __len__(self) -> int:
        return len(self._nodes) - 1

    def add_node(
        self,
        full_name: str,
        transform: Transform,
        *,
        requested_name: str,
        stable_name: bool,
    ) -> Node:
        """Create a node as the last child of the current scope."""
        parent = self.current
        node = Node(
            id=NodeId(len(self._nodes)),
            full_name=full_name,
            transform=transform,
            parent=parent.id,
            requested_name=requested_name,
            stable_name=stable_name,
        )
        self._nodes.append(node)
        parent.add_child(node.id)
        return node

    def push_node(self, node: Node) -> None:
        """Make `node` the current scope. Its parent must be the current scope."""
        if node.parent != self._stack[-1]:
            msg = (
                f"Cannot open '{node.full_name}': its parent is not the current scope "
                f"'{self.current}'"
            )
            raise ScopeStackError(msg)
        self._stack.append(node.id)

    def pop_node(self) -> Node:
        """Close the current scope, freeze it and return it."""
        if len(self._stack) == 1:
            msg = "Cannot close the root scope"
            raise ScopeStackError(msg)
        node = self._nodes[self._stack.pop()]
        node.freeze()
        return node

    @contextmanager
    def scope(self, node: Node) -> Generator[Node]:
        """Open `node` for the duration of the block, closing it on every exit path."""
        self.push_node(node)
        try:
            yield node
        finally:
            if self._stack[-1] != node.id:
                msg = (
                    f"Scope stack corrupted: expected '{node.full_name}' to be current, "
                    f"found '{self.current}'"
                )
                raise ScopeStackError(msg)
            self.pop_node()

    def record_inputs(self, node: Node, inputs: tuple[ArtifactId, ...]) -> None:
        node.set_inputs(inputs)

    def record_output(self, node: Node, artifact: ArtifactId) -> None:
        node.add_output(artifact)
