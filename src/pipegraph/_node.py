"""Transform applications as nodes of the pipeline tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NewType

from ._errors import StructuralInvariantError

if TYPE_CHECKING:
    from ._transform import Transform

NodeId = NewType("NodeId", int)
ArtifactId = NewType("ArtifactId", int)

ROOT_ID = NodeId(0)


def describe_transform(transform: Transform | None) -> str:
    """Identity-revealing description of a transform instance for messages."""
    if transform is None:
        return "<root>"
    return f"{type(transform).__name__}@{id(transform):#x}"


@dataclass(slots=True, eq=False)
class Node:
    """One application of a transform.

    Nodes refer to each other and to artifacts through arena handles owned
    by the pipeline, never through direct object references.

    Attributes:
        id: Handle of this node within its pipeline.
        full_name: Unique '/'-delimited name.
        transform: The applied transform instance, None for the root.
        parent: Handle of the enclosing node, None for the root.
        requested_name: Local name asked for by the caller.
        stable_name: False if the allocator had to suffix the requested name.
        children: Handles of nested applications, in application order.
        inputs: Handles of the declared inputs, None until recorded.
        outputs: Handles of the produced artifacts, in output order.

    """

    id: NodeId
    full_name: str
    transform: Transform | None
    parent: NodeId | None
    requested_name: str = ""
    stable_name: bool = True
    children: list[NodeId] = field(default_factory=list)
    inputs: tuple[ArtifactId, ...] | None = None
    outputs: list[ArtifactId] = field(default_factory=list)
    _frozen: bool = field(default=False, repr=False)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def is_composite(self) -> bool:
        """Whether the node expanded into nested applications.

        The root node is always composite.
        """
        return self.is_root or bool(self.children)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            msg = f"Node '{self.full_name}' is finished and can no longer be modified"
            raise StructuralInvariantError(msg)

    def add_child(self, child: NodeId) -> None:
        self._check_mutable()
        self.children.append(child)

    def set_inputs(self, inputs: tuple[ArtifactId, ...]) -> None:
        self._check_mutable()
        if self.inputs is not None:
            msg = f"Inputs of node '{self.full_name}' were already recorded"
            raise StructuralInvariantError(msg)
        self.inputs = inputs

    def add_output(self, artifact: ArtifactId) -> None:
        self._check_mutable()
        if artifact not in self.outputs:
            self.outputs.append(artifact)

    def freeze(self) -> None:
        self._frozen = True

    def __str__(self) -> str:
        return self.full_name or "<root>"
