"""Dataflow graph between primitive transform applications."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from collections.abc import Hashable
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

T = TypeVar("T", bound=Hashable)


def topological_sort(successors: Mapping[T, Sequence[T]]) -> list[T]:
    """Sort a graph so that every node comes before its successors.

    Ties are broken by the iteration order of `successors`, so the result is
    deterministic for a deterministic input.

    Raises:
        ValueError: If the graph contains a cycle.

    Example:
        >>> topological_sort({"a": ["b"], "b": ["c"], "c": []})
        ['a', 'b', 'c']

    """
    indegree: dict[T, int] = {}
    for node, succs in successors.items():
        indegree.setdefault(node, 0)
        for succ in succs:
            indegree[succ] = indegree.get(succ, 0) + 1

    queue = deque(node for node, deg in indegree.items() if deg == 0)
    order: list[T] = []
    while queue:
        node = queue.popleft()
        order.append(node)
        for succ in successors.get(node, ()):
            indegree[succ] -= 1
            if indegree[succ] == 0:
                queue.append(succ)

    if len(order) != len(indegree):
        msg = "Cycle detected in graph"
        raise ValueError(msg)
    return order


@dataclass(frozen=True, slots=True)
class DataflowGraph(Generic[T]):
    """Immutable DAG where an edge (a, b) means "b consumes what a produces".

    Nodes keep the order in which they were first seen.
    """

    _predecessors: dict[T, tuple[T, ...]] = field(default_factory=dict)
    _successors: dict[T, tuple[T, ...]] = field(default_factory=dict)

    @classmethod
    def from_edges(cls, edges: Iterable[tuple[T, T]], nodes: Iterable[T] = ()) -> DataflowGraph[T]:
        """Build a graph from (producer, consumer) edges plus optional isolated nodes."""
        predecessors: dict[T, list[T]] = {node: [] for node in nodes}
        successors: dict[T, list[T]] = {node: [] for node in predecessors}
        for src, dst in edges:
            for node in (src, dst):
                predecessors.setdefault(node, [])
                successors.setdefault(node, [])
            if src not in predecessors[dst]:
                predecessors[dst].append(src)
                successors[src].append(dst)
        return cls(
            _predecessors={k: tuple(v) for k, v in predecessors.items()},
            _successors={k: tuple(v) for k, v in successors.items()},
        )

    @property
    def nodes(self) -> tuple[T, ...]:
        return tuple(self._predecessors)

    def predecessors(self, node: T) -> tuple[T, ...]:
        return self._predecessors.get(node, ())

    def successors(self, node: T) -> tuple[T, ...]:
        return self._successors.get(node, ())

    def roots(self) -> tuple[T, ...]:
        """Nodes consuming nothing produced inside the graph."""
        return tuple(n for n in self._predecessors if not self._predecessors[n])

    def leaves(self) -> tuple[T, ...]:
        """Nodes whose outputs nobody consumes."""
        return tuple(n for n in self._successors if not self._successors[n])

    def upstream(self, node: T) -> frozenset[T]:
        """All nodes `node` transitively depends on."""
        return self._reach(node, self._predecessors)

    def downstream(self, node: T) -> frozenset[T]:
        """All nodes transitively depending on `node`."""
        return self._reach(node, self._successors)

    @staticmethod
    def _reach(node: T, edges: dict[T, tuple[T, ...]]) -> frozenset[T]:
        visited: set[T] = set()
        stack = list(edges.get(node, ()))
        while stack:
            current = stack.pop()
            if current not in visited:
                visited.add(current)
                stack.extend(edges.get(current, ()))
        return frozenset(visited)

    def topological_order(self) -> list[T]:
        return topological_sort(self._successors)

    def __len__(self) -> int:
        return len(self._predecessors)

    def __contains__(self, node: object) -> bool:
        return node in self._predecessors
