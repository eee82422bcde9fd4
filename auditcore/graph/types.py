"""Shared data structures for the graph module.

GraphNode is the single tree representation used by every ecosystem adapter,
by the dependency graph builder, by impact path reconstruction and by the
binary scan pipeline (where the indexer emits the same shape as JSON).

Nodes carry no parent pointer. Cycle detection walks an explicit ancestor list
during construction instead, so a node never references anything it does not
own.
"""

from dataclasses import dataclass, field
from typing import Any

FLAT_TREE_ROOT_ID = "root"


@dataclass
class GraphNode:
    """One dependency (or scan target) and the dependencies it pulls in."""

    id: str
    nodes: list["GraphNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape expected by the scanning service."""
        d: dict[str, Any] = {"component_id": self.id}
        if self.nodes:
            d["nodes"] = [child.to_dict() for child in self.nodes]
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GraphNode":
        """Build a tree from service/indexer JSON.

        Accepts either ``component_id`` or ``id`` for the node identifier.
        """
        node_id = data.get("component_id") or data.get("id") or ""
        children = [cls.from_dict(child) for child in data.get("nodes") or []]
        return cls(id=node_id, nodes=children)

    def iter_nodes(self):
        """Yield every node of the tree in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.nodes))

    def count(self) -> int:
        """Total number of nodes in this tree, root included."""
        return sum(1 for _ in self.iter_nodes())

    def __repr__(self) -> str:
        return f"<GraphNode id={self.id!r} children={len(self.nodes)}>"
