"""Dependency graph builder.

Turns the raw parent -> children edge map produced by an ecosystem adapter
into a GraphNode tree, and derives the flattened request graph that is
submitted to the scanning service.

Two guards keep construction finite on real-world graphs:

- Cycles: a child whose id already appears on the path from the root is
  pruned, never linked. The path is the explicit stack of the walk.
- Repetition bound: an id is expanded at most ``max_appearances`` times across
  the whole build. Diamond-heavy graphs (npm, maven) otherwise re-expand the
  same subtree at every occurrence and grow exponentially.

Every visited id lands in the unique-id list exactly once, in first-seen order.
"""

import json
from collections.abc import Iterable, Mapping, Sequence

from auditcore.graph.types import FLAT_TREE_ROOT_ID, GraphNode
from auditcore.utils.logging import logger

MAX_UNIQUE_APPEARANCES = 10

_EXHAUSTED = object()


def build_dependency_tree(
    edges: Mapping[str, Sequence[str]],
    root_id: str,
    known_ids: set[str] | None = None,
    max_appearances: int = MAX_UNIQUE_APPEARANCES,
) -> tuple[GraphNode, list[str]]:
    """Build a cycle-free, bounded tree rooted at ``root_id``.

    Args:
        edges: Mapping of parent id to its ordered child ids. Child ids that
            are not keys become leaf nodes.
        root_id: Id of the module (root) node
        known_ids: Optional authoritative id set. Children outside it are
            dropped, for adapters whose graph tool over-reports edges
            relative to the ecosystem's resolver.
        max_appearances: How many times one id may be expanded in the tree

    Returns:
        Tuple of (tree root, unique ids in first-seen order)
    """
    root = GraphNode(id=root_id)
    appearances: dict[str, int] = {root_id: 1}

    # Ids of the nodes currently on the stack, i.e. the ancestors of whatever
    # child is being considered (the node being expanded included).
    ancestor_ids: list[str] = [root_id]
    on_path: dict[str, int] = {root_id: 1}
    stack = [(root, iter(edges.get(root_id, ())))]

    while stack:
        node, children = stack[-1]
        child_id = next(children, _EXHAUSTED)

        if child_id is _EXHAUSTED:
            stack.pop()
            finished = ancestor_ids.pop()
            on_path[finished] -= 1
            continue

        if known_ids is not None and child_id not in known_ids:
            continue
        if appearances.get(child_id, 0) >= max_appearances:
            continue
        if on_path.get(child_id, 0) > 0:
            logger.debug(f"Dependency loop detected, pruning {child_id} under {node.id}")
            continue

        child = GraphNode(id=child_id)
        node.nodes.append(child)
        appearances[child_id] = appearances.get(child_id, 0) + 1

        ancestor_ids.append(child_id)
        on_path[child_id] = on_path.get(child_id, 0) + 1
        stack.append((child, iter(edges.get(child_id, ()))))

    return root, list(appearances)


def build_dependency_forest(
    module_graphs: Iterable[tuple[str, Mapping[str, Sequence[str]]]],
    known_ids: set[str] | None = None,
    max_appearances: int = MAX_UNIQUE_APPEARANCES,
) -> tuple[list[GraphNode], list[str]]:
    """Build one tree per project module and union their unique ids.

    Args:
        module_graphs: (root id, edge map) per build module
        known_ids: Optional authoritative id set applied to every module
        max_appearances: Repetition bound passed to each build

    Returns:
        Tuple of (full forest, merged unique ids)
    """
    forest = []
    unique_lists = []
    for root_id, edges in module_graphs:
        tree, unique_ids = build_dependency_tree(
            edges, root_id, known_ids=known_ids, max_appearances=max_appearances
        )
        forest.append(tree)
        unique_lists.append(unique_ids)
    return forest, merge_unique_ids(*unique_lists)


def merge_unique_ids(*id_lists: Iterable[str]) -> list[str]:
    """Union several id lists, keeping first-seen order."""
    merged: dict[str, None] = {}
    for ids in id_lists:
        for dep_id in ids:
            merged.setdefault(dep_id, None)
    return list(merged)


def create_flat_tree(unique_ids: Iterable[str]) -> GraphNode:
    """Create the one-level request graph submitted to the scanning service.

    The service only compares the id set, so shape is dropped: a ``root``
    sentinel with one childless node per distinct id.
    """
    ids = merge_unique_ids(unique_ids)
    logger.debug("Unique dependencies list:\n" + json.dumps(ids, indent=2))
    return GraphNode(id=FLAT_TREE_ROOT_ID, nodes=[GraphNode(id=dep_id) for dep_id in ids])


def get_direct_dependencies(trees: Iterable[GraphNode]) -> list[str]:
    """Ids sitting directly under each root, deduplicated."""
    return merge_unique_ids(*([child.id for child in tree.nodes] for tree in trees))
