"""Dependency graph package - tree model, graph builder and impact paths.

Usage:
    from auditcore.graph import build_dependency_tree, create_flat_tree

    tree, unique_ids = build_dependency_tree(edges, "npm://my-app:1.0.0")
    request_graph = create_flat_tree(unique_ids)
"""

from .builder import (
    MAX_UNIQUE_APPEARANCES,
    build_dependency_forest,
    build_dependency_tree,
    create_flat_tree,
    get_direct_dependencies,
    merge_unique_ids,
)
from .impact_paths import build_impact_paths, build_impact_paths_for_scan_responses
from .types import FLAT_TREE_ROOT_ID, GraphNode

__all__ = [
    "FLAT_TREE_ROOT_ID",
    "GraphNode",
    "MAX_UNIQUE_APPEARANCES",
    "build_dependency_forest",
    "build_dependency_tree",
    "build_impact_paths",
    "build_impact_paths_for_scan_responses",
    "create_flat_tree",
    "get_direct_dependencies",
    "merge_unique_ids",
]
