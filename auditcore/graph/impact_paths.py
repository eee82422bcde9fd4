"""Impact path reconstruction.

Walks the *full* dependency forest (never the flat request graph, which has
lost all shape) and records, for each implicated component, every root-to-
component path. A component reached through several branches gets one path
per branch: fix availability can differ per branch, so downstream severity and
fix-version logic needs all of them.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

from auditcore.graph.types import GraphNode

if TYPE_CHECKING:
    from auditcore.sca.models import Component, ScanResponse


def build_impact_paths(
    forest: Sequence[GraphNode], targets: Iterable[str]
) -> dict[str, list[list[str]]]:
    """Map each target component id to all of its root-to-component paths.

    Targets that are never reached keep an empty path list.

    Args:
        forest: Full dependency trees, one per project module
        targets: Component ids implicated by scan results

    Returns:
        Mapping of component id to list of paths (each a list of ids,
        starting at a root id and ending at the component id)
    """
    paths: dict[str, list[list[str]]] = {target: [] for target in targets}
    if not paths:
        return paths

    for tree in forest:
        # Each frame carries its own path tuple, so siblings never share or
        # mutate the accumulated path.
        stack: list[tuple[GraphNode, tuple[str, ...]]] = [(tree, (tree.id,))]
        while stack:
            node, path_from_root = stack.pop()
            if node.id in paths:
                paths[node.id].append(list(path_from_root))
            for child in reversed(node.nodes):
                stack.append((child, path_from_root + (child.id,)))
    return paths


def _with_impact_paths(
    components: Mapping[str, "Component"], paths: Mapping[str, list[list[str]]]
) -> dict[str, "Component"]:
    return {
        component_id: replace(
            component,
            impact_paths=[list(path) for path in paths.get(component_id, [])],
        )
        for component_id, component in components.items()
    }


def build_impact_paths_for_scan_responses(
    responses: Sequence["ScanResponse"], forest: Sequence[GraphNode]
) -> list["ScanResponse"]:
    """Attach impact paths to every component of every finding.

    Components are replaced with new values carrying freshly built path
    lists; the input responses are left untouched.
    """
    updated = []
    for response in responses:
        issues = [*response.vulnerabilities, *response.violations, *response.licenses]
        targets = {component_id for issue in issues for component_id in issue.components}
        paths = build_impact_paths(forest, targets)
        updated.append(
            replace(
                response,
                vulnerabilities=[
                    replace(v, components=_with_impact_paths(v.components, paths))
                    for v in response.vulnerabilities
                ],
                violations=[
                    replace(v, components=_with_impact_paths(v.components, paths))
                    for v in response.violations
                ],
                licenses=[
                    replace(lic, components=_with_impact_paths(lic.components, paths))
                    for lic in response.licenses
                ],
            )
        )
    return updated
