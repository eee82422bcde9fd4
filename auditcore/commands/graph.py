"""Build a dependency tree and request graph from a raw edge map."""

import json
from pathlib import Path

import click

from auditcore.config import load_runtime_config
from auditcore.graph.builder import build_dependency_tree, create_flat_tree
from auditcore.ui import console, print_header
from auditcore.utils.error_handler import handle_exceptions


def load_edges(path: str) -> tuple[dict[str, list[str]], str | None, set[str] | None]:
    """Read an edge file.

    Accepts either a bare ``{parent: [children]}`` mapping or
    ``{"root": ..., "edges": {...}, "known_ids": [...]}``.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise click.BadParameter("edge file must contain a JSON object", param_hint="EDGES_JSON")
    if "edges" in data and isinstance(data["edges"], dict):
        known = data.get("known_ids")
        return data["edges"], data.get("root"), set(known) if known is not None else None
    return data, None, None


@click.command()
@handle_exceptions
@click.argument("edges_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--root", "root_id", default=None, help="Root (module) component id")
@click.option(
    "--max-appearances",
    type=int,
    default=None,
    help="Expansions allowed per id (default: limits.max_unique_appearances)",
)
@click.option("--json", "as_json", is_flag=True, help="Print tree and request graph as JSON")
@click.option("--out", default=None, help="Also write the JSON document to this file")
def graph(edges_json, root_id, max_appearances, as_json, out):
    """Build a cycle-free dependency tree from a parent -> children edge map.

    Prints the full tree summary and the flattened request graph that would
    be submitted to the scanning service.

    EXAMPLES:
      auditcore graph edges.json --root npm://my-app:1.0.0
      auditcore graph edges.json --root npm://my-app:1.0.0 --json
    """
    edges, file_root, known_ids = load_edges(edges_json)
    root_id = root_id or file_root
    if not root_id:
        raise click.UsageError("--root is required when the edge file does not name a root")

    cfg = load_runtime_config()
    limit = max_appearances or cfg["limits"]["max_unique_appearances"]
    tree, unique_ids = build_dependency_tree(edges, root_id, known_ids=known_ids, max_appearances=limit)
    request_graph = create_flat_tree(unique_ids)

    document = {
        "tree": tree.to_dict(),
        "unique_ids": unique_ids,
        "request_graph": request_graph.to_dict(),
    }
    if out:
        Path(out).parent.mkdir(parents=True, exist_ok=True)
        Path(out).write_text(json.dumps(document, indent=2), encoding="utf-8")

    if as_json:
        click.echo(json.dumps(document, indent=2))
        return

    print_header("DEPENDENCY GRAPH")
    console.print(f"Root:            [path]{root_id}[/path]", highlight=False)
    console.print(f"Tree nodes:      {tree.count()}")
    console.print(f"Direct deps:     {len(tree.nodes)}")
    console.print(f"Unique ids:      {len(unique_ids)}")
    if out:
        console.print(f"Written to:      [path]{out}[/path]", highlight=False)
