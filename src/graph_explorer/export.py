"""
Export surfaces: two-section CSV, PNG snapshot, and the URL query string that
lets a shared link reproduce the same view.
"""
from __future__ import annotations

import io
import os
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union
from urllib.parse import parse_qs, urlencode

import pandas as pd

from src.graph_explorer.filtering import FilterSpec
from src.graph_explorer.model import Edge, Graph, Node
from src.graph_explorer.render import Scene, draw_matplotlib
from src.utils.logging import get_logger

logger = get_logger(__name__)

NODE_COLUMNS = ["id", "label", "kind", "subtype", "status", "risk_score"]
LINK_COLUMNS = ["source", "target", "amount", "count", "channel"]


def nodes_frame(graph: Graph) -> pd.DataFrame:
    rows = [
        [n.id, n.label, n.kind.value, n.subtype or "", n.status or "", n.risk_score]
        for n in graph.nodes.values()
    ]
    return pd.DataFrame(rows, columns=NODE_COLUMNS)


def links_frame(graph: Graph) -> pd.DataFrame:
    rows = [[e.source, e.target, e.amount, e.count, e.channel.value] for e in graph.edges]
    return pd.DataFrame(rows, columns=LINK_COLUMNS)


def graph_to_csv(graph: Graph) -> str:
    """NODES section, blank line, LINKS section."""
    buffer = io.StringIO()
    buffer.write("NODES\n")
    nodes_frame(graph).to_csv(buffer, index=False, lineterminator="\n")
    buffer.write("\nLINKS\n")
    links_frame(graph).to_csv(buffer, index=False, lineterminator="\n")
    return buffer.getvalue()


def export_csv(graph: Graph, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as f:
        f.write(graph_to_csv(graph))
    logger.info(f"Exported {len(graph)} nodes and {len(graph.edges)} links to {path}")
    return path


def _section(lines, name: str, following: Optional[str]) -> str:
    try:
        start = lines.index(name) + 1
    except ValueError:
        raise ValueError(f"CSV export is missing the {name} section")
    end = lines.index(following, start) if following and following in lines[start:] else len(lines)
    return "\n".join(line for line in lines[start:end] if line.strip())


def read_graph_csv(source: Union[str, Path, io.StringIO]) -> Graph:
    """Read a two-section export back into a Graph."""
    if isinstance(source, io.StringIO):
        text = source.getvalue()
    else:
        with open(source, "r") as f:
            text = f.read()
    lines = text.splitlines()

    nodes_text = _section(lines, "NODES", "LINKS")
    links_text = _section(lines, "LINKS", None)
    df_nodes = pd.read_csv(io.StringIO(nodes_text), dtype=str, keep_default_na=False) if nodes_text else None
    df_links = pd.read_csv(io.StringIO(links_text), dtype=str, keep_default_na=False) if links_text else None

    nodes = []
    if df_nodes is not None:
        for row in df_nodes.to_dict("records"):
            nodes.append(Node.create(row["id"], row.get("label"), row.get("kind"), row.get("subtype"),
                                     row.get("status"), row.get("risk_score")))
    edges = []
    if df_links is not None:
        for row in df_links.to_dict("records"):
            edges.append(Edge.create(row["source"], row["target"], row.get("amount"),
                                     row.get("count"), row.get("channel")))
    return Graph.build(nodes, edges)


def export_png(scene: Scene, target: Union[str, os.PathLike, BinaryIO], dpi: int = 100):
    """
    Snapshot of the rendered canvas.

    target is a path or a binary file object (the dashboard download writes
    into a BytesIO). Returns the target, as a Path when a path was given.
    """
    if isinstance(target, (str, os.PathLike)):
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
    fig = draw_matplotlib(scene, dpi=dpi)
    fig.savefig(target, format="png", dpi=dpi)
    logger.info(f"Saved graph snapshot to {target if isinstance(target, Path) else 'buffer'}")
    return target


# ---------------------------------------------------------------------------
# URL view state
# ---------------------------------------------------------------------------

def encode_view_state(center_id: Optional[str], depth: int, filters: FilterSpec) -> str:
    """Query string for the center, depth and the key filter values; defaults are omitted."""
    params = []
    if center_id:
        params.append(("center", center_id))
    params.append(("depth", str(depth)))
    if filters.min_amount:
        params.append(("min_amount", f"{filters.min_amount:g}"))
    if filters.direction.value != "ANY":
        params.append(("direction", filters.direction.value))
    for name in ("entity_types", "entity_subtypes", "entity_status", "channels"):
        values = getattr(filters, name)
        if values:
            params.append((name, ",".join(values)))
    if filters.hide_technical:
        params.append(("hide_technical", "1"))
    if filters.top_n is not None:
        params.append(("top_n", str(filters.top_n)))
    return urlencode(params)


def _first(query, name: str) -> Optional[str]:
    values = query.get(name)
    return values[0] if values else None


def _number(text: Optional[str], cast, default):
    try:
        return cast(text) if text is not None else default
    except ValueError:
        return default


def decode_view_state(query_string: str) -> Tuple[Optional[str], int, FilterSpec]:
    """Inverse of encode_view_state; malformed values fall back to defaults."""
    query = parse_qs(query_string.lstrip("?"), keep_blank_values=False)

    depth = _number(_first(query, "depth"), int, 1)
    if depth not in (1, 2):
        depth = 1
    min_amount = max(0.0, _number(_first(query, "min_amount"), float, 0.0))
    top_n = _number(_first(query, "top_n"), int, None)
    if top_n is not None and top_n < 0:
        top_n = None

    def split(name):
        text = _first(query, name)
        return [part for part in text.split(",") if part.strip()] if text else None

    filters = FilterSpec.create(
        direction=_first(query, "direction"),
        min_amount=min_amount,
        entity_types=split("entity_types"),
        entity_subtypes=split("entity_subtypes"),
        entity_status=split("entity_status"),
        channels=split("channels"),
        hide_technical=_first(query, "hide_technical") in ("1", "true", "yes"),
        top_n=top_n,
    )
    return _first(query, "center"), depth, filters
