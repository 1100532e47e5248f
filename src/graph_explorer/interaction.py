"""
Interaction Controller

Geometric hit-testing of pointer positions against the laid-out graph.
Nodes win over edges; edge groups are matched by their straight-line
midpoint, an approximation that misses pointers far along long curves.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from src.graph_explorer.bundling import EdgeGroup
from src.graph_explorer.model import Graph, LayoutResult, Node
from src.graph_explorer.viewport import Viewport

NODE = "node"
EDGE = "edge"


@dataclass(frozen=True)
class InteractionParams:
    node_tolerance: float = 4.0
    edge_tolerance: float = 14.0
    recenter_on_click: bool = True

    @classmethod
    def from_config(cls, config: Dict) -> "InteractionParams":
        section = config.get("interaction", {})
        return cls(
            node_tolerance=float(section.get("node_tolerance", cls.node_tolerance)),
            edge_tolerance=float(section.get("edge_tolerance", cls.edge_tolerance)),
            recenter_on_click=bool(section.get("recenter_on_click", cls.recenter_on_click)),
        )


@dataclass(frozen=True)
class Tooltip:
    x: float
    y: float
    text: str


@dataclass(frozen=True)
class Hit:
    kind: str
    target_id: str
    text: str


def node_tooltip(node: Node) -> str:
    return node.label or node.id


def edge_tooltip(group: EdgeGroup) -> str:
    """Per-channel amount summary, e.g. 'CARD:120  WIRE:40'."""
    parts = [f"{channel}:{round(total)}" for channel, total in group.breakdown().items()]
    return "  ".join(parts) or "edge"


def hit_node(world: Tuple[float, float], graph: Graph, layout: LayoutResult, viewport: Viewport,
             tolerance: float) -> Optional[Node]:
    """Topmost node under the world point; tolerance is in screen pixels."""
    wx, wy = world
    slack = tolerance / viewport.zoom
    for node in reversed(list(graph.nodes.values())):
        pos = layout.get(node.id)
        if pos is None:
            continue
        reach = pos.radius + slack
        if (wx - pos.x) ** 2 + (wy - pos.y) ** 2 <= reach ** 2:
            return node
    return None


def hit_edge_group(world: Tuple[float, float], groups: Sequence[EdgeGroup], viewport: Viewport,
                   tolerance: float) -> Optional[EdgeGroup]:
    wx, wy = world
    limit = tolerance / viewport.zoom
    for group in groups:
        mx, my = group.midpoint
        if (wx - mx) ** 2 + (wy - my) ** 2 < limit ** 2:
            return group
    return None


def hit_test(point: Tuple[float, float], graph: Graph, layout: LayoutResult, groups: Sequence[EdgeGroup],
             viewport: Viewport, params: InteractionParams = InteractionParams()) -> Optional[Hit]:
    """
    Resolve a screen-space pointer position to a node or edge group.

    Args:
        point: Pointer position in screen pixels
        graph: Displayed graph
        layout: Its layout
        groups: Bundled edge groups
        viewport: Current transform
        params: Pixel tolerances

    Returns:
        Hit describing the target and its tooltip text, or None
    """
    world = viewport.to_world(*point)
    node = hit_node(world, graph, layout, viewport, params.node_tolerance)
    if node is not None:
        return Hit(NODE, node.id, node_tooltip(node))
    group = hit_edge_group(world, groups, viewport, params.edge_tolerance)
    if group is not None:
        return Hit(EDGE, group.key, edge_tooltip(group))
    return None


def is_recenter_target(node: Optional[Node]) -> bool:
    """Only analytic entities can become the new center."""
    return node is not None and not node.is_technical
