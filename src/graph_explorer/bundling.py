"""
Edge Bundler

Parallel edges between the same ordered (source, target) pair are drawn as a
fan of quadratic Bezier curves, evenly spaced on both sides of the straight
line.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from src.graph_explorer.model import Edge, Graph, LayoutResult

Point = Tuple[float, float]


@dataclass(frozen=True)
class BundleParams:
    separation_step: float = 21.0
    arrow_length: float = 8.0
    arrow_half_angle: float = 0.4

    @classmethod
    def from_config(cls, config: Dict) -> "BundleParams":
        section = config.get("bundling", {})
        return cls(**{k: float(v) for k, v in section.items() if k in cls.__dataclass_fields__})


def edge_label(edge: Edge) -> str:
    """Amount when there is one, otherwise the channel tag or the transaction count."""
    if edge.amount > 0:
        return f"${round(edge.amount):,}"
    if edge.channel.value != "OTHER":
        return edge.channel.value
    return f"{edge.count}x"


@dataclass(frozen=True)
class Arrowhead:
    tip: Point
    left: Point
    right: Point
    angle: float


@dataclass(frozen=True)
class BundledCurve:
    edge: Edge
    start: Point
    control: Point
    end: Point
    arrow: Arrowhead
    label: str

    def point_at(self, t: float) -> Point:
        """Point on the quadratic curve for t in [0, 1]."""
        u = 1 - t
        x = u * u * self.start[0] + 2 * u * t * self.control[0] + t * t * self.end[0]
        y = u * u * self.start[1] + 2 * u * t * self.control[1] + t * t * self.end[1]
        return (x, y)


@dataclass(frozen=True)
class EdgeGroup:
    source: str
    target: str
    curves: Tuple[BundledCurve, ...]
    midpoint: Point

    @property
    def key(self) -> str:
        return f"{self.source}->{self.target}"

    @property
    def edges(self) -> List[Edge]:
        return [c.edge for c in self.curves]

    def breakdown(self) -> Dict[str, float]:
        """Total amount per channel, in order of first appearance."""
        totals: Dict[str, float] = {}
        for edge in self.edges:
            channel = edge.channel.value
            totals[channel] = totals.get(channel, 0.0) + edge.amount
        return totals


def group_edges(graph: Graph) -> Dict[Tuple[str, str], List[Edge]]:
    groups: Dict[Tuple[str, str], List[Edge]] = {}
    for edge in graph.edges:
        groups.setdefault(edge.key, []).append(edge)
    return groups


def control_offsets(k: int, separation_step: float) -> List[float]:
    """Signed normal offsets for k parallel curves, symmetric around zero."""
    return [(i - (k - 1) / 2) * separation_step for i in range(k)]


def arrowhead(control: Point, end: Point, target_radius: float, length: float, half_angle: float) -> Arrowhead:
    """Arrow pointing at the target along the curve's end tangent, tip on the node boundary."""
    angle = math.atan2(end[1] - control[1], end[0] - control[0])
    tip = (end[0] - target_radius * math.cos(angle), end[1] - target_radius * math.sin(angle))
    left = (tip[0] - length * math.cos(angle - half_angle), tip[1] - length * math.sin(angle - half_angle))
    right = (tip[0] - length * math.cos(angle + half_angle), tip[1] - length * math.sin(angle + half_angle))
    return Arrowhead(tip, left, right, angle)


def bundle_edges(graph: Graph, layout: LayoutResult, params: BundleParams = BundleParams()) -> Tuple[EdgeGroup, ...]:
    """
    Build curve geometry for every edge group in world coordinates.

    Groups whose endpoints have no layout position are skipped. Self-loops
    have no direction to offset along and are drawn as degenerate curves.
    """
    result = []
    for (source, target), edges in group_edges(graph).items():
        a = layout.get(source)
        b = layout.get(target)
        if a is None or b is None:
            continue

        mx, my = (a.x + b.x) / 2, (a.y + b.y) / 2
        dx, dy = b.x - a.x, b.y - a.y
        length = math.hypot(dx, dy) or 1.0
        nx, ny = -dy / length, dx / length

        curves = []
        for edge, offset in zip(edges, control_offsets(len(edges), params.separation_step)):
            control = (mx + nx * offset, my + ny * offset)
            curves.append(BundledCurve(
                edge=edge,
                start=(a.x, a.y),
                control=control,
                end=(b.x, b.y),
                arrow=arrowhead(control, (b.x, b.y), b.radius, params.arrow_length, params.arrow_half_angle),
                label=edge_label(edge),
            ))
        result.append(EdgeGroup(source, target, tuple(curves), (mx, my)))
    return tuple(result)


def find_group(groups, key: Optional[str]) -> Optional[EdgeGroup]:
    for group in groups:
        if group.key == key:
            return group
    return None
