"""
Layout Engine

Radial (star) layout for single-hop views and a deterministic force-directed
layout for deeper or exploratory views. Both return a LayoutResult in world
coordinates whose bounding box feeds fit-to-view.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from src.graph_explorer.model import BoundingBox, Graph, LayoutResult, NodePosition
from src.utils.logging import get_logger

logger = get_logger(__name__)

STRATEGIES = ("auto", "radial", "force")


@dataclass(frozen=True)
class LayoutParams:
    base_radius: float = 110.0
    radius_per_neighbor: float = 20.0
    min_radius: float = 160.0
    max_radius: float = 420.0
    bbox_padding: float = 48.0
    technical_node_radius: float = 16.0
    entity_node_radius: float = 18.0
    iterations: int = 220
    repulsion: float = 200000.0
    spring_k: float = 0.002
    rest_length: float = 120.0
    friction: float = 0.85
    seed_radius: float = 180.0
    origin_x: float = 490.0
    origin_y: float = 310.0

    @classmethod
    def from_config(cls, config: Dict) -> "LayoutParams":
        section = dict(config.get("layout", {}))
        origin = section.pop("origin", None)
        section.pop("strategy", None)
        fields = {k: v for k, v in section.items() if k in cls.__dataclass_fields__}
        if origin is not None:
            fields["origin_x"], fields["origin_y"] = float(origin[0]), float(origin[1])
        if "iterations" in fields:
            fields["iterations"] = int(fields["iterations"])
        return cls(**fields)


def ring_radius(neighbor_count: int, params: LayoutParams) -> float:
    radius = params.base_radius + params.radius_per_neighbor * neighbor_count
    return max(params.min_radius, min(params.max_radius, radius))


def radial_layout(graph: Graph, center_id: Optional[str], params: LayoutParams = LayoutParams()) -> LayoutResult:
    """
    Center at the origin, every other node on one ring at equal angular steps.

    Node order follows the graph's insertion order, so the result is
    deterministic. If center_id is not in the graph the first node is used.
    """
    if graph.is_empty:
        return LayoutResult.empty("radial")

    center = graph.nodes.get(center_id) or next(iter(graph.nodes.values()))
    others = [n for n in graph.nodes.values() if n.id != center.id]

    def node_radius(node):
        return params.technical_node_radius if node.is_technical else params.entity_node_radius

    positions = {center.id: NodePosition(0.0, 0.0, node_radius(center))}
    radius = ring_radius(len(others), params)
    step = 2 * math.pi / max(1, len(others))
    for i, node in enumerate(others):
        angle = i * step
        positions[node.id] = NodePosition(radius * math.cos(angle), radius * math.sin(angle), node_radius(node))

    return LayoutResult(positions, BoundingBox.around(positions.values(), params.bbox_padding), "radial")


@dataclass(frozen=True)
class LayoutState:
    """Positions and velocities of a force simulation, one row per node."""
    positions: np.ndarray
    velocities: np.ndarray
    pinned: np.ndarray
    iteration: int = 0


def seed_state(n_nodes: int, pinned_index: Optional[int], params: LayoutParams) -> LayoutState:
    """Nodes on a circle around the origin point; the pinned node sits on the point itself."""
    positions = np.zeros((n_nodes, 2))
    pinned = np.zeros(n_nodes, dtype=bool)
    angles = np.arange(n_nodes) / max(1, n_nodes) * 2 * np.pi
    positions[:, 0] = params.origin_x + np.cos(angles) * params.seed_radius
    positions[:, 1] = params.origin_y + np.sin(angles) * params.seed_radius
    if pinned_index is not None:
        positions[pinned_index] = (params.origin_x, params.origin_y)
        pinned[pinned_index] = True
    return LayoutState(positions, np.zeros((n_nodes, 2)), pinned)


def step(state: LayoutState, sources: np.ndarray, targets: np.ndarray, params: LayoutParams) -> LayoutState:
    """One simulation tick: repulsion, springs, friction, integration."""
    pos = state.positions
    velocities = state.velocities.copy()

    # pairwise repulsion ~ 1/d^2 along the separating direction
    delta = pos[:, None, :] - pos[None, :, :]
    dist2 = np.sum(delta ** 2, axis=-1) + 0.01
    np.fill_diagonal(dist2, np.inf)
    magnitude = params.repulsion / dist2
    unit = delta / np.sqrt(dist2)[:, :, None]
    velocities += np.sum(unit * magnitude[:, :, None], axis=1)

    # springs toward the rest length
    if len(sources):
        d = pos[targets] - pos[sources]
        dist = np.sqrt(np.sum(d ** 2, axis=1))
        dist = np.where(dist > 0, dist, 0.001)
        force = (params.spring_k * (dist - params.rest_length) / dist)[:, None] * d
        np.add.at(velocities, sources, force)
        np.add.at(velocities, targets, -force)

    velocities *= params.friction
    velocities[state.pinned] = 0.0
    return LayoutState(pos + velocities, velocities, state.pinned, state.iteration + 1)


def force_layout(graph: Graph, center_id: Optional[str], params: LayoutParams = LayoutParams()) -> LayoutResult:
    """
    Deterministic spring/repulsion layout over a fixed number of iterations.

    The center node is pinned to the origin point; no randomness is involved,
    so identical input order gives identical positions.
    """
    if graph.is_empty:
        return LayoutResult.empty("force")

    ids = list(graph.nodes)
    index = {node_id: i for i, node_id in enumerate(ids)}
    sources = np.array([index[e.source] for e in graph.edges if e.source != e.target], dtype=int)
    targets = np.array([index[e.target] for e in graph.edges if e.source != e.target], dtype=int)

    state = seed_state(len(ids), index.get(center_id), params)
    for _ in range(params.iterations):
        state = step(state, sources, targets, params)

    positions = {}
    for node_id, (x, y) in zip(ids, state.positions):
        node = graph.nodes[node_id]
        positions[node_id] = NodePosition(float(x), float(y), 10.0 + 6.0 * node.risk_score)

    logger.debug(f"Force layout: {len(ids)} nodes, {len(sources)} springs, {params.iterations} iterations")
    return LayoutResult(positions, BoundingBox.around(positions.values(), params.bbox_padding), "force")


def choose_layout(graph: Graph, center_id: Optional[str], depth: int = 1) -> str:
    """Radial for a single-hop star around the center, force-directed otherwise."""
    if depth > 1 or center_id not in graph:
        return "force"
    neighbors = set(graph.neighbors(center_id))
    others = set(graph.nodes) - {center_id}
    return "radial" if others <= neighbors else "force"


def compute_layout(graph: Graph, center_id: Optional[str], strategy: str = "auto", depth: int = 1,
                   params: LayoutParams = LayoutParams()) -> LayoutResult:
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown layout strategy '{strategy}'. Expected one of: {STRATEGIES}")
    if strategy == "auto":
        strategy = choose_layout(graph, center_id, depth)
    if strategy == "radial":
        return radial_layout(graph, center_id, params)
    return force_layout(graph, center_id, params)
