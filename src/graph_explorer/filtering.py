"""
Filter Engine

Connectivity-preserving pruning of a transaction graph around its center.
The result is always an induced sub-graph of the input that contains the
center and only nodes reachable from it.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from src.graph_explorer.model import Channel, Direction, Graph
from src.utils.logging import get_logger

logger = get_logger(__name__)


def _as_tuple(values: Optional[Iterable[str]], upper: bool = False) -> Optional[Tuple[str, ...]]:
    if values is None:
        return None
    if isinstance(values, str):
        values = [values]
    cleaned = []
    for value in values:
        text = str(getattr(value, "value", value)).strip()
        if text:
            cleaned.append(text.upper() if upper else text)
    return tuple(cleaned) or None


@dataclass(frozen=True)
class FilterSpec:
    """
    Analyst filter settings.

    Empty lists mean "no restriction". top_n of None disables Top-N pruning.
    """
    direction: Direction = Direction.ANY
    min_amount: float = 0.0
    entity_types: Optional[Tuple[str, ...]] = None
    entity_subtypes: Optional[Tuple[str, ...]] = None
    entity_status: Optional[Tuple[str, ...]] = None
    channels: Optional[Tuple[str, ...]] = None
    hide_technical: bool = False
    top_n: Optional[int] = None

    @classmethod
    def create(cls, direction=Direction.ANY, min_amount=0.0, entity_types=None, entity_subtypes=None,
               entity_status=None, channels=None, hide_technical=False, top_n=None) -> "FilterSpec":
        if top_n is not None:
            top_n = int(top_n)
            if top_n < 0:
                raise ValueError(f"top_n must be >= 0, got {top_n}")
        min_amount = float(min_amount or 0.0)
        if min_amount < 0:
            raise ValueError(f"min_amount must be >= 0, got {min_amount}")
        return cls(
            direction=Direction.parse(direction),
            min_amount=min_amount,
            entity_types=_as_tuple(entity_types, upper=True),
            entity_subtypes=_as_tuple(entity_subtypes),
            entity_status=_as_tuple(entity_status),
            channels=_as_tuple(channels, upper=True),
            hide_technical=bool(hide_technical),
            top_n=top_n,
        )

    def update(self, **changes) -> "FilterSpec":
        """Return a normalised copy with the given fields replaced."""
        current = {
            "direction": self.direction,
            "min_amount": self.min_amount,
            "entity_types": self.entity_types,
            "entity_subtypes": self.entity_subtypes,
            "entity_status": self.entity_status,
            "channels": self.channels,
            "hide_technical": self.hide_technical,
            "top_n": self.top_n,
        }
        unknown = set(changes) - set(current)
        if unknown:
            raise ValueError(f"Unknown filter fields: {sorted(unknown)}")
        current.update(changes)
        return FilterSpec.create(**current)


def _folded(values: Optional[Iterable[str]]) -> Optional[FrozenSet[str]]:
    if not values:
        return None
    return frozenset(v.strip().casefold() for v in values)


def attribute_present(graph: Graph, attribute: str) -> bool:
    """True if at least one node carries a non-empty value for the attribute."""
    return any(getattr(node, attribute) for node in graph.nodes.values())


def filter_edges(graph: Graph, center_id: str, spec: FilterSpec) -> Graph:
    """Apply amount, channel and direction filters at edge level."""
    channels = frozenset(Channel.parse(c) for c in spec.channels) if spec.channels else None
    edges = [
        e for e in graph.edges
        if e.amount >= spec.min_amount and (channels is None or e.channel in channels)
    ]
    filtered = graph.with_edges(edges)

    if spec.direction is Direction.SENDING:
        reach = directed_reach(filtered, center_id, forward=True)
        filtered = filtered.with_edges(e for e in filtered.edges if e.source in reach)
    elif spec.direction is Direction.RECEIVING:
        reach = directed_reach(filtered, center_id, forward=False)
        filtered = filtered.with_edges(e for e in filtered.edges if e.target in reach)
    return filtered


def directed_reach(graph: Graph, start: str, forward: bool = True) -> Set[str]:
    """Nodes reachable from start following edge direction (or against it)."""
    adjacency = graph.outgoing if forward else graph.incoming
    reached = {start}
    queue = deque([start])
    while queue:
        node_id = queue.popleft()
        for i in adjacency.get(node_id, ()):
            edge = graph.edges[i]
            other = edge.target if forward else edge.source
            if other not in reached:
                reached.add(other)
                queue.append(other)
    return reached


def reachable(graph: Graph, start: str, allowed: Optional[Set[str]] = None) -> Set[str]:
    """Undirected reachability from start, optionally restricted to an allowed node set."""
    if start not in graph:
        return set()
    reached = {start}
    queue = deque([start])
    while queue:
        node_id = queue.popleft()
        for other in graph.neighbors(node_id):
            if other in reached or (allowed is not None and other not in allowed):
                continue
            reached.add(other)
            queue.append(other)
    return reached


def seed_keep_set(graph: Graph, center_id: str, kinds: Optional[FrozenSet[str]],
                  subtypes: Optional[FrozenSet[str]], statuses: Optional[FrozenSet[str]]) -> Set[str]:
    """Center plus every non-technical node whose attributes pass the active filters."""
    keep = {center_id}
    for node in graph.nodes.values():
        if node.is_technical:
            continue
        if kinds is not None and node.kind.value not in kinds:
            continue
        if subtypes is not None and (node.subtype or "").casefold() not in subtypes:
            continue
        if statuses is not None and (node.status or "").casefold() not in statuses:
            continue
        keep.add(node.id)
    return keep


def propagate_closure(graph: Graph, keep: Set[str], exclude: Optional[Set[str]] = None) -> Set[str]:
    """
    Grow the keep set across technical nodes until nothing changes.

    A technical node joins when an edge connects it to a kept node, so chains
    such as person -> account -> wallet -> person stay intact.
    """
    exclude = exclude or set()
    closed = set(keep)
    queue = deque(node_id for node_id in graph.nodes if node_id in closed)
    while queue:
        node_id = queue.popleft()
        for other in graph.neighbors(node_id):
            if other in closed or other in exclude:
                continue
            if graph.nodes[other].is_technical:
                closed.add(other)
                queue.append(other)
    return closed


def rank_neighbors(graph: Graph, center_id: str) -> List[Tuple[str, float]]:
    """
    Direct neighbours of the center by total amount exchanged with it.

    Both directions count. Ties keep the order of first appearance in the
    edge list.
    """
    totals: Dict[str, float] = {}
    for edge in graph.incident_edges(center_id):
        other = edge.other(center_id)
        if other == center_id:
            continue
        totals[other] = totals.get(other, 0.0) + edge.amount
    return sorted(totals.items(), key=lambda item: -item[1])


def apply_filters(graph: Graph, center_id: str, spec: Optional[FilterSpec] = None) -> Graph:
    """
    Filter a graph around center_id.

    Args:
        graph: Source graph (not modified)
        center_id: Focal node; always retained when present
        spec: Filter settings (defaults to no filtering)

    Returns:
        Induced sub-graph whose nodes are all connected to the center
    """
    spec = spec or FilterSpec()
    if center_id not in graph:
        logger.debug(f"Center {center_id} not in graph; nothing to show")
        return Graph.empty()

    edge_graph = filter_edges(graph, center_id, spec)

    kinds = frozenset(spec.entity_types) if spec.entity_types else None
    subtypes = _folded(spec.entity_subtypes) if attribute_present(graph, "subtype") else None
    statuses = _folded(spec.entity_status) if attribute_present(graph, "status") else None
    if spec.entity_subtypes and subtypes is None:
        logger.debug("No node carries a subtype; subtype filter ignored")
    if spec.entity_status and statuses is None:
        logger.debug("No node carries a status; status filter ignored")

    keep = seed_keep_set(edge_graph, center_id, kinds, subtypes, statuses)
    if not spec.hide_technical:
        keep = propagate_closure(edge_graph, keep)

    if spec.top_n is not None:
        kept_graph = edge_graph.subgraph(keep)
        ranked = rank_neighbors(kept_graph, center_id)
        chosen = {node_id for node_id, _ in ranked[:spec.top_n]}
        pruned = {node_id for node_id, _ in ranked[spec.top_n:]}
        keep = {center_id} | chosen
        if not spec.hide_technical:
            keep = propagate_closure(kept_graph, keep, exclude=pruned)

    connected = reachable(edge_graph, center_id, allowed=keep)
    result = edge_graph.subgraph(connected)
    logger.debug(f"Filtered graph: {len(graph)} -> {len(result)} nodes, "
                 f"{len(graph.edges)} -> {len(result.edges)} edges")
    return result
