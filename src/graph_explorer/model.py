"""
Graph data model

Typed nodes and edges of a transaction network, plus the immutable,
id-indexed Graph every pipeline stage consumes and produces.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx

TX_EVENT_PREFIX = "tx:"


class NodeKind(Enum):
    PERSON = "PERSON"
    BUSINESS = "BUSINESS"
    ACCOUNT = "ACCOUNT"
    WALLET = "WALLET"
    EVENT = "EVENT"

    @classmethod
    def parse(cls, value) -> "NodeKind":
        """Case-insensitive lookup; unknown or missing kinds are treated as PERSON."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.PERSON
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.PERSON


class Channel(Enum):
    CARD = "CARD"
    WIRE = "WIRE"
    CRYPTO = "CRYPTO"
    CASH = "CASH"
    ACH = "ACH"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value) -> "Channel":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.OTHER
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.OTHER


class Direction(Enum):
    ANY = "ANY"
    SENDING = "SENDING"
    RECEIVING = "RECEIVING"

    @classmethod
    def parse(cls, value) -> "Direction":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.ANY
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.ANY


TECHNICAL_KINDS = frozenset({NodeKind.ACCOUNT, NodeKind.WALLET, NodeKind.EVENT})


def to_float(value, default: float = 0.0) -> float:
    """Parse a number from loosely typed payload data, falling back to default."""
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def to_count(value) -> int:
    """Transaction counts are at least 1."""
    try:
        result = int(float(value))
    except (TypeError, ValueError):
        return 1
    return max(1, result)


def clean_text(value) -> Optional[str]:
    """Strip a free-text attribute; empty strings become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Node:
    id: str
    label: str
    kind: NodeKind = NodeKind.PERSON
    subtype: Optional[str] = None
    status: Optional[str] = None
    risk_score: float = 0.0

    @classmethod
    def create(cls, id, label=None, kind=None, subtype=None, status=None, risk_score=None) -> "Node":
        node_id = str(id)
        return cls(
            id=node_id,
            label=clean_text(label) or node_id,
            kind=NodeKind.parse(kind),
            subtype=clean_text(subtype),
            status=clean_text(status),
            risk_score=min(1.0, max(0.0, to_float(risk_score))),
        )

    @property
    def is_technical(self) -> bool:
        """Accounts, wallets and transaction events carry flow but are not analytic subjects."""
        return self.kind in TECHNICAL_KINDS or self.id.startswith(TX_EVENT_PREFIX)


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    amount: float = 0.0
    count: int = 1
    channel: Channel = Channel.OTHER

    @classmethod
    def create(cls, source, target, amount=None, count=None, channel=None) -> "Edge":
        return cls(
            source=str(source),
            target=str(target),
            amount=max(0.0, to_float(amount)),
            count=to_count(count) if count is not None else 1,
            channel=Channel.parse(channel),
        )

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source, self.target)

    def other(self, node_id: str) -> str:
        return self.target if node_id == self.source else self.source


@dataclass(frozen=True)
class Graph:
    """
    Immutable node set keyed by id plus an edge list over existing ids.

    Build instances with Graph.build(); adjacency is computed once there.
    """
    nodes: Dict[str, Node]
    edges: Tuple[Edge, ...]
    outgoing: Dict[str, Tuple[int, ...]] = field(repr=False, compare=False)
    incoming: Dict[str, Tuple[int, ...]] = field(repr=False, compare=False)

    @classmethod
    def build(cls, nodes: Iterable[Node], edges: Iterable[Edge]) -> "Graph":
        node_map: Dict[str, Node] = {}
        for node in nodes:
            # first occurrence wins
            if node.id not in node_map:
                node_map[node.id] = node

        kept = tuple(e for e in edges if e.source in node_map and e.target in node_map)

        outgoing: Dict[str, List[int]] = {node_id: [] for node_id in node_map}
        incoming: Dict[str, List[int]] = {node_id: [] for node_id in node_map}
        for i, edge in enumerate(kept):
            outgoing[edge.source].append(i)
            incoming[edge.target].append(i)

        return cls(
            nodes=node_map,
            edges=kept,
            outgoing={k: tuple(v) for k, v in outgoing.items()},
            incoming={k: tuple(v) for k, v in incoming.items()},
        )

    @classmethod
    def empty(cls) -> "Graph":
        return cls.build([], [])

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id) -> bool:
        return node_id in self.nodes

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def node_ids(self) -> List[str]:
        return list(self.nodes)

    def incident_edges(self, node_id: str) -> List[Edge]:
        """Edges touching node_id in edge-list order (self-loops appear once)."""
        indices = sorted(set(self.outgoing.get(node_id, ())) | set(self.incoming.get(node_id, ())))
        return [self.edges[i] for i in indices]

    def neighbors(self, node_id: str) -> List[str]:
        """Undirected neighbours in order of first appearance in the edge list."""
        seen = {}
        for edge in self.incident_edges(node_id):
            other = edge.other(node_id)
            if other != node_id and other not in seen:
                seen[other] = None
        return list(seen)

    def subgraph(self, node_ids: Iterable[str]) -> "Graph":
        """Induced sub-graph, preserving node and edge order."""
        keep = set(node_ids)
        return Graph.build(
            [n for n in self.nodes.values() if n.id in keep],
            [e for e in self.edges if e.source in keep and e.target in keep],
        )

    def with_edges(self, edges: Iterable[Edge]) -> "Graph":
        return Graph.build(self.nodes.values(), edges)

    def to_networkx(self) -> nx.MultiDiGraph:
        g = nx.MultiDiGraph()
        for node in self.nodes.values():
            g.add_node(node.id, label=node.label, kind=node.kind.value,
                       subtype=node.subtype, status=node.status, risk=node.risk_score)
        for edge in self.edges:
            g.add_edge(edge.source, edge.target, amount=edge.amount,
                       count=edge.count, channel=edge.channel.value)
        return g


@dataclass(frozen=True)
class NodePosition:
    x: float
    y: float
    radius: float


@dataclass(frozen=True)
class BoundingBox:
    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    @classmethod
    def around(cls, positions: Iterable[NodePosition], padding: float = 0.0) -> "BoundingBox":
        positions = list(positions)
        if not positions:
            return cls()
        return cls(
            min_x=min(p.x for p in positions) - padding,
            min_y=min(p.y for p in positions) - padding,
            max_x=max(p.x for p in positions) + padding,
            max_y=max(p.y for p in positions) + padding,
        )


@dataclass(frozen=True)
class LayoutResult:
    positions: Dict[str, NodePosition]
    bbox: BoundingBox
    strategy: str = "radial"

    @classmethod
    def empty(cls, strategy: str = "radial") -> "LayoutResult":
        return cls(positions={}, bbox=BoundingBox(), strategy=strategy)

    def get(self, node_id: str) -> Optional[NodePosition]:
        return self.positions.get(node_id)
