"""
Graph Query Adapter

Calls the external Graph Query Service and normalises its raw payload into a
typed Graph. When the service does not know the extended 7-parameter
signature, the call is retried once with the reduced 3-parameter one and the
Filter Engine applies the remaining filters locally.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from src.graph_explorer.model import Direction, Edge, Graph, Node
from src.utils.logging import get_logger

logger = get_logger(__name__)

# PostgREST answers an unknown RPC signature with PGRST202 and a message naming
# the parameters it could not match.
SIGNATURE_MISMATCH = re.compile(
    r"PGRST202|could not find the function|function .+ does not exist|"
    r"unexpected (keyword )?argument|no function matches",
    re.IGNORECASE,
)


class GraphQueryError(RuntimeError):
    """Network or service failure while querying the graph."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class IncompatibleSignatureError(GraphQueryError):
    """The service does not accept the extended parameter set."""


def classify_error(message: str, status_code: Optional[int] = None) -> GraphQueryError:
    if SIGNATURE_MISMATCH.search(message or ""):
        return IncompatibleSignatureError(message, status_code)
    return GraphQueryError(message, status_code)


def _nullable(values: Optional[Iterable[str]], upper: bool = False) -> Optional[List[str]]:
    """Trim a filter list; an empty list means "no restriction" and is sent as None."""
    if values is None:
        return None
    cleaned = []
    for value in values:
        text = str(value).strip()
        if text:
            cleaned.append(text.upper() if upper else text)
    return cleaned or None


@dataclass(frozen=True)
class GraphQuery:
    """One request to the Graph Query Service."""
    center: str
    depth: int = 1
    min_amount: float = 0.0
    direction: Direction = Direction.ANY
    entity_types: Optional[Tuple[str, ...]] = None
    entity_subtypes: Optional[Tuple[str, ...]] = None
    entity_status: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if not str(self.center or "").strip():
            raise ValueError("Graph query needs a center id")
        if self.depth not in (1, 2):
            raise ValueError(f"depth must be 1 or 2, got {self.depth}")
        if self.min_amount < 0:
            raise ValueError(f"min_amount must be >= 0, got {self.min_amount}")

    @classmethod
    def from_filters(cls, center: str, depth: int, filters) -> "GraphQuery":
        """Build the server-side part of a FilterSpec."""
        return cls(
            center=str(center),
            depth=int(depth),
            min_amount=float(filters.min_amount),
            direction=filters.direction,
            entity_types=filters.entity_types,
            entity_subtypes=filters.entity_subtypes,
            entity_status=filters.entity_status,
        )

    def to_params(self, extended: bool = True) -> Dict[str, Any]:
        params = {
            "center": str(self.center).strip(),
            "depth": int(self.depth),
            "min_amount": float(self.min_amount),
        }
        if extended:
            params.update({
                "direction": Direction.parse(self.direction).value,
                "entity_types": _nullable(self.entity_types, upper=True),
                "entity_subtypes": _nullable(self.entity_subtypes),
                "entity_status": _nullable(self.entity_status),
            })
        return params


@dataclass(frozen=True)
class QueryResult:
    graph: Graph
    fallback: bool = False
    warnings: Tuple[str, ...] = field(default_factory=tuple)


def normalize_payload(payload: Optional[Dict[str, Any]]) -> Graph:
    """
    Turn a raw {nodes, links} response into a Graph.

    Missing labels fall back to `name` then the id, missing numbers to 0,
    unknown kinds to PERSON and unknown channels to OTHER. Nodes without an
    id are skipped; duplicate nodes and dangling links are dropped by Graph.
    """
    payload = payload or {}
    nodes = []
    for raw in payload.get("nodes") or []:
        if not isinstance(raw, dict) or raw.get("id") is None:
            continue
        nodes.append(Node.create(
            id=raw["id"],
            label=raw.get("label") if raw.get("label") is not None else raw.get("name"),
            kind=raw.get("type"),
            subtype=raw.get("subtype"),
            status=raw.get("status"),
            risk_score=raw.get("risk"),
        ))

    edges = []
    for raw in payload.get("links") or []:
        if not isinstance(raw, dict) or raw.get("source") is None or raw.get("target") is None:
            continue
        edges.append(Edge.create(
            source=raw["source"],
            target=raw["target"],
            amount=raw.get("amount"),
            count=raw.get("count"),
            channel=raw.get("channel"),
        ))

    graph = Graph.build(nodes, edges)
    dropped = len(edges) - len(graph.edges)
    if dropped:
        logger.debug(f"Dropped {dropped} dangling links from payload")
    return graph


class GraphQueryClient:
    """
    Async client for a PostgREST-style RPC endpoint.

    Args:
        base_url: Service root, e.g. https://<project>.supabase.co
        api_key: Anonymous key sent as apikey and bearer token
        function: RPC function name
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(self, base_url: str, api_key: Optional[str] = None, function: str = "get_graph_ui",
                 timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not base_url:
            raise ValueError("Graph query service URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.function = function
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: Dict, transport: Optional[httpx.AsyncBaseTransport] = None) -> "GraphQueryClient":
        service = config["service"]
        return cls(service["url"], service.get("key"), service.get("function", "get_graph_ui"),
                   float(service.get("timeout", 30.0)), transport=transport)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/rpc/{self.function}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=params, headers=self._headers())
        except httpx.TimeoutException as e:
            raise GraphQueryError(f"Graph query timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise GraphQueryError(f"Graph query failed: {e}") from e

        if response.status_code >= 400:
            raise classify_error(_error_message(response), response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise GraphQueryError("Graph query returned invalid JSON", response.status_code) from e
        # PostgREST wraps scalar-returning functions in a single-element list
        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict):
            raise GraphQueryError(f"Unexpected graph payload type: {type(data).__name__}")
        return data

    async def fetch(self, query: GraphQuery) -> QueryResult:
        """Extended call first, one reduced retry on a signature mismatch."""
        try:
            data = await self.call(query.to_params(extended=True))
            return QueryResult(graph=normalize_payload(data))
        except IncompatibleSignatureError as e:
            logger.warning(f"Extended graph query not supported ({e}); retrying with reduced signature")

        data = await self.call(query.to_params(extended=False))
        return QueryResult(
            graph=normalize_payload(data),
            fallback=True,
            warnings=("Service does not support extended filters; filtering applied locally",),
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        parts = [str(body[k]) for k in ("code", "message", "error", "hint") if body.get(k)]
        if parts:
            return " ".join(parts)
    return f"HTTP {response.status_code}"


class StaticGraphSource:
    """Serves a saved payload file through the same fetch contract as the live client."""

    def __init__(self, path: str):
        self.path = Path(path)
        if not self.path.exists():
            raise ValueError(f"Payload file not found: {self.path}")
        with open(self.path, 'r') as f:
            self._payload = json.load(f)
        self._graph = normalize_payload(self._payload)

    async def fetch(self, query: GraphQuery) -> QueryResult:
        if query.center not in self._graph:
            logger.info(f"Center {query.center} not present in {self.path.name}")
            return QueryResult(graph=Graph.empty())
        return QueryResult(graph=neighborhood(self._graph, query.center, query.depth))


def neighborhood(graph: Graph, center: str, depth: int) -> Graph:
    """Nodes within `depth` undirected hops of center; the Filter Engine does the rest."""
    frontier = [center]
    reached = {center}
    for _ in range(depth):
        next_frontier = []
        for node_id in frontier:
            for other in graph.neighbors(node_id):
                if other not in reached:
                    reached.add(other)
                    next_frontier.append(other)
        frontier = next_frontier
    return graph.subgraph(reached)
