"""
Explorer session.

Owns the current ExplorerState and the one suspension point of the engine:
the asynchronous call to the Graph Query Service. Each load runs under a
fresh generation number; outcomes of superseded loads are dropped by the
reducer rather than cancelled.
"""
from __future__ import annotations

from typing import Awaitable, Callable, List, Optional

from src.graph_explorer.filtering import FilterSpec
from src.graph_explorer.query import GraphQuery, GraphQueryError
from src.graph_explorer.state import (ExplorerState, FilterChanged, QueryFailed, QueryResolved,
                                      QueryStarted, RecenterDispatched, reduce)
from src.utils.logging import get_logger

logger = get_logger(__name__)

# Filter fields the service can apply itself; the rest are purely local.
SERVER_FIELDS = ("direction", "min_amount", "entity_types", "entity_subtypes", "entity_status")


def requires_query(old: FilterSpec, new: FilterSpec) -> bool:
    """True when a filter change alters what the service should return."""
    return any(getattr(old, name) != getattr(new, name) for name in SERVER_FIELDS)


class ExplorerSession:
    """
    Drives the reducer from a query source.

    Args:
        source: Object with `async fetch(GraphQuery) -> QueryResult`
            (GraphQueryClient or StaticGraphSource)
        state: Initial state
        on_recenter: Called with a node id when a click asks to re-center.
            Defaults to reloading the graph around that node with depth 1.
    """

    def __init__(self, source, state: Optional[ExplorerState] = None,
                 on_recenter: Optional[Callable[[str], Awaitable[None]]] = None):
        self.source = source
        self.state = state or ExplorerState()
        self.on_recenter = on_recenter or self.recenter
        self.listeners: List[Callable[[ExplorerState], None]] = []

    def subscribe(self, listener: Callable[[ExplorerState], None]):
        self.listeners.append(listener)

    def apply(self, event) -> ExplorerState:
        """Synchronous dispatch for input events."""
        self.state = reduce(self.state, event)
        for listener in self.listeners:
            listener(self.state)
        return self.state

    async def dispatch(self, event) -> ExplorerState:
        """Dispatch an event and follow up on any re-center request it produced."""
        state = self.apply(event)
        if state.recenter_request is not None:
            node_id = state.recenter_request
            self.apply(RecenterDispatched())
            logger.info(f"Re-centering on {node_id}")
            await self.on_recenter(node_id)
        return self.state

    async def load(self, center_id: Optional[str] = None, depth: Optional[int] = None) -> ExplorerState:
        """Query the service and apply the result if it is still the latest request."""
        center_id = center_id if center_id is not None else self.state.center_id
        depth = depth if depth is not None else self.state.depth
        if not center_id:
            logger.info("No center selected; skipping graph query")
            return self.state

        self.apply(QueryStarted(center_id, depth))
        generation = self.state.generation
        query = GraphQuery.from_filters(center_id, depth, self.state.filters)
        logger.info(f"Graph query #{generation}: center={center_id} depth={depth}")

        try:
            result = await self.source.fetch(query)
        except GraphQueryError as e:
            logger.warning(f"Graph query #{generation} failed: {e}")
            return self.apply(QueryFailed(generation, str(e)))

        if result.fallback:
            logger.info(f"Graph query #{generation} served by reduced signature; filtering locally")
        return self.apply(QueryResolved(generation, result.graph, result.fallback, result.warnings))

    async def refresh(self) -> ExplorerState:
        return await self.load()

    async def recenter(self, node_id: str) -> None:
        await self.load(node_id, depth=1)

    async def change_filters(self, filters: FilterSpec) -> ExplorerState:
        """Re-filter locally right away; go back to the service when server-side fields changed."""
        previous = self.state.filters
        self.apply(FilterChanged(filters))
        if requires_query(previous, filters) and self.state.center_id:
            return await self.load()
        return self.state
