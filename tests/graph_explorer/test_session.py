"""
Tests for the explorer session (async query orchestration)
"""
import asyncio

import pytest

from src.graph_explorer.filtering import FilterSpec
from src.graph_explorer.query import GraphQueryError, QueryResult, StaticGraphSource
from src.graph_explorer.session import ExplorerSession, requires_query
from src.graph_explorer.state import Clicked


class FakeSource:
    """Returns a fixed graph, optionally after a per-center delay, and records queries"""

    def __init__(self, graph, delays=None, fail=False):
        self.graph = graph
        self.delays = delays or {}
        self.fail = fail
        self.queries = []

    async def fetch(self, query):
        self.queries.append(query)
        await asyncio.sleep(self.delays.get(query.center, 0))
        if self.fail:
            raise GraphQueryError("service unavailable", 503)
        return QueryResult(graph=self.graph)


@pytest.mark.unit
class TestRequiresQuery:
    """Tests for deciding when a filter change needs the service"""

    def test_server_fields(self):
        """Changing amount or entity filters needs a new query"""
        base = FilterSpec()
        assert requires_query(base, base.update(min_amount=10))
        assert requires_query(base, base.update(entity_types=["PERSON"]))

    def test_local_fields(self):
        """Top-N, channel and technical-node filters are applied locally"""
        base = FilterSpec()
        assert not requires_query(base, base.update(top_n=3))
        assert not requires_query(base, base.update(channels=["CARD"], hide_technical=True))


@pytest.mark.integration
class TestExplorerSession:
    """Tests for load, re-center and filter orchestration"""

    def test_load(self, mixed_graph):
        """load queries the source and stores the filtered view"""
        session = ExplorerSession(FakeSource(mixed_graph))
        state = asyncio.run(session.load("C1", 2))
        assert state.graph_center == "C1"
        assert state.depth == 2
        assert len(state.view.graph) == len(mixed_graph)
        assert session.source.queries[0].depth == 2

    def test_load_without_center_is_noop(self, mixed_graph):
        """Loading with no center sends nothing"""
        session = ExplorerSession(FakeSource(mixed_graph))
        state = asyncio.run(session.load())
        assert state.generation == 0
        assert session.source.queries == []

    def test_failure_becomes_error_state(self, mixed_graph):
        """A failed query leaves an error and an empty view"""
        session = ExplorerSession(FakeSource(mixed_graph, fail=True))
        state = asyncio.run(session.load("C1"))
        assert state.error == "service unavailable"
        assert state.view.is_empty

    def test_latest_request_wins(self, mixed_graph):
        """A slow earlier response arriving last does not overwrite the newer one"""
        session = ExplorerSession(FakeSource(mixed_graph, delays={"C1": 0.05, "P2": 0.0}))

        async def race():
            await asyncio.gather(session.load("C1"), session.load("P2"))

        asyncio.run(race())
        assert session.state.center_id == "P2"
        assert session.state.graph_center == "P2"
        assert session.state.generation == 2

    def test_listeners_notified(self, mixed_graph):
        """Subscribers see the started and resolved states"""
        session = ExplorerSession(FakeSource(mixed_graph))
        seen = []
        session.subscribe(lambda state: seen.append(state.generation))
        asyncio.run(session.load("C1"))
        assert seen == [1, 1]

    def test_click_recenters(self, bridge_graph):
        """Clicking a person queries and centers on them at depth 1"""
        session = ExplorerSession(FakeSource(bridge_graph))
        asyncio.run(session.load("C1"))
        state = session.state
        pos = state.view.layout.get("P2")

        asyncio.run(session.dispatch(Clicked(*state.viewport.to_screen(pos.x, pos.y))))

        assert session.state.center_id == "P2"
        assert session.state.depth == 1
        assert session.state.recenter_request is None
        assert [q.center for q in session.source.queries] == ["C1", "P2"]

    def test_custom_recenter_callback(self, bridge_graph):
        """A re-center callback replaces the built-in reload"""
        requested = []

        async def on_recenter(node_id):
            requested.append(node_id)

        session = ExplorerSession(FakeSource(bridge_graph), on_recenter=on_recenter)
        asyncio.run(session.load("C1"))
        pos = session.state.view.layout.get("P2")
        asyncio.run(session.dispatch(Clicked(*session.state.viewport.to_screen(pos.x, pos.y))))
        assert requested == ["P2"]
        assert session.state.center_id == "C1"

    def test_local_filter_change_skips_query(self, ten_neighbors_graph):
        """Local filter changes reuse the loaded graph"""
        session = ExplorerSession(FakeSource(ten_neighbors_graph))
        asyncio.run(session.load("C"))
        asyncio.run(session.change_filters(FilterSpec.create(top_n=3)))
        assert len(session.source.queries) == 1
        assert set(session.state.view.graph.nodes) == {"C", "N8", "N9", "N10"}

    def test_server_filter_change_requeries(self, ten_neighbors_graph):
        """Server-side filter changes fetch again"""
        session = ExplorerSession(FakeSource(ten_neighbors_graph))
        asyncio.run(session.load("C"))
        asyncio.run(session.change_filters(FilterSpec.create(min_amount=55)))
        assert len(session.source.queries) == 2
        assert session.source.queries[1].min_amount == 55.0
        assert set(session.state.view.graph.nodes) == {"C", "N6", "N7", "N8", "N9", "N10"}

    def test_static_source(self, payload_file):
        """Sessions work against a saved payload file"""
        session = ExplorerSession(StaticGraphSource(str(payload_file)))
        state = asyncio.run(session.load("C1"))
        assert set(state.view.graph.nodes) == {"C1", "A1"}
        assert state.notice is None
