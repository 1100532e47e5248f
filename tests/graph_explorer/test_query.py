"""
Tests for the Graph Query Adapter
"""
import asyncio
import json

import httpx
import pytest

from src.graph_explorer.filtering import FilterSpec
from src.graph_explorer.model import Channel, Direction, NodeKind
from src.graph_explorer.query import (GraphQuery, GraphQueryClient, GraphQueryError, IncompatibleSignatureError,
                                      StaticGraphSource, classify_error, neighborhood, normalize_payload)

PAYLOAD = {
    "nodes": [{"id": "C1", "label": "Carla", "type": "PERSON"}, {"id": "P2", "type": "PERSON"}],
    "links": [{"source": "C1", "target": "P2", "amount": 10, "channel": "CARD"}],
}


def make_client(handler):
    return GraphQueryClient("https://example.test/", api_key="anon", transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestGraphQuery:
    """Tests for query validation and parameter building"""

    def test_extended_params(self):
        """The full signature sends all seven parameters with normalised lists"""
        query = GraphQuery("C1", 2, 10.0, Direction.SENDING, ("person", " business "), ("retail",), None)
        params = query.to_params(extended=True)
        assert params == {
            "center": "C1",
            "depth": 2,
            "min_amount": 10.0,
            "direction": "SENDING",
            "entity_types": ["PERSON", "BUSINESS"],
            "entity_subtypes": ["retail"],
            "entity_status": None,
        }

    def test_reduced_params(self):
        """The reduced signature sends only center, depth and minimum amount"""
        params = GraphQuery("C1").to_params(extended=False)
        assert params == {"center": "C1", "depth": 1, "min_amount": 0.0}

    def test_empty_lists_sent_as_null(self):
        """Lists with only blank entries are sent as null"""
        params = GraphQuery("C1", entity_types=("", "  ")).to_params()
        assert params["entity_types"] is None

    @pytest.mark.parametrize("kwargs", [
        {"center": ""},
        {"center": "C1", "depth": 3},
        {"center": "C1", "min_amount": -1.0},
    ])
    def test_invalid_query_raises(self, kwargs):
        """Blank centers, unsupported depths and negative amounts are rejected"""
        with pytest.raises(ValueError):
            GraphQuery(**kwargs)

    def test_from_filters(self):
        """Queries take their server-side fields from the filter settings"""
        filters = FilterSpec.create(direction="RECEIVING", min_amount=5, entity_types=["person"], channels=["CARD"])
        query = GraphQuery.from_filters("C1", 1, filters)
        assert query.direction is Direction.RECEIVING
        assert query.entity_types == ("PERSON",)
        assert query.min_amount == 5.0


@pytest.mark.unit
class TestNormalizePayload:
    """Tests for payload normalisation"""

    def test_defaults_and_aliases(self, raw_payload):
        """Missing labels, kinds and risk scores get defaults"""
        graph = normalize_payload(raw_payload)
        assert list(graph.nodes) == ["C1", "A1", "P2"]
        assert graph.nodes["C1"].label == "Carla"
        assert graph.nodes["C1"].kind is NodeKind.PERSON
        assert graph.nodes["C1"].risk_score == pytest.approx(0.4)
        assert graph.nodes["A1"].label == "ACC-1"
        assert graph.nodes["P2"].kind is NodeKind.PERSON
        assert graph.nodes["P2"].risk_score == 0.0

    def test_links_normalised_and_dangling_dropped(self, raw_payload):
        """Link fields are coerced and links to unknown nodes dropped"""
        graph = normalize_payload(raw_payload)
        assert len(graph.edges) == 2
        first, second = graph.edges
        assert first.amount == 100.0 and first.count == 2 and first.channel is Channel.WIRE
        assert second.amount == 0.0 and second.count == 1 and second.channel is Channel.OTHER

    def test_missing_payload(self):
        """A null payload or null lists give an empty graph"""
        assert normalize_payload(None).is_empty
        assert normalize_payload({"nodes": None, "links": None}).is_empty


@pytest.mark.unit
class TestClassifyError:
    """Tests for signature mismatch detection"""

    @pytest.mark.parametrize("message", [
        "PGRST202 Could not find the function public.get_graph_ui(center, depth, direction)",
        "function get_graph_ui(text, integer) does not exist",
        "got an unexpected keyword argument 'direction'",
    ])
    def test_signature_mismatch(self, message):
        """Unknown-function and unexpected-argument errors mean a signature mismatch"""
        assert isinstance(classify_error(message, 404), IncompatibleSignatureError)

    def test_other_errors(self):
        """Other errors keep their message and status code"""
        error = classify_error("permission denied for table nodes", 401)
        assert type(error) is GraphQueryError
        assert error.status_code == 401


@pytest.mark.unit
class TestGraphQueryClient:
    """Tests for the HTTP client against a mock transport"""

    def test_extended_call_succeeds(self):
        """The first call uses the full signature with the API key headers"""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=PAYLOAD)

        result = asyncio.run(make_client(handler).fetch(GraphQuery("C1")))

        assert not result.fallback
        assert result.warnings == ()
        assert len(result.graph) == 2
        assert len(requests) == 1
        assert requests[0].url == "https://example.test/rest/v1/rpc/get_graph_ui"
        assert requests[0].headers["apikey"] == "anon"
        assert requests[0].headers["authorization"] == "Bearer anon"
        assert "direction" in json.loads(requests[0].content)

    def test_falls_back_to_reduced_signature(self):
        """A signature mismatch is retried once with the reduced parameters"""
        bodies = []

        def handler(request):
            body = json.loads(request.content)
            bodies.append(body)
            if "direction" in body:
                return httpx.Response(404, json={"code": "PGRST202", "message": "Could not find the function"})
            return httpx.Response(200, json=[PAYLOAD])

        result = asyncio.run(make_client(handler).fetch(GraphQuery("C1", min_amount=5.0)))

        assert result.fallback
        assert result.warnings
        assert len(result.graph) == 2
        assert len(bodies) == 2
        assert bodies[1] == {"center": "C1", "depth": 1, "min_amount": 5.0}

    def test_reduced_failure_is_surfaced(self):
        """A failing reduced call raises instead of retrying again"""
        def handler(request):
            return httpx.Response(404, json={"code": "PGRST202", "message": "Could not find the function"})

        with pytest.raises(GraphQueryError):
            asyncio.run(make_client(handler).fetch(GraphQuery("C1")))

    def test_server_error_does_not_retry(self):
        """Server errors are raised without a fallback call"""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"message": "internal error"})

        with pytest.raises(GraphQueryError) as excinfo:
            asyncio.run(make_client(handler).fetch(GraphQuery("C1")))
        assert not isinstance(excinfo.value, IncompatibleSignatureError)
        assert excinfo.value.status_code == 500
        assert len(calls) == 1

    def test_network_error(self):
        """Transport failures become GraphQueryError"""
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(GraphQueryError):
            asyncio.run(make_client(handler).fetch(GraphQuery("C1")))

    def test_missing_url_rejected(self):
        """A client needs a service URL"""
        with pytest.raises(ValueError):
            GraphQueryClient("")

    def test_from_config(self):
        """Endpoint and timeout are built from the service config"""
        client = GraphQueryClient.from_config({"service": {"url": "https://x.test", "key": None,
                                                           "function": "graph_rpc", "timeout": 5}})
        assert client.endpoint == "https://x.test/rest/v1/rpc/graph_rpc"
        assert client.timeout == 5.0


@pytest.mark.unit
class TestStaticGraphSource:
    """Tests for serving a saved payload"""

    def test_depth_limited_neighborhood(self, mixed_graph):
        """neighborhood stops at the requested hop count"""
        one_hop = neighborhood(mixed_graph, "C1", 1)
        assert set(one_hop.nodes) == {"C1", "A1", "B1", "W1"}
        two_hop = neighborhood(mixed_graph, "C1", 2)
        assert set(two_hop.nodes) == {"C1", "A1", "B1", "W1", "P2", "P3", "tx:9"}

    def test_fetch_from_file(self, payload_file):
        """A saved payload serves the neighbourhood of the center"""
        source = StaticGraphSource(str(payload_file))
        result = asyncio.run(source.fetch(GraphQuery("C1", depth=1)))
        assert set(result.graph.nodes) == {"C1", "A1"}
        assert not result.fallback

    def test_unknown_center(self, payload_file):
        """An unknown center gives an empty graph"""
        result = asyncio.run(StaticGraphSource(str(payload_file)).fetch(GraphQuery("nobody")))
        assert result.graph.is_empty

    def test_missing_file(self, tmp_path):
        """A missing payload file is rejected up front"""
        with pytest.raises(ValueError):
            StaticGraphSource(str(tmp_path / "missing.json"))
