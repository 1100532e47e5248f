"""
Unit tests for the graph data model
"""
import networkx as nx
import pytest

from src.graph_explorer.model import (BoundingBox, Channel, Direction, Edge, Graph, Node, NodeKind,
                                      NodePosition, to_count, to_float)


@pytest.mark.unit
class TestParsing:
    """Tests for lenient enum and number parsing"""

    def test_kind_is_case_insensitive(self):
        """Node kinds parse regardless of case and surrounding spaces"""
        assert NodeKind.parse("business") is NodeKind.BUSINESS
        assert NodeKind.parse(" Wallet ") is NodeKind.WALLET

    def test_unknown_kind_defaults_to_person(self):
        """Unknown or missing kinds are treated as PERSON"""
        assert NodeKind.parse("SPACESHIP") is NodeKind.PERSON
        assert NodeKind.parse(None) is NodeKind.PERSON

    def test_unknown_channel_defaults_to_other(self):
        """Unknown channels map to OTHER"""
        assert Channel.parse("teleport") is Channel.OTHER
        assert Channel.parse("crypto") is Channel.CRYPTO

    def test_direction_defaults_to_any(self):
        """A missing direction means ANY"""
        assert Direction.parse(None) is Direction.ANY
        assert Direction.parse("sending") is Direction.SENDING

    def test_to_float_fallbacks(self):
        """Unparseable or NaN numbers become 0.0"""
        assert to_float("12.5") == 12.5
        assert to_float(None) == 0.0
        assert to_float("abc") == 0.0
        assert to_float(float("nan")) == 0.0

    def test_to_count_is_at_least_one(self):
        """Transaction counts are never below one"""
        assert to_count("3") == 3
        assert to_count(0) == 1
        assert to_count("x") == 1


@pytest.mark.unit
class TestNodeAndEdge:
    """Tests for Node and Edge construction"""

    def test_node_label_falls_back_to_id(self):
        """A blank label is replaced by the node id"""
        node = Node.create("N1", label="  ")
        assert node.label == "N1"

    def test_risk_is_clamped(self):
        """Risk scores are clamped to [0, 1]"""
        assert Node.create("N1", risk_score=4).risk_score == 1.0
        assert Node.create("N1", risk_score=-1).risk_score == 0.0

    def test_technical_kinds(self):
        """Accounts, wallets and events are technical nodes"""
        assert Node.create("A", kind="ACCOUNT").is_technical
        assert Node.create("W", kind="WALLET").is_technical
        assert Node.create("E", kind="EVENT").is_technical
        assert not Node.create("B", kind="BUSINESS").is_technical

    def test_tx_prefix_marks_event(self):
        """Ids starting with tx: are transaction events whatever their declared kind"""
        assert Node.create("tx:42", kind="PERSON").is_technical

    def test_negative_amount_is_clamped(self):
        """Negative amounts are stored as zero"""
        assert Edge.create("a", "b", -5).amount == 0.0

    def test_edge_other_endpoint(self):
        """other() returns the opposite endpoint"""
        edge = Edge.create("a", "b")
        assert edge.other("a") == "b"
        assert edge.other("b") == "a"


@pytest.mark.unit
class TestGraph:
    """Tests for Graph construction and queries"""

    def test_dangling_edges_dropped(self):
        """Edges naming unknown nodes are dropped"""
        graph = Graph.build([Node.create("a"), Node.create("b")],
                            [Edge.create("a", "b"), Edge.create("a", "ghost")])
        assert len(graph.edges) == 1

    def test_first_duplicate_wins(self):
        """The first node with a repeated id is kept"""
        graph = Graph.build([Node.create("a", "first"), Node.create("a", "second")], [])
        assert len(graph) == 1
        assert graph.nodes["a"].label == "first"

    def test_neighbors_in_edge_order(self, mixed_graph):
        """Neighbors come back in edge-list order"""
        assert mixed_graph.neighbors("C1") == ["A1", "B1", "W1"]

    def test_parallel_edges_counted_once_as_neighbor(self, mixed_graph):
        """Parallel edges list a neighbor only once"""
        assert mixed_graph.neighbors("A1") == ["C1", "P2"]

    def test_subgraph_is_induced(self, mixed_graph):
        """subgraph keeps only edges between the kept nodes"""
        sub = mixed_graph.subgraph(["A1", "P2"])
        assert set(sub.nodes) == {"A1", "P2"}
        assert len(sub.edges) == 2
        assert all(e.source == "A1" and e.target == "P2" for e in sub.edges)

    def test_to_networkx(self, mixed_graph):
        """Conversion keeps every node and parallel edge"""
        g = mixed_graph.to_networkx()
        assert isinstance(g, nx.MultiDiGraph)
        assert g.number_of_nodes() == len(mixed_graph)
        assert g.number_of_edges() == len(mixed_graph.edges)

    def test_empty_graph(self):
        """The empty graph contains nothing"""
        graph = Graph.empty()
        assert graph.is_empty
        assert "x" not in graph


@pytest.mark.unit
class TestBoundingBox:
    """Tests for BoundingBox"""

    def test_around_with_padding(self):
        """The box surrounds all positions plus padding"""
        box = BoundingBox.around([NodePosition(0, 0, 5), NodePosition(100, 50, 5)], padding=10)
        assert (box.min_x, box.min_y, box.max_x, box.max_y) == (-10, -10, 110, 60)
        assert box.width == 120
        assert box.center == (50, 25)

    def test_around_nothing(self):
        """No positions give a zero-size box"""
        box = BoundingBox.around([])
        assert box.width == 0 and box.height == 0
