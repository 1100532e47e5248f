"""
Shared pytest fixtures for graph explorer tests
"""
import json

import pytest

from src.graph_explorer.model import Edge, Graph, Node


@pytest.fixture
def bridge_graph():
    """C1 -> A1 (account) -> P2, the technical-bridge case"""
    return Graph.build(
        [
            Node.create("C1", "Carla", "PERSON"),
            Node.create("A1", "ACC-1", "ACCOUNT"),
            Node.create("P2", "Paul", "PERSON"),
        ],
        [
            Edge.create("C1", "A1", 100),
            Edge.create("A1", "P2", 50),
        ],
    )


@pytest.fixture
def ten_neighbors_graph():
    """Center with ten person neighbours N1..N10 receiving 10, 20, ..., 100"""
    nodes = [Node.create("C", "Center", "PERSON")]
    edges = []
    for i in range(1, 11):
        nodes.append(Node.create(f"N{i}", f"Neighbour {i}", "PERSON"))
        edges.append(Edge.create("C", f"N{i}", i * 10, 1, "CARD"))
    return Graph.build(nodes, edges)


@pytest.fixture
def mixed_graph():
    """Two-hop graph with businesses, accounts, a wallet and an event node"""
    return Graph.build(
        [
            Node.create("C1", "Carla", "PERSON", "retail", "active", 0.3),
            Node.create("A1", "ACC-1", "ACCOUNT"),
            Node.create("W1", "0xabc", "WALLET"),
            Node.create("P2", "Paul", "PERSON", "retail", "active", 0.5),
            Node.create("P3", "Lena", "PERSON", "private", "closed", 0.1),
            Node.create("B1", "Northwind", "BUSINESS", "wholesale", "active", 0.7),
            Node.create("tx:9", "tx:9", "EVENT"),
        ],
        [
            Edge.create("C1", "A1", 0),
            Edge.create("A1", "P2", 1200, 3, "WIRE"),
            Edge.create("A1", "P2", 85, 1, "CARD"),
            Edge.create("B1", "C1", 5400, 2, "ACH"),
            Edge.create("C1", "W1", 900, 1, "CRYPTO"),
            Edge.create("W1", "P3", 880, 1, "CRYPTO"),
            Edge.create("P2", "tx:9", 300, 1, "CASH"),
            Edge.create("tx:9", "B1", 300, 1),
        ],
    )


@pytest.fixture
def raw_payload():
    """Service-shaped payload with loosely typed values"""
    return {
        "nodes": [
            {"id": "C1", "label": "Carla", "type": "person", "subtype": "retail", "status": "active", "risk": "0.4"},
            {"id": "A1", "name": "ACC-1", "type": "ACCOUNT"},
            {"id": "P2", "type": "SPACESHIP", "risk": None},
            {"label": "no id"},
            {"id": "C1", "label": "duplicate"},
        ],
        "links": [
            {"source": "C1", "target": "A1", "amount": "100", "count": "2", "channel": "wire"},
            {"source": "A1", "target": "P2", "amount": None, "channel": "TELEPORT"},
            {"source": "P2", "target": "GHOST", "amount": 5},
        ],
    }


@pytest.fixture
def payload_file(tmp_path, raw_payload):
    path = tmp_path / "graph.json"
    with open(path, "w") as f:
        json.dump(raw_payload, f)
    return path
