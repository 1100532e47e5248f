"""
Transaction graph explorer.

Queries a neighbourhood of a transaction network around one center entity,
filters it without breaking connectivity to the center, lays it out, bundles
parallel edges and renders the result for interactive exploration.
"""

from src.graph_explorer.model import Channel, Direction, Edge, Graph, Node, NodeKind
from src.graph_explorer.filtering import FilterSpec, apply_filters
from src.graph_explorer.query import GraphQuery, GraphQueryClient, GraphQueryError, StaticGraphSource
from src.graph_explorer.pipeline import GraphView, build_view
from src.graph_explorer.state import ExplorerSettings, ExplorerState, reduce
from src.graph_explorer.session import ExplorerSession

__all__ = [
    'Channel', 'Direction', 'Edge', 'Graph', 'Node', 'NodeKind',
    'FilterSpec', 'apply_filters',
    'GraphQuery', 'GraphQueryClient', 'GraphQueryError', 'StaticGraphSource',
    'GraphView', 'build_view',
    'ExplorerSettings', 'ExplorerState', 'reduce',
    'ExplorerSession',
]
