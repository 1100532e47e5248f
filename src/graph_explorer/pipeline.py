"""
Filter -> layout -> bundle composition.

A GraphView is everything the renderer and the interaction controller need
for one center/filter combination; it is rebuilt from scratch whenever the
raw graph or the filters change.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from src.graph_explorer.bundling import BundleParams, EdgeGroup, bundle_edges
from src.graph_explorer.filtering import FilterSpec, apply_filters
from src.graph_explorer.layout import LayoutParams, compute_layout
from src.graph_explorer.model import Graph, LayoutResult


@dataclass(frozen=True)
class PipelineSettings:
    strategy: str = "auto"
    layout: LayoutParams = field(default_factory=LayoutParams)
    bundling: BundleParams = field(default_factory=BundleParams)

    @classmethod
    def from_config(cls, config: Dict) -> "PipelineSettings":
        return cls(
            strategy=config.get("layout", {}).get("strategy", "auto"),
            layout=LayoutParams.from_config(config),
            bundling=BundleParams.from_config(config),
        )


@dataclass(frozen=True)
class GraphView:
    graph: Graph
    layout: LayoutResult
    groups: Tuple[EdgeGroup, ...]

    @classmethod
    def empty(cls) -> "GraphView":
        return cls(Graph.empty(), LayoutResult.empty(), ())

    @property
    def is_empty(self) -> bool:
        return self.graph.is_empty


def build_view(raw: Graph, center_id: Optional[str], filters: FilterSpec, depth: int = 1,
               settings: PipelineSettings = PipelineSettings()) -> GraphView:
    if raw.is_empty or center_id is None:
        return GraphView.empty()
    graph = apply_filters(raw, center_id, filters)
    layout = compute_layout(graph, center_id, settings.strategy, depth, settings.layout)
    groups = bundle_edges(graph, layout, settings.bundling)
    return GraphView(graph, layout, groups)
