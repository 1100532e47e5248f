"""
Explorer state and reducer.

The whole interactive view is one immutable ExplorerState. Every input
(query outcome, filter change, pointer, wheel, resize) is an event, and
reduce(state, event) returns the next state without touching the old one.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

from src.graph_explorer.filtering import FilterSpec
from src.graph_explorer.interaction import (EDGE, NODE, InteractionParams, Tooltip, hit_test,
                                            is_recenter_target)
from src.graph_explorer.model import Graph
from src.graph_explorer.pipeline import GraphView, PipelineSettings, build_view
from src.graph_explorer.viewport import Viewport, ViewportParams, fit_to_view, pan, zoom_at
from src.utils.logging import get_logger

logger = get_logger(__name__)

EMPTY_HINT = "No relationships match the current filters."


@dataclass(frozen=True)
class ExplorerSettings:
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    viewport: ViewportParams = field(default_factory=ViewportParams)
    interaction: InteractionParams = field(default_factory=InteractionParams)

    @classmethod
    def from_config(cls, config: Dict) -> "ExplorerSettings":
        return cls(
            pipeline=PipelineSettings.from_config(config),
            viewport=ViewportParams.from_config(config),
            interaction=InteractionParams.from_config(config),
        )


@dataclass(frozen=True)
class ExplorerState:
    center_id: Optional[str] = None
    depth: int = 1
    filters: FilterSpec = field(default_factory=FilterSpec)
    generation: int = 0
    graph_center: Optional[str] = None
    raw_graph: Graph = field(default_factory=Graph.empty)
    view: GraphView = field(default_factory=GraphView.empty)
    viewport: Viewport = field(default_factory=Viewport)
    width: float = 980.0
    height: float = 620.0
    hover: Optional[Tooltip] = None
    hover_target: Optional[Tuple[str, str]] = None
    focus_id: Optional[str] = None
    dragging: bool = False
    loading: bool = False
    error: Optional[str] = None
    notice: Optional[str] = None
    hint: Optional[str] = None
    recenter_request: Optional[str] = None
    settings: ExplorerSettings = field(default_factory=ExplorerSettings)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class QueryStarted:
    center_id: str
    depth: int = 1


@dataclass(frozen=True)
class QueryResolved:
    generation: int
    graph: Graph
    fallback: bool = False
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class QueryFailed:
    generation: int
    message: str


@dataclass(frozen=True)
class FilterChanged:
    filters: FilterSpec


@dataclass(frozen=True)
class PointerMoved:
    x: float
    y: float


@dataclass(frozen=True)
class PointerLeft:
    pass


@dataclass(frozen=True)
class DragStarted:
    pass


@dataclass(frozen=True)
class Dragged:
    dx: float
    dy: float


@dataclass(frozen=True)
class DragEnded:
    pass


@dataclass(frozen=True)
class Wheeled:
    x: float
    y: float
    delta_y: float


@dataclass(frozen=True)
class ZoomStep:
    zoom_in: bool = True


@dataclass(frozen=True)
class ResetView:
    pass


@dataclass(frozen=True)
class Resized:
    width: float
    height: float


@dataclass(frozen=True)
class Clicked:
    x: float
    y: float


@dataclass(frozen=True)
class RecenterDispatched:
    pass


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _hint(view: GraphView) -> Optional[str]:
    # a lone center is as empty as no graph at all
    return EMPTY_HINT if not view.graph.edges else None


def _fit(state: ExplorerState, view: GraphView) -> Viewport:
    return fit_to_view(view.layout.bbox, state.width, state.height, state.settings.viewport)


def _rebuild(state: ExplorerState, raw: Graph, center: Optional[str], filters: FilterSpec) -> GraphView:
    return build_view(raw, center, filters, state.depth, state.settings.pipeline)


def _on_query_started(state: ExplorerState, event: QueryStarted) -> ExplorerState:
    focus = state.focus_id if event.center_id == state.graph_center else None
    return replace(
        state,
        center_id=event.center_id,
        depth=event.depth,
        generation=state.generation + 1,
        loading=True,
        error=None,
        focus_id=focus,
        recenter_request=None,
    )


def _on_query_resolved(state: ExplorerState, event: QueryResolved) -> ExplorerState:
    if event.generation != state.generation:
        logger.debug(f"Discarding stale response (generation {event.generation}, latest {state.generation})")
        return state

    view = _rebuild(state, event.graph, state.center_id, state.filters)
    notice = None
    if event.fallback:
        notice = event.warnings[0] if event.warnings else "Filters applied locally."
    focus = state.focus_id if state.focus_id in view.graph else None
    return replace(
        state,
        graph_center=state.center_id,
        raw_graph=event.graph,
        view=view,
        viewport=_fit(state, view),
        loading=False,
        error=None,
        notice=notice,
        hint=_hint(view),
        hover=None,
        hover_target=None,
        focus_id=focus,
    )


def _on_query_failed(state: ExplorerState, event: QueryFailed) -> ExplorerState:
    if event.generation != state.generation:
        logger.debug(f"Discarding stale failure (generation {event.generation}, latest {state.generation})")
        return state
    return replace(
        state,
        raw_graph=Graph.empty(),
        view=GraphView.empty(),
        viewport=Viewport(),
        loading=False,
        error=event.message or "Graph query failed.",
        notice=None,
        hint=None,
        hover=None,
        hover_target=None,
        focus_id=None,
    )


def _on_filter_changed(state: ExplorerState, event: FilterChanged) -> ExplorerState:
    if event.filters == state.filters:
        return state
    if state.raw_graph.is_empty:
        return replace(state, filters=event.filters)
    view = _rebuild(state, state.raw_graph, state.graph_center, event.filters)
    focus = state.focus_id if state.focus_id in view.graph else None
    return replace(
        state,
        filters=event.filters,
        view=view,
        viewport=_fit(state, view),
        hint=_hint(view),
        hover=None,
        hover_target=None,
        focus_id=focus,
    )


def _hit(state: ExplorerState, x: float, y: float):
    view = state.view
    return hit_test((x, y), view.graph, view.layout, view.groups, state.viewport, state.settings.interaction)


def _on_pointer_moved(state: ExplorerState, event: PointerMoved) -> ExplorerState:
    if state.dragging:
        return state
    hit = _hit(state, event.x, event.y)
    if hit is None:
        return replace(state, hover=None, hover_target=None)
    return replace(state, hover=Tooltip(event.x, event.y, hit.text), hover_target=(hit.kind, hit.target_id))


def _on_pointer_left(state: ExplorerState, event: PointerLeft) -> ExplorerState:
    return replace(state, hover=None, hover_target=None, dragging=False)


def _on_drag_started(state: ExplorerState, event: DragStarted) -> ExplorerState:
    return replace(state, dragging=True, hover=None, hover_target=None)


def _on_dragged(state: ExplorerState, event: Dragged) -> ExplorerState:
    if not state.dragging:
        return state
    return replace(state, viewport=pan(state.viewport, event.dx, event.dy))


def _on_drag_ended(state: ExplorerState, event: DragEnded) -> ExplorerState:
    return replace(state, dragging=False)


def _on_wheeled(state: ExplorerState, event: Wheeled) -> ExplorerState:
    if event.delta_y == 0:
        return state
    step = state.settings.viewport.wheel_step
    factor = 1 / step if event.delta_y > 0 else step
    return replace(state, viewport=zoom_at(state.viewport, factor, (event.x, event.y), state.settings.viewport))


def _on_zoom_step(state: ExplorerState, event: ZoomStep) -> ExplorerState:
    step = state.settings.viewport.zoom_step
    factor = step if event.zoom_in else 1 / step
    anchor = (state.width / 2, state.height / 2)
    return replace(state, viewport=zoom_at(state.viewport, factor, anchor, state.settings.viewport))


def _on_reset_view(state: ExplorerState, event: ResetView) -> ExplorerState:
    return replace(state, viewport=_fit(state, state.view))


def _on_resized(state: ExplorerState, event: Resized) -> ExplorerState:
    if event.width <= 0 or event.height <= 0:
        return state
    return replace(state, width=float(event.width), height=float(event.height))


def _on_clicked(state: ExplorerState, event: Clicked) -> ExplorerState:
    hit = _hit(state, event.x, event.y)
    if hit is None or hit.kind == EDGE:
        return state
    node = state.view.graph.nodes.get(hit.target_id)
    request = None
    if (state.settings.interaction.recenter_on_click and is_recenter_target(node)
            and node.id != state.graph_center):
        request = node.id
    return replace(state, focus_id=hit.target_id, recenter_request=request)


def _on_recenter_dispatched(state: ExplorerState, event: RecenterDispatched) -> ExplorerState:
    return replace(state, recenter_request=None)


_HANDLERS = {
    QueryStarted: _on_query_started,
    QueryResolved: _on_query_resolved,
    QueryFailed: _on_query_failed,
    FilterChanged: _on_filter_changed,
    PointerMoved: _on_pointer_moved,
    PointerLeft: _on_pointer_left,
    DragStarted: _on_drag_started,
    Dragged: _on_dragged,
    DragEnded: _on_drag_ended,
    Wheeled: _on_wheeled,
    ZoomStep: _on_zoom_step,
    ResetView: _on_reset_view,
    Resized: _on_resized,
    Clicked: _on_clicked,
    RecenterDispatched: _on_recenter_dispatched,
}


def reduce(state: ExplorerState, event) -> ExplorerState:
    """Apply one event to the explorer state."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unsupported explorer event: {type(event).__name__}")
    return handler(state, event)


def hovered_node(state: ExplorerState) -> Optional[str]:
    if state.hover_target and state.hover_target[0] == NODE:
        return state.hover_target[1]
    return None


def state_from_config(config: Dict, center_id: Optional[str] = None) -> ExplorerState:
    """Initial state: canvas size from the viewport section, starting filters from the query section."""
    query = config.get("query", {})
    viewport = config.get("viewport", {})
    filters = FilterSpec.create(
        direction=query.get("direction"),
        min_amount=query.get("min_amount") or 0.0,
        hide_technical=query.get("hide_technical", False),
        top_n=query.get("top_n"),
    )
    return ExplorerState(
        center_id=center_id,
        depth=int(query.get("depth", 1)),
        filters=filters,
        width=float(viewport.get("width", 980)),
        height=float(viewport.get("height", 620)),
        settings=ExplorerSettings.from_config(config),
    )
