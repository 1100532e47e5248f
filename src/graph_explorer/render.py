"""
Render Pipeline

render_scene() turns an ExplorerState into a flat, immutable list of
screen-space drawing primitives in paint order. Backends then draw that
list: matplotlib for PNG snapshots, HoloViews/Bokeh for the dashboard.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import holoviews as hv
from matplotlib.figure import Figure
from matplotlib.patches import Circle as CirclePatch
from matplotlib.patches import FancyBboxPatch, PathPatch, Polygon as PolygonPatch, Wedge
from matplotlib.path import Path as MplPath

from src.graph_explorer.bundling import arrowhead
from src.graph_explorer.model import Node, NodeKind

Point = Tuple[float, float]

CHANNEL_COLORS = {
    "CARD": "#7c3aed",
    "WIRE": "#f97316",
    "CRYPTO": "#22d3ee",
    "CASH": "#6b7280",
    "ACH": "#22c55e",
    "OTHER": "#6366f1",
}
CHANNEL_ALPHA = {"CRYPTO": 0.75, "OTHER": 0.6}


@dataclass(frozen=True)
class Theme:
    background: str = "#ffffff"
    center_fill: str = "#ef4444"
    technical_fill: str = "#60a5fa"
    business_fill: str = "#34d399"
    person_fill: str = "#14b8a6"
    node_stroke: str = "#00000026"
    glyph_fill: str = "#ffffff"
    card_stripe: str = "#cbd5e1"
    halo: str = "#3b82f68c"
    label_color: str = "#111827"
    tag_fill: str = "#111827bf"
    tooltip_fill: str = "#111827f5"
    error_color: str = "#ef4444"
    muted_color: str = "#6b7280"

    def node_fill(self, node: Node, is_center: bool) -> str:
        if is_center:
            return self.center_fill
        if node.is_technical:
            return self.technical_fill
        if node.kind is NodeKind.BUSINESS:
            return self.business_fill
        return self.person_fill

    def edge_color(self, channel: str) -> str:
        color = CHANNEL_COLORS.get(channel, CHANNEL_COLORS["OTHER"])
        alpha = CHANNEL_ALPHA.get(channel, 0.7)
        return f"{color}{int(round(alpha * 255)):02x}"


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    fill: str


@dataclass(frozen=True)
class Curve:
    start: Point
    control: Point
    end: Point
    color: str
    width: float
    key: str = ""


@dataclass(frozen=True)
class Polygon:
    points: Tuple[Point, ...]
    fill: str


@dataclass(frozen=True)
class Circle:
    center: Point
    radius: float
    fill: Optional[str]
    stroke: Optional[str] = None
    stroke_width: float = 1.0
    node_id: str = ""


@dataclass(frozen=True)
class Glyph:
    shape: str  # "card" or "person"
    center: Point
    radius: float
    fill: str
    accent: str


@dataclass(frozen=True)
class Text:
    position: Point
    text: str
    size: float
    color: str
    align: str = "center"
    box: Optional[str] = None


@dataclass(frozen=True)
class Scene:
    width: float
    height: float
    items: Tuple[object, ...] = field(default_factory=tuple)

    def of_type(self, kind) -> List:
        return [item for item in self.items if isinstance(item, kind)]


def node_label(node: Node) -> str:
    """Technical nodes carry long opaque ids; show only their first 12 characters."""
    if node.is_technical:
        return (node.label[:12] or node.id[:12]) + "…"
    return node.label or node.id


def render_scene(state, theme: Theme = Theme()) -> Scene:
    """
    Build the draw list for the current state.

    Paint order: background, edges (curve, arrowhead, amount tag), focus
    halo, node discs, glyphs, node labels, tooltip, status line.
    """
    vp = state.viewport
    view = state.view
    bundling = state.settings.pipeline.bundling
    items: List[object] = [Rect(0.0, 0.0, state.width, state.height, theme.background)]

    for group in view.groups:
        target = view.layout.get(group.target)
        target_radius = target.radius * vp.zoom if target else 0.0
        for curve in group.curves:
            start = vp.to_screen(*curve.start)
            control = vp.to_screen(*curve.control)
            end = vp.to_screen(*curve.end)
            color = theme.edge_color(curve.edge.channel.value)
            items.append(Curve(start, control, end, color, max(1.0, 1.5 * vp.zoom), group.key))
            arrow = arrowhead(control, end, target_radius, bundling.arrow_length, bundling.arrow_half_angle)
            items.append(Polygon((arrow.tip, arrow.left, arrow.right), color))
            items.append(Text((control[0], control[1] - 10), curve.label, max(10.0, 11 * vp.zoom),
                              "#ffffff", box=theme.tag_fill))

    for node in view.graph.nodes.values():
        pos = view.layout.get(node.id)
        if pos is None:
            continue
        x, y = vp.to_screen(pos.x, pos.y)
        r = pos.radius * vp.zoom
        if node.id == state.focus_id:
            items.append(Circle((x, y), r + 9, None, theme.halo, 4.0, node.id))
        items.append(Circle((x, y), r, theme.node_fill(node, node.id == state.graph_center),
                            theme.node_stroke, 1.0, node.id))
        shape = "card" if node.is_technical else "person"
        items.append(Glyph(shape, (x, y), r * 0.75, theme.glyph_fill, theme.card_stripe))
        items.append(Text((x, y + r + 14), node_label(node), max(11.0, 12 * vp.zoom), theme.label_color))

    if state.hover is not None:
        items.append(Text((state.hover.x + 10, state.hover.y - 16), state.hover.text, 12.0,
                          "#ffffff", align="left", box=theme.tooltip_fill))

    status = _status_line(state, theme)
    if status is not None:
        items.append(status)

    return Scene(state.width, state.height, tuple(items))


def _status_line(state, theme: Theme) -> Optional[Text]:
    if state.error:
        return Text((12, 20), state.error, 13.0, theme.error_color, align="left")
    if state.loading:
        return Text((12, 20), "Loading graph…", 12.0, theme.muted_color, align="left")
    if state.hint:
        return Text((state.width / 2, state.height / 2), state.hint, 13.0, theme.muted_color)
    if state.notice:
        return Text((12, 20), state.notice, 12.0, theme.muted_color, align="left")
    return None


# ---------------------------------------------------------------------------
# matplotlib backend
# ---------------------------------------------------------------------------

def _rgba(color: Optional[str]):
    """'#rrggbbaa' -> matplotlib RGBA tuple; None stays None."""
    if color is None:
        return "none"
    color = color.lstrip("#")
    channels = [int(color[i:i + 2], 16) / 255 for i in range(0, len(color), 2)]
    if len(channels) == 3:
        channels.append(1.0)
    return tuple(channels)


def draw_matplotlib(scene: Scene, dpi: int = 100) -> Figure:
    """Draw a scene onto a new matplotlib Figure sized in pixels."""
    fig = Figure(figsize=(scene.width / dpi, scene.height / dpi), dpi=dpi)
    ax = fig.add_axes([0, 0, 1, 1])
    ax.set_xlim(0, scene.width)
    ax.set_ylim(scene.height, 0)
    ax.set_axis_off()
    # points per pixel, for line widths and font sizes given in pixels
    px = 72.0 / dpi

    for item in scene.items:
        if isinstance(item, Rect):
            ax.add_patch(FancyBboxPatch((item.x, item.y), item.width, item.height,
                                        boxstyle="square,pad=0", facecolor=_rgba(item.fill), edgecolor="none"))
        elif isinstance(item, Curve):
            path = MplPath([item.start, item.control, item.end],
                           [MplPath.MOVETO, MplPath.CURVE3, MplPath.CURVE3])
            ax.add_patch(PathPatch(path, facecolor="none", edgecolor=_rgba(item.color), linewidth=item.width * px))
        elif isinstance(item, Polygon):
            ax.add_patch(PolygonPatch(item.points, closed=True, facecolor=_rgba(item.fill), edgecolor="none"))
        elif isinstance(item, Circle):
            ax.add_patch(CirclePatch(item.center, item.radius, facecolor=_rgba(item.fill),
                                     edgecolor=_rgba(item.stroke), linewidth=item.stroke_width * px))
        elif isinstance(item, Glyph):
            _draw_glyph(ax, item)
        elif isinstance(item, Text):
            bbox = None
            if item.box is not None:
                bbox = dict(boxstyle="square,pad=0.3", facecolor=_rgba(item.box), edgecolor="none")
            ax.text(item.position[0], item.position[1], item.text, fontsize=item.size * px,
                    color=_rgba(item.color), ha=item.align, va="center", bbox=bbox)
    return fig


def _draw_glyph(ax, glyph: Glyph):
    x, y = glyph.center
    r = glyph.radius
    if glyph.shape == "card":
        w, h = r * 1.5, r * 1.0
        ax.add_patch(FancyBboxPatch((x - w / 2, y - h / 2), w, h, boxstyle="round,pad=0,rounding_size=3",
                                    facecolor=_rgba(glyph.fill), edgecolor=(0, 0, 0, 0.1)))
        ax.add_patch(FancyBboxPatch((x - w / 2 + 3, y - h / 2 + 4), max(0.0, w - 6), min(6.0, h / 3),
                                    boxstyle="square,pad=0", facecolor=_rgba(glyph.accent), edgecolor="none"))
    else:
        ax.add_patch(CirclePatch((x, y - r * 0.25), r * 0.45, facecolor=_rgba(glyph.fill), edgecolor="none"))
        # y axis points down, so the upper half-disc spans 180..360 degrees
        ax.add_patch(Wedge((x, y + r * 0.6), r * 0.9, 180, 360, facecolor=_rgba(glyph.fill), edgecolor="none"))


# ---------------------------------------------------------------------------
# HoloViews backend
# ---------------------------------------------------------------------------

def _sample_curve(curve: Curve, n: int = 24) -> np.ndarray:
    t = np.linspace(0.0, 1.0, n)[:, None]
    p0, p1, p2 = (np.asarray(p, dtype=float) for p in (curve.start, curve.control, curve.end))
    return (1 - t) ** 2 * p0 + 2 * (1 - t) * t * p1 + t ** 2 * p2


def to_holoviews(scene: Scene, responsive: bool = False, hooks=()) -> hv.Overlay:
    """
    Scene as a HoloViews overlay in pixel coordinates (y axis pointing down).

    With responsive=True the plot fills its container instead of taking the
    scene size; the caller is expected to feed the measured size back as a
    Resized event so the axis ranges stay one unit per pixel. hooks are
    passed through to the Bokeh plot.
    """
    curves = scene.of_type(Curve)
    polygons = scene.of_type(Polygon)
    discs = [c for c in scene.of_type(Circle) if c.fill is not None]
    halos = [c for c in scene.of_type(Circle) if c.fill is None]
    texts = scene.of_type(Text)

    paths = hv.Path(
        [{"x": xy[:, 0], "y": xy[:, 1], "color": c.color[:7]} for c, xy in ((c, _sample_curve(c)) for c in curves)],
        vdims="color",
    ).opts(color="color", line_width=1.5)
    arrows = hv.Polygons(
        [{"x": [p[0] for p in poly.points], "y": [p[1] for p in poly.points], "color": poly.fill[:7]}
         for poly in polygons],
        vdims="color",
    ).opts(color="color", line_alpha=0)
    rings = hv.Points(
        [(c.center[0], c.center[1], 2 * c.radius) for c in halos], vdims=["size"]
    ).opts(size="size", fill_alpha=0, line_color="#3b82f6", line_width=4)
    nodes = hv.Points(
        [(c.center[0], c.center[1], 2 * c.radius, c.fill[:7], c.node_id) for c in discs],
        vdims=["size", "color", "node_id"],
    ).opts(size="size", color="color", line_color="#00000026", tools=["hover"])
    labels = hv.Labels(
        [(t.position[0], t.position[1], t.text) for t in texts], vdims="text"
    ).opts(text_font_size="9pt", text_color="#111827")

    size = dict(responsive=True, min_height=320) if responsive else dict(width=int(scene.width),
                                                                          height=int(scene.height))
    return (paths * arrows * rings * nodes * labels).opts(
        hv.opts.Overlay(
            xlim=(0, scene.width), ylim=(0, scene.height), invert_yaxis=True,
            xaxis=None, yaxis=None, show_grid=False, toolbar=None, bgcolor="#ffffff",
            hooks=list(hooks), **size
        )
    )
