"""
Viewport Controller

Affine transform from layout (world) space to screen pixels:
screen = world * zoom + offset.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Tuple

from src.graph_explorer.model import BoundingBox


@dataclass(frozen=True)
class ViewportParams:
    padding: float = 60.0
    fit_zoom_min: float = 0.25
    fit_zoom_max: float = 2.4
    zoom_min: float = 0.22
    zoom_max: float = 2.6
    zoom_step: float = 1.2
    wheel_step: float = 1.1

    @classmethod
    def from_config(cls, config: Dict) -> "ViewportParams":
        section = config.get("viewport", {})
        return cls(**{k: float(v) for k, v in section.items() if k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class Viewport:
    zoom: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def __post_init__(self):
        if not self.zoom > 0:
            raise ValueError(f"zoom must be > 0, got {self.zoom}")

    def to_screen(self, x: float, y: float) -> Tuple[float, float]:
        return (x * self.zoom + self.offset_x, y * self.zoom + self.offset_y)

    def to_world(self, sx: float, sy: float) -> Tuple[float, float]:
        return ((sx - self.offset_x) / self.zoom, (sy - self.offset_y) / self.zoom)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def fit_to_view(bbox: BoundingBox, width: float, height: float, params: ViewportParams = ViewportParams()) -> Viewport:
    """
    Scale and center a bounding box inside a viewport with padding.

    Depends only on its arguments, so repeated calls return identical
    transforms. Zero-size boxes are treated as 1 unit wide/high.
    """
    box_w = bbox.width or 1.0
    box_h = bbox.height or 1.0
    scale = min((width - params.padding) / box_w, (height - params.padding) / box_h)
    zoom = clamp(scale, params.fit_zoom_min, params.fit_zoom_max)
    cx, cy = bbox.center
    return Viewport(zoom=zoom, offset_x=width / 2 - cx * zoom, offset_y=height / 2 - cy * zoom)


def pan(viewport: Viewport, dx: float, dy: float) -> Viewport:
    return replace(viewport, offset_x=viewport.offset_x + dx, offset_y=viewport.offset_y + dy)


def zoom_at(viewport: Viewport, factor: float, anchor: Tuple[float, float],
            params: ViewportParams = ViewportParams()) -> Viewport:
    """
    Multiply the zoom by factor (clamped), keeping the world point under the
    screen anchor fixed.
    """
    if not factor > 0:
        raise ValueError(f"zoom factor must be > 0, got {factor}")
    zoom = clamp(viewport.zoom * factor, params.zoom_min, params.zoom_max)
    wx, wy = viewport.to_world(*anchor)
    return Viewport(zoom=zoom, offset_x=anchor[0] - wx * zoom, offset_y=anchor[1] - wy * zoom)
