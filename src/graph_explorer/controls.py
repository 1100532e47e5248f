"""
Dashboard input translation.

Turns raw canvas gestures (pan, wheel, plot size) into explorer events, and
explorer state into widget values. Kept free of Panel/Bokeh so the mapping
can be tested without a server.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from src.graph_explorer.filtering import FilterSpec
from src.graph_explorer.state import DragEnded, DragStarted, Dragged, ResetView, Resized, Wheeled


class GestureTranslator:
    """
    Stateful mapping from Bokeh gesture events to reducer events.

    Bokeh reports pan deltas cumulatively from the start of the gesture;
    the reducer wants per-move deltas, so the last cumulative delta is kept.
    Bokeh wheel deltas are positive when scrolling up (zoom in), the reverse
    of the DOM deltaY sign that Wheeled uses.
    """

    def __init__(self):
        self._pan_origin: Optional[tuple] = None
        self._size: Optional[tuple] = None

    @property
    def panning(self) -> bool:
        return self._pan_origin is not None

    def pan_start(self) -> List:
        self._pan_origin = (0.0, 0.0)
        return [DragStarted()]

    def pan(self, delta_x: Optional[float], delta_y: Optional[float]) -> List:
        if self._pan_origin is None or delta_x is None or delta_y is None:
            return []
        last_x, last_y = self._pan_origin
        self._pan_origin = (float(delta_x), float(delta_y))
        dx, dy = delta_x - last_x, delta_y - last_y
        if dx == 0 and dy == 0:
            return []
        return [Dragged(dx, dy)]

    def pan_end(self) -> List:
        if self._pan_origin is None:
            return []
        self._pan_origin = None
        return [DragEnded()]

    def wheel(self, x: Optional[float], y: Optional[float], delta: Optional[float]) -> List:
        if x is None or y is None or not delta:
            return []
        return [Wheeled(x, y, -delta)]

    def resize(self, width: Optional[float], height: Optional[float]) -> List:
        """Resized on every size change; the first measured size also refits the graph."""
        if not width or not height:
            return []
        size = (float(width), float(height))
        if size == self._size:
            return []
        first = self._size is None
        self._size = size
        return [Resized(*size), ResetView()] if first else [Resized(*size)]


def widget_values(center_id: Optional[str], depth: int, filters: FilterSpec) -> Dict:
    """Widget name -> value for every filter control, e.g. when restoring a shared link."""
    return {
        'center': center_id or '',
        'depth': depth,
        'direction': filters.direction.value,
        'min_amount': filters.min_amount,
        'entity_types': list(filters.entity_types or []),
        'entity_subtypes': ','.join(filters.entity_subtypes or []),
        'entity_status': ','.join(filters.entity_status or []),
        'channels': list(filters.channels or []),
        'hide_technical': filters.hide_technical,
        'top_n': filters.top_n or 0,
    }
