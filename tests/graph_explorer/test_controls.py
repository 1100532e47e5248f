"""
Tests for dashboard gesture translation and widget restore
"""
import pytest

from src.graph_explorer.controls import GestureTranslator, widget_values
from src.graph_explorer.export import decode_view_state, encode_view_state
from src.graph_explorer.filtering import FilterSpec
from src.graph_explorer.state import (DragEnded, DragStarted, Dragged, ExplorerState, QueryResolved, QueryStarted,
                                      ResetView, Resized, Wheeled, reduce)


def apply_all(state, events):
    for event in events:
        state = reduce(state, event)
    return state


@pytest.mark.unit
class TestPanGestures:
    """Tests for cumulative pan deltas becoming drag events"""

    def test_pan_sequence(self):
        """Cumulative deltas are turned into per-move steps between start and end"""
        gestures = GestureTranslator()
        events = gestures.pan_start()
        events += gestures.pan(10.0, 5.0)
        events += gestures.pan(25.0, 5.0)
        events += gestures.pan_end()
        assert events == [DragStarted(), Dragged(10.0, 5.0), Dragged(15.0, 0.0), DragEnded()]

    def test_pan_without_start_ignored(self):
        """Pan moves outside a gesture produce nothing"""
        gestures = GestureTranslator()
        assert gestures.pan(10.0, 10.0) == []
        assert gestures.pan_end() == []

    def test_zero_move_ignored(self):
        """A repeated cumulative delta is not a move"""
        gestures = GestureTranslator()
        gestures.pan_start()
        gestures.pan(4.0, 4.0)
        assert gestures.pan(4.0, 4.0) == []

    def test_panning_flag(self):
        """panning is true only between start and end"""
        gestures = GestureTranslator()
        assert not gestures.panning
        gestures.pan_start()
        assert gestures.panning
        gestures.pan_end()
        assert not gestures.panning

    def test_drag_pans_viewport(self, bridge_graph):
        """A full drag gesture moves the viewport offset by the total delta"""
        state = reduce(ExplorerState(), QueryStarted("C1"))
        state = reduce(state, QueryResolved(state.generation, bridge_graph))
        gestures = GestureTranslator()
        events = gestures.pan_start() + gestures.pan(12.0, -3.0) + gestures.pan(30.0, -8.0) + gestures.pan_end()

        moved = apply_all(state, events)

        assert moved.viewport.offset_x == pytest.approx(state.viewport.offset_x + 30.0)
        assert moved.viewport.offset_y == pytest.approx(state.viewport.offset_y - 8.0)
        assert not moved.dragging


@pytest.mark.unit
class TestWheelAndResize:
    """Tests for wheel zoom and plot size events"""

    def test_wheel_up_zooms_in(self, bridge_graph):
        """Bokeh's positive wheel delta zooms in around the cursor"""
        state = reduce(ExplorerState(), QueryStarted("C1"))
        state = reduce(state, QueryResolved(state.generation, bridge_graph))
        events = GestureTranslator().wheel(300.0, 200.0, 1.0)
        assert events == [Wheeled(300.0, 200.0, -1.0)]

        zoomed = apply_all(state, events)

        assert zoomed.viewport.zoom > state.viewport.zoom
        assert zoomed.viewport.to_world(300.0, 200.0) == pytest.approx(state.viewport.to_world(300.0, 200.0))

    def test_wheel_without_position_ignored(self):
        """Wheel events without a cursor position or delta produce nothing"""
        gestures = GestureTranslator()
        assert gestures.wheel(None, 10.0, 1.0) == []
        assert gestures.wheel(10.0, 10.0, 0.0) == []

    def test_first_size_refits(self):
        """The first measured plot size resizes and refits; later sizes only resize"""
        gestures = GestureTranslator()
        assert gestures.resize(1200, 700) == [Resized(1200.0, 700.0), ResetView()]
        assert gestures.resize(1200, 700) == []
        assert gestures.resize(800, 500) == [Resized(800.0, 500.0)]

    def test_unmeasured_size_ignored(self):
        """PlotSize reports None before the plot is laid out"""
        assert GestureTranslator().resize(None, None) == []


@pytest.mark.unit
class TestWidgetValues:
    """Tests for restoring widget values"""

    def test_every_filter_restored_from_link(self):
        """All filters written to a shared link come back as widget values"""
        filters = FilterSpec.create(direction="RECEIVING", min_amount=75, entity_types=["PERSON"],
                                    entity_subtypes=["retail", "private"], entity_status=["active"],
                                    channels=["CARD", "WIRE"], hide_technical=True, top_n=4)
        center, depth, shared = decode_view_state(encode_view_state("C1", 2, filters))

        values = widget_values(center, depth, shared)

        assert values == {
            'center': 'C1',
            'depth': 2,
            'direction': 'RECEIVING',
            'min_amount': 75.0,
            'entity_types': ['PERSON'],
            'entity_subtypes': 'retail,private',
            'entity_status': 'active',
            'channels': ['CARD', 'WIRE'],
            'hide_technical': True,
            'top_n': 4,
        }

    def test_defaults(self):
        """No center and default filters give empty widgets"""
        values = widget_values(None, 1, FilterSpec())
        assert values['center'] == ''
        assert values['entity_types'] == []
        assert values['entity_subtypes'] == ''
        assert values['top_n'] == 0
        assert values['hide_technical'] is False
