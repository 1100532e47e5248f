#!/usr/bin/env python3
"""
Transaction Graph Explorer Dashboard

Panel app around one ExplorerSession: filter widgets on the left, the
rendered graph on the right. Pointer moves, taps, drags, wheel scrolls and
plot resizes on the canvas are fed back into the reducer as events; clicking
a person or business re-centers the graph on it.

Usage:
    python scripts/explore.py --center C1 --payload graph.json
    python scripts/explore.py --center <uuid>       # live service from config

Then open http://localhost:5006 in your browser.
"""
import io

import holoviews as hv
import panel as pn
import param
from bokeh import events

from src.graph_explorer.controls import GestureTranslator, widget_values
from src.graph_explorer.export import decode_view_state, encode_view_state, export_png, graph_to_csv
from src.graph_explorer.filtering import FilterSpec
from src.graph_explorer.model import Channel, Direction, NodeKind
from src.graph_explorer.render import render_scene, to_holoviews
from src.graph_explorer.session import ExplorerSession
from src.graph_explorer.state import Clicked, DragEnded, DragStarted, Dragged, PointerMoved, ResetView, ZoomStep
from src.utils.logging import get_logger

logger = get_logger(__name__)

PAN_STEP = 60.0


def _split(text):
    return [part.strip() for part in (text or "").split(",") if part.strip()]


def initial_values(session: ExplorerSession, search: str = '') -> dict:
    """Widget values from a shared link when it names a center, else from the session state."""
    if search:
        center, depth, shared = decode_view_state(search)
        if center:
            return widget_values(center, depth, shared)
    state = session.state
    return widget_values(state.center_id, state.depth, state.filters)


def create_dashboard(session: ExplorerSession):
    """Create the interactive explorer layout for a session."""

    pn.extension()
    hv.extension('bokeh')

    # === REACTIVE STATE ===

    class RenderState(param.Parameterized):
        version = param.Integer(default=0)

    render_state = RenderState()
    session.subscribe(lambda _: setattr(render_state, 'version', render_state.version + 1))

    def apply_all(evts):
        for event in evts:
            session.apply(event)

    # === WIDGETS ===

    search = pn.state.location.search if pn.state.location is not None else ''
    values = initial_values(session, search)

    center_input = pn.widgets.TextInput(name='Center', value=values['center'], width=300)
    depth_select = pn.widgets.Select(name='Depth', options={'1-hop': 1, '2-hop': 2}, value=values['depth'],
                                     width=300)
    direction_select = pn.widgets.Select(
        name='Direction',
        options=[d.value for d in Direction],
        value=values['direction'],
        width=300
    )
    min_amount_input = pn.widgets.FloatInput(name='Minimum amount', value=values['min_amount'], start=0.0,
                                             width=300)
    type_select = pn.widgets.MultiChoice(
        name='Entity types',
        options=[k.value for k in NodeKind],
        value=values['entity_types'],
        width=300
    )
    subtype_input = pn.widgets.TextInput(name='Subtypes (comma separated)', value=values['entity_subtypes'],
                                         width=300)
    status_input = pn.widgets.TextInput(name='Status (comma separated)', value=values['entity_status'],
                                        width=300)
    channel_select = pn.widgets.MultiChoice(
        name='Channels',
        options=[c.value for c in Channel],
        value=values['channels'],
        width=300
    )
    hide_technical = pn.widgets.Checkbox(name='Hide accounts, wallets and events', value=values['hide_technical'])
    top_n_input = pn.widgets.IntInput(name='Top-N neighbours (0 = all)', value=values['top_n'], start=0, width=300)

    refresh_button = pn.widgets.Button(name='Refresh', button_type='primary', width=300)
    zoom_in = pn.widgets.Button(name='+', width=45)
    zoom_out = pn.widgets.Button(name='−', width=45)
    reset = pn.widgets.Button(name='⟳', width=45)
    pan_buttons = {
        '←': (PAN_STEP, 0.0), '→': (-PAN_STEP, 0.0), '↑': (0.0, PAN_STEP), '↓': (0.0, -PAN_STEP),
    }

    def current_filters():
        return FilterSpec.create(
            direction=direction_select.value,
            min_amount=min_amount_input.value or 0.0,
            entity_types=type_select.value,
            entity_subtypes=_split(subtype_input.value),
            entity_status=_split(status_input.value),
            channels=channel_select.value,
            hide_technical=hide_technical.value,
            top_n=top_n_input.value or None,
        )

    def sync_location():
        if pn.state.location is not None:
            s = session.state
            pn.state.location.search = '?' + encode_view_state(s.center_id, s.depth, s.filters)

    # === CALLBACKS ===

    async def on_refresh(event=None):
        await session.change_filters(current_filters())
        await session.load(center_input.value.strip() or None, depth_select.value)
        sync_location()

    async def on_filter_change(event):
        await session.change_filters(current_filters())
        sync_location()

    refresh_button.on_click(on_refresh)
    for widget in (direction_select, min_amount_input, type_select, subtype_input,
                   status_input, channel_select, hide_technical, top_n_input):
        widget.param.watch(on_filter_change, 'value')

    zoom_in.on_click(lambda event: session.apply(ZoomStep(True)))
    zoom_out.on_click(lambda event: session.apply(ZoomStep(False)))
    reset.on_click(lambda event: session.apply(ResetView()))

    def make_pan(dx, dy):
        def handler(event):
            apply_all([DragStarted(), Dragged(dx, dy), DragEnded()])
        return handler

    pan_row = []
    for label, (dx, dy) in pan_buttons.items():
        button = pn.widgets.Button(name=label, width=45)
        button.on_click(make_pan(dx, dy))
        pan_row.append(button)

    def png_bytes():
        buffer = io.BytesIO()
        export_png(render_scene(session.state), buffer)
        buffer.seek(0)
        return buffer

    def csv_bytes():
        return io.StringIO(graph_to_csv(session.state.view.graph))

    png_download = pn.widgets.FileDownload(callback=png_bytes, filename='graph.png', label='PNG', width=140)
    csv_download = pn.widgets.FileDownload(callback=csv_bytes, filename='graph.csv', label='CSV', width=140)

    # === GRAPH VIEW ===

    gestures = GestureTranslator()
    hooked = set()

    def attach_gestures(plot, element):
        """Route Bokeh pan and wheel gestures on the canvas into the reducer."""
        figure = plot.state
        if id(figure) in hooked:
            return
        hooked.add(id(figure))
        # pan and zoom go through the viewport, not the Bokeh ranges
        figure.toolbar.active_drag = None
        figure.toolbar.active_scroll = None
        figure.on_event(events.PanStart, lambda e: apply_all(gestures.pan_start()))
        figure.on_event(events.Pan, lambda e: apply_all(gestures.pan(e.delta_x, e.delta_y)))
        figure.on_event(events.PanEnd, lambda e: apply_all(gestures.pan_end()))
        figure.on_event(events.MouseWheel, lambda e: apply_all(gestures.wheel(e.x, e.y, e.delta)))

    pointer = hv.streams.PointerXY(x=None, y=None)
    plot_size = hv.streams.PlotSize()
    tap = hv.streams.Tap(x=None, y=None)

    last_pointer = {'xy': None}

    def view(version, x=None, y=None, width=None, height=None, scale=1.0):
        # every applied event bumps `version`, which re-runs this callback with the same pointer and size
        apply_all(gestures.resize(width, height))
        if x is not None and y is not None and (x, y) != last_pointer['xy'] and not gestures.panning:
            last_pointer['xy'] = (x, y)
            session.apply(PointerMoved(x, y))
        return to_holoviews(render_scene(session.state), responsive=True, hooks=[attach_gestures])

    graph_map = hv.DynamicMap(view, streams=[render_state.param.version, pointer, plot_size])
    tap.source = graph_map

    def on_tap(x=None, y=None):
        if x is None or y is None:
            return

        async def click():
            await session.dispatch(Clicked(x, y))

        pn.state.execute(click)

    tap.add_subscriber(on_tap)

    @pn.depends(render_state.param.version)
    def summary(version):
        s = session.state
        graph = s.view.graph
        text = f'**{len(graph)}** nodes • **{len(graph.edges)}** links'
        if s.loading:
            text += ' • *loading…*'
        if s.notice:
            text += f'\n\n> {s.notice}'
        if s.error:
            text = f'<span style="color:#ef4444">{s.error}</span>'
        return pn.pane.Markdown(text, sizing_mode='fixed', width=600)

    legend = pn.pane.Markdown(
        'Channels: <b style="color:#7c3aed">CARD</b>, <b style="color:#f97316">WIRE</b>, '
        '<b style="color:#22d3ee">CRYPTO</b>, <b style="color:#6b7280">CASH</b>, '
        '<b style="color:#22c55e">ACH</b> • centre <b style="color:#ef4444">red</b>, '
        'accounts <b style="color:#60a5fa">blue</b>, people <b style="color:#14b8a6">teal</b>',
        width=600
    )

    sidebar = pn.Column(
        pn.pane.Markdown('## Filters'),
        center_input, depth_select, direction_select, min_amount_input,
        type_select, subtype_input, status_input, channel_select,
        hide_technical, top_n_input, refresh_button,
        pn.Row(png_download, csv_download),
        width=330
    )
    toolbar = pn.Row(zoom_in, zoom_out, reset, *pan_row)
    main = pn.Column(toolbar, legend, summary, pn.pane.HoloViews(graph_map, sizing_mode='stretch_both'),
                     sizing_mode='stretch_both')

    if center_input.value:
        pn.state.onload(on_refresh)

    return pn.Row(sidebar, main, sizing_mode='stretch_both')


def serve(session: ExplorerSession, port: int = 5006, show: bool = True):
    """Serve the dashboard; blocks until the server stops."""
    logger.info(f"Serving graph explorer on http://localhost:{port}")
    pn.serve(lambda: create_dashboard(session), port=port, show=show, title='Transaction Graph Explorer')
