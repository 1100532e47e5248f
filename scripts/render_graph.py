"""
Headless graph rendering: load a payload, filter around a center, lay out,
and write a PNG snapshot and/or the two-section CSV export.

Usage examples:
    python scripts/render_graph.py --payload data/sample_graph.json --center C1 --png out/c1.png

    # Two hops, only businesses, at least 100 per link
    python scripts/render_graph.py --payload data/sample_graph.json --center C1 --depth 2 \\
        --types BUSINESS --min-amount 100 --png out/c1.png --csv out/c1.csv
"""
import argparse
import asyncio

from src.graph_explorer.export import encode_view_state, export_csv, export_png
from src.graph_explorer.filtering import FilterSpec
from src.graph_explorer.query import StaticGraphSource
from src.graph_explorer.render import Theme, render_scene
from src.graph_explorer.session import ExplorerSession
from src.graph_explorer.state import state_from_config
from src.utils.config import load_explorer_config
from src.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def _list(text):
    return [part.strip() for part in text.split(',') if part.strip()] if text else None


def main():
    parser = argparse.ArgumentParser(
        description='Render a filtered transaction graph to PNG/CSV',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--payload', type=str, required=True, help='Saved {nodes, links} JSON file')
    parser.add_argument('--center', type=str, required=True, help='Center entity id')
    parser.add_argument('--depth', type=int, choices=[1, 2], default=1, help='Hops around the center')
    parser.add_argument('--config', type=str, default=None, help='Path to explorer YAML config')
    parser.add_argument('--direction', type=str, default='ANY', choices=['ANY', 'SENDING', 'RECEIVING'])
    parser.add_argument('--min-amount', type=float, default=0.0)
    parser.add_argument('--types', type=str, default=None, help='Comma separated entity types')
    parser.add_argument('--subtypes', type=str, default=None, help='Comma separated subtypes')
    parser.add_argument('--status', type=str, default=None, help='Comma separated statuses')
    parser.add_argument('--channels', type=str, default=None, help='Comma separated channels')
    parser.add_argument('--hide-technical', action='store_true', help='Drop accounts, wallets and events')
    parser.add_argument('--top-n', type=int, default=None, help='Keep the N strongest neighbours')
    parser.add_argument('--png', type=str, default=None, help='Output PNG path')
    parser.add_argument('--csv', type=str, default=None, help='Output CSV path')
    parser.add_argument('--quiet', action='store_true', help='Only show warnings')

    args = parser.parse_args()
    configure_logging(verbose=not args.quiet)

    if not args.png and not args.csv:
        parser.error('nothing to do: pass --png and/or --csv')

    config = load_explorer_config(args.config)
    filters = FilterSpec.create(
        direction=args.direction,
        min_amount=args.min_amount,
        entity_types=_list(args.types),
        entity_subtypes=_list(args.subtypes),
        entity_status=_list(args.status),
        channels=_list(args.channels),
        hide_technical=args.hide_technical,
        top_n=args.top_n,
    )

    state = state_from_config(config)
    session = ExplorerSession(StaticGraphSource(args.payload), state)
    asyncio.run(session.change_filters(filters))
    state = asyncio.run(session.load(args.center, args.depth))

    if state.error:
        logger.error(state.error)
        return
    if state.hint:
        logger.warning(state.hint)

    graph = state.view.graph
    logger.info(f"{len(graph)} nodes, {len(graph.edges)} links ({state.view.layout.strategy} layout)")
    logger.info(f"View link: ?{encode_view_state(state.center_id, state.depth, state.filters)}")

    if args.png:
        theme = Theme(background=config['render']['background'])
        export_png(render_scene(state, theme), args.png, dpi=int(config['render']['dpi']))
    if args.csv:
        export_csv(graph, args.csv)


if __name__ == '__main__':
    main()
