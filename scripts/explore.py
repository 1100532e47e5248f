"""
Interactive transaction graph explorer.

Convention over configuration:
- Settings come from config/explorer.yaml (or --config), defaults otherwise
- Without --payload the live Graph Query Service from the config is used
  (GRAPH_QUERY_URL / GRAPH_QUERY_KEY override the file)

Usage examples:
    # Explore a saved payload
    python scripts/explore.py --payload data/sample_graph.json --center C1

    # Explore the live service on another port
    python scripts/explore.py --center 7d1c0f5e --port 5007
"""
import argparse

from src.graph_explorer.dashboard import serve
from src.graph_explorer.query import GraphQueryClient, StaticGraphSource
from src.graph_explorer.session import ExplorerSession
from src.graph_explorer.state import state_from_config
from src.utils.config import load_explorer_config
from src.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description='Serve the interactive transaction graph explorer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--center', type=str, default=None, help='Initial center entity id')
    parser.add_argument('--config', type=str, default=None, help='Path to explorer YAML config')
    parser.add_argument('--payload', type=str, default=None,
                        help='Serve a saved {nodes, links} JSON file instead of the live service')
    parser.add_argument('--port', type=int, default=5006, help='Dashboard port. Default: 5006')
    parser.add_argument('--no-show', action='store_true', help='Do not open a browser window')
    parser.add_argument('--log-file', type=str, default=None, help='Also write logs to this file')
    parser.add_argument('--debug', action='store_true', help='Show debug logging')

    args = parser.parse_args()
    configure_logging(verbose=True, log_file=args.log_file, debug=args.debug)

    config = load_explorer_config(args.config)
    if args.payload:
        source = StaticGraphSource(args.payload)
        logger.info(f"Using payload file {args.payload}")
    else:
        source = GraphQueryClient.from_config(config)
        logger.info(f"Using graph query service {source.endpoint}")

    session = ExplorerSession(source, state_from_config(config, args.center))
    serve(session, port=args.port, show=not args.no_show)


if __name__ == '__main__':
    main()
