"""Logging setup for the graph explorer scripts and dashboard.

Levels used across the package:
    INFO     graph queries and re-centering, exports, dashboard startup
    WARNING  failed queries, fallback to the reduced RPC signature
    DEBUG    filter and layout sizes, dropped dangling links, discarded
             stale responses

httpx logs one INFO line per request and the Bokeh/Tornado server is chatty
at INFO as well; those are held at WARNING unless debug output is requested.
"""
import logging
import sys
from typing import Optional

_PACKAGE_LOGGERS = [
    'src.graph_explorer',
    'src.utils',
]

_THIRD_PARTY_LOGGERS = [
    'httpx',
    'httpcore',
    'bokeh',
    'tornado',
    'matplotlib',
]

LOG_FORMAT = '%(levelname)s - %(name)s - %(message)s'


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass __name__."""
    return logging.getLogger(name)


def _level(verbose: bool, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    return logging.INFO if verbose else logging.WARNING


def set_verbosity(verbose: bool = True, debug: bool = False):
    """Set the level of the explorer loggers and root handlers.

    Args:
        verbose: Show INFO messages (queries, exports). If False, only WARNING+.
        debug: Show DEBUG pipeline sizes and let third-party request logs through.
    """
    level = _level(verbose, debug)
    logging.getLogger().setLevel(level)
    for handler in logging.getLogger().handlers:
        handler.setLevel(level)
    for pkg in _PACKAGE_LOGGERS:
        logging.getLogger(pkg).setLevel(level)

    third_party = level if debug else max(level, logging.WARNING)
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party)


def configure_logging(verbose: bool = True, log_file: Optional[str] = None, debug: bool = False):
    """Install stdout (and optional file) handlers; call once from a script's main().

    Args:
        verbose: Show INFO messages. If False, only WARNING+.
        log_file: Also append log records to this file.
        debug: Show DEBUG messages as well.
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=_level(verbose, debug), format=LOG_FORMAT, handlers=handlers, force=True)
    set_verbosity(verbose, debug)
