"""Command line interface for escriptize."""

import argparse
import logging
import pathlib
import sys

from escriptize.builder import escriptize
from escriptize.errors import EscriptizeError
from escriptize.project import DEFAULT_CONFIG_NAME, ProjectState, load_project


def _log_level(*, verbose: int, quiet: int) -> int:
    """Map ``-v``/``-q`` counts to a level of the ``escriptize`` logger.

    - default: stage progress and the final output path (INFO),
    - ``-v``: also included apps, per-app beam counts and archive size (DEBUG),
    - ``-q``: only shadowed archive paths and failures (WARNING),
    - ``-qq``: only the failure message (ERROR).

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+); wins over ``verbose``.
    :returns: Logging level.
    """

    if quiet >= 2:
        return logging.ERROR
    if quiet >= 1:
        return logging.WARNING
    if verbose >= 1:
        return logging.DEBUG
    return logging.INFO


def _configure_logging(*, level: int) -> logging.Logger:
    """Send ``escriptize`` records to stderr as bare messages.

    Handlers from a previous call are replaced, so repeated ``main()`` calls
    in one process do not duplicate output.

    :param level: Logging level from :func:`_log_level`.
    :returns: The ``escriptize`` logger.
    """

    logger: logging.Logger = logging.getLogger("escriptize")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def main(argv: list[str] | None = None) -> int:
    """Run the escriptize CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="escriptize",
        description="Generate an escript executable containing the project's and its dependencies' BEAM files.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_build = subparsers.add_parser(
        "build",
        help="Build the escript into <base_dir>/bin/.",
    )
    p_build.add_argument(
        "-c",
        "--config",
        type=pathlib.Path,
        default=pathlib.Path(DEFAULT_CONFIG_NAME),
        help=f"Project configuration file (default: {DEFAULT_CONFIG_NAME}).",
    )
    p_build.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging. Pass multiple times for more detail.",
    )
    p_build.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )

    ns = parser.parse_args(argv)
    if ns.command == "build":
        logger: logging.Logger = _configure_logging(level=_log_level(verbose=ns.verbose, quiet=ns.quiet))
        try:
            state: ProjectState = load_project(ns.config)
            escriptize(state, logger=logger)
        except (EscriptizeError, OSError) as exc:
            logger.error(f"escriptize: error: {exc}")
            return 1
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")
