"""Command line interface for logcache."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Sequence
from importlib.metadata import PackageNotFoundError, version as get_version
from pathlib import Path

from pydantic import ValidationError

from logcache.cache_store import CacheStore
from logcache.config import (
    LOGCACHE_CACHE_PATH,
    LOGCACHE_LOG_LEVEL,
    LOGCACHE_PAGE_SIZE,
    LOGCACHE_SOURCE,
)
from logcache.exceptions import LogCacheError, QueryError
from logcache.fetch import run_query
from logcache.render import OutputRenderer
from logcache.schemas import LogQuery
from logcache.sources import SOURCE_KINDS, create_log_source
from logcache.time_utils import to_epoch_ms

logger = logging.getLogger(__name__)


def _time_arg(value: str) -> int:
    try:
        return to_epoch_ms(value)
    except QueryError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _count_arg(value: str) -> int:
    try:
        count = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid count {value!r}") from exc
    if count < 0:
        raise argparse.ArgumentTypeError(f"count must not be negative: {count}")
    return count


def build_parser() -> argparse.ArgumentParser:
    try:
        package_version = get_version("logcache")
    except PackageNotFoundError:
        package_version = "dev"

    parser = argparse.ArgumentParser(
        prog="logcache",
        description=(
            "Fetch CloudWatch log events and cache the result locally, keyed "
            "by the exact query."
        ),
    )
    parser.add_argument(
        "--version", action="version", version=f"logcache {package_version}"
    )
    parser.add_argument("log_group", metavar="log-group-name", help="The name of the log group.")
    parser.add_argument(
        "filter_pattern",
        metavar="filter-pattern",
        nargs="?",
        default=None,
        help="The filter pattern to use.",
    )
    parser.add_argument(
        "-M",
        "--log-stream-name",
        dest="log_stream",
        default=None,
        help="The name of the log stream.",
    )
    parser.add_argument(
        "-S",
        "--start-time",
        "--since",
        dest="start_time",
        type=_time_arg,
        default=None,
        help=(
            "The start of the time range. Events before this time are not "
            "returned. Epoch milliseconds or ISO-8601."
        ),
    )
    parser.add_argument(
        "-U",
        "--end-time",
        "--until",
        dest="end_time",
        type=_time_arg,
        default=None,
        help=(
            "The end of the time range. Events later than this time are not "
            "returned. Epoch milliseconds or ISO-8601."
        ),
    )
    parser.add_argument(
        "-n",
        "--max-items",
        "--lines",
        dest="max_items",
        type=_count_arg,
        default=None,
        help="The total number of items to return in the command's output.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Retrieve data even if cached.",
    )
    parser.add_argument(
        "-t",
        "--text",
        action="store_true",
        help="Return results as text instead of JSON.",
    )
    parser.add_argument(
        "--source",
        choices=SOURCE_KINDS,
        default=LOGCACHE_SOURCE,
        help="How to call CloudWatch Logs (default: %(default)s).",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=LOGCACHE_CACHE_PATH,
        help="Directory for cached results (default: %(default)s).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr.",
    )
    return parser


def parse_query(parser: argparse.ArgumentParser, args: argparse.Namespace) -> LogQuery:
    """Build the query from parsed arguments, exiting with usage on error."""
    if args.start_time is None and args.end_time is None and args.max_items is None:
        parser.error(
            "at least one of --start-time, --end-time or --max-items is required"
        )
    try:
        return LogQuery(
            log_group=args.log_group,
            log_stream=args.log_stream,
            filter_pattern=args.filter_pattern,
            start_time=args.start_time,
            end_time=args.end_time,
            max_items=args.max_items,
        )
    except ValidationError as exc:
        messages = "; ".join(error["msg"] for error in exc.errors())
        parser.error(messages)


def check_settings(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    """Check settings argparse cannot validate and return the log level.

    Values that come from environment defaults bypass ``choices`` and
    ``type``, so they are checked here and reported as usage errors.
    """
    if args.source not in SOURCE_KINDS:
        parser.error(
            f"invalid source {args.source!r} (choose from {', '.join(SOURCE_KINDS)})"
        )
    if LOGCACHE_PAGE_SIZE <= 0:
        parser.error(f"LOGCACHE_PAGE_SIZE must be positive: {LOGCACHE_PAGE_SIZE}")
    if args.verbose:
        return logging.DEBUG
    level = logging.getLevelNamesMapping().get(LOGCACHE_LOG_LEVEL.upper())
    if level is None:
        parser.error(f"invalid LOGCACHE_LOG_LEVEL {LOGCACHE_LOG_LEVEL!r}")
    return level


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point. Returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    level = check_settings(parser, args)

    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    query = parse_query(parser, args)
    store = CacheStore(args.cache_dir)
    source = create_log_source(args.source)
    renderer = OutputRenderer(sys.stdout, text=args.text)

    try:
        asyncio.run(
            run_query(
                query,
                store=store,
                source=source,
                renderer=renderer,
                force=args.force,
                page_size=LOGCACHE_PAGE_SIZE,
            )
        )
        renderer.flush()
    except BrokenPipeError:
        # Reader went away (e.g. piped into head). Point stdout at devnull so
        # the interpreter's final flush does not fail again.
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return 1
    except LogCacheError as exc:
        logger.debug("Query for %s failed", query.log_group, exc_info=True)
        print(f"logcache: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
