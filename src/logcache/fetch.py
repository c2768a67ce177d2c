"""Fetch log events page by page and cache the complete result."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from logcache.cache_store import CacheStore, CacheWriter
from logcache.config import LOGCACHE_PAGE_SIZE, LOGCACHE_PARTIAL_TTL_SECONDS
from logcache.fingerprint import compute_fingerprint
from logcache.render import OutputRenderer
from logcache.schemas import LogQuery, LogRecord
from logcache.sources import LogSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryOutcome:
    """Summary of a served query.

    Attributes:
        fingerprint: Cache key of the query.
        from_cache: True if the result was read from a cache entry.
        record_count: Number of records emitted.
    """

    fingerprint: str
    from_cache: bool
    record_count: int


async def fetch_events(
    query: LogQuery,
    source: LogSource,
    writer: CacheWriter,
    emit: Callable[[LogRecord], None],
    *,
    page_size: int = LOGCACHE_PAGE_SIZE,
) -> int:
    """Pull pages from the source until the stream or the item limit runs out.

    Each record is appended to ``writer`` and then passed to ``emit``, in
    page order, and a page is fully handled before the next one is
    requested. Errors from the source propagate unchanged.

    Args:
        query: The query to run. ``query.max_items`` bounds the total.
        source: Remote log source to page through.
        writer: Partial cache entry receiving serialized records.
        emit: Callback for the live output.
        page_size: Maximum number of events requested per page.

    Returns:
        The number of records written.

    Raises:
        ValueError: If page_size is not positive.
        RemoteFailureError: If a page request fails.
    """
    if page_size <= 0:
        raise ValueError(f"page_size must be positive: {page_size}")

    remaining = query.max_items
    next_token: str | None = None
    total = 0

    while remaining is None or remaining > 0:
        limit = page_size if remaining is None else min(remaining, page_size)
        logger.debug(
            "Requesting up to %s events from %s (continuation: %s)",
            limit,
            query.log_group,
            next_token is not None,
        )
        page = await source.fetch_page(query, limit=limit, next_token=next_token)

        events = page.events
        if remaining is not None and len(events) > remaining:
            events = events[:remaining]

        for record in events:
            writer.append(record)
            emit(record)
        writer.flush()

        total += len(events)
        if remaining is not None:
            remaining -= len(events)

        if page.next_token is None:
            break
        if not page.events and page.next_token == next_token:
            # The API echoes the same token once the range is exhausted.
            break
        next_token = page.next_token

    return total


async def run_query(
    query: LogQuery,
    *,
    store: CacheStore,
    source: LogSource,
    renderer: OutputRenderer,
    force: bool = False,
    page_size: int = LOGCACHE_PAGE_SIZE,
    partial_ttl_seconds: int = LOGCACHE_PARTIAL_TTL_SECONDS,
) -> QueryOutcome:
    """Serve a query from the cache, or fetch and cache it.

    A completed cache entry is streamed straight to the renderer unless
    ``force`` is set. Otherwise all pages are fetched into a partial entry
    that is committed once the remote stream or the item limit is
    exhausted. On failure the partial entry is discarded and nothing is
    committed. Partial entries idle for longer than ``partial_ttl_seconds``
    are treated as left over from crashed runs and removed first.

    Args:
        query: The query to serve.
        store: Cache store holding completed entries.
        source: Remote log source used on a cache miss.
        renderer: Destination for the records.
        force: Skip reading the cache and always fetch.
        page_size: Maximum number of events requested per page.
        partial_ttl_seconds: Idle time after which another run's partial
            entry is considered abandoned.

    Returns:
        A QueryOutcome describing how the query was served.

    Raises:
        RemoteFailureError: If the remote source fails.
        CacheIOError: If the cache cannot be read or written.
    """
    fingerprint = compute_fingerprint(query)
    await store.ensure_root_async()

    if not force and store.exists(fingerprint):
        logger.info("Cache hit for %s (%s)", query.log_group, fingerprint)
        count = await asyncio.to_thread(_replay_entry, store, fingerprint, renderer)
        return QueryOutcome(fingerprint=fingerprint, from_cache=True, record_count=count)

    logger.info("Cache miss for %s (%s)", query.log_group, fingerprint)
    store.prune_partials(fingerprint, partial_ttl_seconds)
    writer = store.begin_write(fingerprint)
    try:
        count = await fetch_events(
            query, source, writer, renderer.emit, page_size=page_size
        )
    except BaseException:
        logger.debug("Fetch for %s aborted; discarding %s", fingerprint, writer.path)
        store.discard(writer)
        raise

    store.commit(writer)
    logger.info("Cached %s events for %s", count, fingerprint)
    return QueryOutcome(fingerprint=fingerprint, from_cache=False, record_count=count)


def _replay_entry(store: CacheStore, fingerprint: str, renderer: OutputRenderer) -> int:
    count = 0
    for line in store.iter_lines(fingerprint):
        renderer.emit_line(line)
        count += 1
    return count
