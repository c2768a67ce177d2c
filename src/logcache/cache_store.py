"""On-disk cache of completed query results."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO

from logcache.exceptions import CacheIOError, CacheMissError
from logcache.schemas import LogRecord

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"


class CacheWriter:
    """Append-only handle on one partial entry.

    Records are written as they arrive; nothing is buffered beyond the
    underlying file object.

    Attributes:
        fingerprint: Cache key the partial entry belongs to.
        path: Location of this writer's partial file.
        count: Number of records appended so far.
    """

    def __init__(self, fingerprint: str, path: Path, handle: TextIO) -> None:
        self.fingerprint = fingerprint
        self.path = path
        self._handle = handle
        self.count = 0

    def append(self, record: LogRecord) -> None:
        """Write one serialized record followed by a newline."""
        try:
            self._handle.write(record.to_line())
            self._handle.write("\n")
        except OSError as exc:
            raise CacheIOError(f"Failed to write {self.path}: {exc}") from exc
        self.count += 1

    def append_page(self, records: Iterable[LogRecord]) -> None:
        for record in records:
            self.append(record)
        self.flush()

    def flush(self) -> None:
        try:
            self._handle.flush()
        except OSError as exc:
            raise CacheIOError(f"Failed to flush {self.path}: {exc}") from exc

    def close(self) -> None:
        if self._handle.closed:
            return
        try:
            self._handle.close()
        except OSError as exc:
            raise CacheIOError(f"Failed to close {self.path}: {exc}") from exc

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def __enter__(self) -> "CacheWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class CacheStore:
    """Maps fingerprints to completed result files under a cache root.

    A completed entry is ``<root>/<fingerprint>``. While a fetch is running
    its records go to a partial file of its own,
    ``<root>/<fingerprint>.<random>.partial``, which is renamed over the
    entry by :meth:`commit`. Concurrent fetches of one fingerprint never
    share a partial file, and a partial file is never reported as a hit.

    Args:
        cache_root: Directory holding the cache entries.
    """

    def __init__(self, cache_root: Path) -> None:
        self.root = Path(cache_root).expanduser()

    def ensure_root(self) -> None:
        """Create the cache directory if it does not exist yet."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheIOError(
                f"Failed to create cache directory {self.root}: {exc}"
            ) from exc

    async def ensure_root_async(self) -> None:
        await asyncio.to_thread(self.ensure_root)

    def entry_path(self, fingerprint: str) -> Path:
        return self.root / fingerprint

    def partial_paths(self, fingerprint: str) -> list[Path]:
        """List the partial files currently on disk for the fingerprint."""
        return sorted(self.root.glob(f"{fingerprint}.*{PARTIAL_SUFFIX}"))

    def exists(self, fingerprint: str) -> bool:
        """Return True if a completed entry exists for the fingerprint."""
        return self.entry_path(fingerprint).is_file()

    def open_for_read(self, fingerprint: str) -> TextIO:
        """Open a completed entry for reading.

        Raises:
            CacheMissError: If no completed entry exists.
            CacheIOError: If the entry exists but cannot be opened.
        """
        path = self.entry_path(fingerprint)
        try:
            return path.open("r", encoding="utf-8")
        except FileNotFoundError as exc:
            raise CacheMissError(f"No cache entry for {fingerprint}") from exc
        except OSError as exc:
            raise CacheIOError(f"Failed to open {path}: {exc}") from exc

    def iter_lines(self, fingerprint: str) -> Iterator[str]:
        """Yield the serialized records of a completed entry, without newlines."""
        with self.open_for_read(fingerprint) as handle:
            for line in handle:
                line = line.rstrip("\n")
                if line:
                    yield line

    def iter_records(self, fingerprint: str) -> Iterator[LogRecord]:
        """Yield the records of a completed entry in stored order."""
        for line in self.iter_lines(fingerprint):
            yield LogRecord.from_line(line)

    def begin_write(self, fingerprint: str) -> CacheWriter:
        """Create a new, uniquely named partial entry for the fingerprint.

        Raises:
            CacheIOError: If the partial entry cannot be created.
        """
        try:
            fd, name = tempfile.mkstemp(
                dir=self.root, prefix=f"{fingerprint}.", suffix=PARTIAL_SUFFIX
            )
        except OSError as exc:
            raise CacheIOError(
                f"Failed to create partial entry for {fingerprint}: {exc}"
            ) from exc
        handle = os.fdopen(fd, "w", encoding="utf-8")
        return CacheWriter(fingerprint, Path(name), handle)

    def commit(self, writer: CacheWriter) -> Path:
        """Close the writer and atomically promote its file to the entry.

        Returns:
            Path to the completed entry.

        Raises:
            CacheIOError: If the rename fails (including a missing partial).
        """
        writer.close()
        entry = self.entry_path(writer.fingerprint)
        try:
            os.replace(writer.path, entry)
        except OSError as exc:
            raise CacheIOError(
                f"Failed to commit cache entry {writer.fingerprint}: {exc}"
            ) from exc
        logger.debug("Committed cache entry %s", entry)
        return entry

    def discard(self, writer: CacheWriter) -> None:
        """Close the writer and remove its partial file, if still present."""
        writer.close()
        try:
            writer.path.unlink(missing_ok=True)
        except OSError as exc:
            raise CacheIOError(
                f"Failed to discard partial entry {writer.path}: {exc}"
            ) from exc

    def prune_partials(self, fingerprint: str, max_age_seconds: int) -> list[Path]:
        """Remove partial files that have not been written to recently.

        A live fetch flushes after every page, so only files left behind by
        crashed runs go untouched for long.

        Args:
            fingerprint: Fingerprint whose partial files to check.
            max_age_seconds: Minimum idle time before a partial is removed.
                If <= 0, nothing is removed.

        Returns:
            The paths that were removed.
        """
        if max_age_seconds <= 0:
            return []
        now = datetime.now(timezone.utc)
        removed: list[Path] = []
        for path in self.partial_paths(fingerprint):
            try:
                mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
                if (now - mtime).total_seconds() <= max_age_seconds:
                    continue
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise CacheIOError(f"Failed to prune {path}: {exc}") from exc
            logger.debug("Removed stale partial entry %s", path)
            removed.append(path)
        return removed

    def delete(self, fingerprint: str) -> None:
        """Remove the completed entry for the fingerprint, if any."""
        try:
            self.entry_path(fingerprint).unlink(missing_ok=True)
        except OSError as exc:
            raise CacheIOError(
                f"Failed to delete cache entry {fingerprint}: {exc}"
            ) from exc
