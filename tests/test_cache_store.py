"""Tests for the on-disk cache store."""

from __future__ import annotations

import os
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from logcache.cache_store import PARTIAL_SUFFIX, CacheStore
from logcache.exceptions import CacheIOError, CacheMissError
from logcache.schemas import LogRecord

FP = "0123456789abcdef0123456789abcdef01234567"


def _records(count: int) -> list[LogRecord]:
    return [
        LogRecord(
            stream_name="web-1",
            timestamp=1_700_000_000_000 + i,
            message=f"line {i}",
            ingestion_time=1_700_000_000_500 + i,
            id=f"event-{i}",
        )
        for i in range(count)
    ]


@pytest.fixture
def store(tmp_path: Path) -> CacheStore:
    cache_store = CacheStore(tmp_path / "cache")
    cache_store.ensure_root()
    return cache_store


class TestEnsureRoot:
    """Tests for cache directory creation."""

    def test_creates_nested_directory(self, tmp_path: Path) -> None:
        """Creates missing parent directories."""
        store = CacheStore(tmp_path / "a" / "b" / "cache")

        store.ensure_root()

        assert store.root.is_dir()

    def test_is_idempotent(self, store: CacheStore) -> None:
        """Calling again on an existing directory does not raise."""
        store.ensure_root()

        assert store.root.is_dir()

    def test_wraps_os_errors(self, tmp_path: Path) -> None:
        """Failure to create the directory surfaces as CacheIOError."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = CacheStore(blocker / "cache")

        with pytest.raises(CacheIOError, match="cache directory"):
            store.ensure_root()

    @pytest.mark.asyncio
    async def test_async_variant_creates_directory(self, tmp_path: Path) -> None:
        """ensure_root_async creates the directory from a worker thread."""
        store = CacheStore(tmp_path / "async-cache")

        await store.ensure_root_async()

        assert store.root.is_dir()


class TestPaths:
    """Tests for entry and partial paths."""

    def test_entry_path_is_named_by_fingerprint(self, store: CacheStore) -> None:
        """Completed entry lives directly under the root."""
        assert store.entry_path(FP) == store.root / FP

    def test_partial_is_sibling_with_suffix(self, store: CacheStore) -> None:
        """Each partial file sits next to the entry with a distinct suffix."""
        with store.begin_write(FP) as writer:
            pass

        assert writer.path.parent == store.root
        assert writer.path.name.startswith(f"{FP}.")
        assert writer.path.name.endswith(PARTIAL_SUFFIX)
        assert store.partial_paths(FP) == [writer.path]

    def test_each_writer_gets_its_own_partial(self, store: CacheStore) -> None:
        """Two writers for one fingerprint never share a file."""
        first = store.begin_write(FP)
        second = store.begin_write(FP)

        assert first.path != second.path
        assert store.partial_paths(FP) == sorted([first.path, second.path])
        first.close()
        second.close()


class TestRoundTrip:
    """Tests for write, commit and read back."""

    def test_commit_then_read_returns_same_records(self, store: CacheStore) -> None:
        """Records come back identical and in write order."""
        records = _records(25)

        writer = store.begin_write(FP)
        for record in records:
            writer.append(record)
        store.commit(writer)

        assert writer.closed
        assert list(store.iter_records(FP)) == records

    def test_append_page_flushes_and_counts(self, store: CacheStore) -> None:
        """append_page writes every record and makes them visible on disk."""
        with store.begin_write(FP) as writer:
            writer.append_page(_records(3))

            assert writer.count == 3
            lines = writer.path.read_text(encoding="utf-8").splitlines()
            assert len(lines) == 3

    def test_empty_entry_reads_as_no_records(self, store: CacheStore) -> None:
        """Committing without records yields an empty but valid entry."""
        store.commit(store.begin_write(FP))

        assert store.exists(FP)
        assert list(store.iter_records(FP)) == []

    def test_lines_are_compact_json_with_api_field_names(self, store: CacheStore) -> None:
        """Cache lines use the CloudWatch field names and omit absent fields."""
        writer = store.begin_write(FP)
        writer.append(LogRecord(timestamp=5, message="hi"))
        store.commit(writer)

        assert store.entry_path(FP).read_text(encoding="utf-8") == (
            '{"timestamp":5,"message":"hi"}\n'
        )

    def test_unknown_fields_survive_round_trip(self, store: CacheStore) -> None:
        """Extra API fields, including null ones, are stored and read back."""
        record = LogRecord.model_validate(
            {
                "eventId": "e1",
                "timestamp": 1,
                "message": "m",
                "region": "eu-west-1",
                "extra": None,
            }
        )
        writer = store.begin_write(FP)
        writer.append(record)
        store.commit(writer)

        (restored,) = store.iter_records(FP)
        dumped = restored.model_dump(by_alias=True)
        assert dumped["region"] == "eu-west-1"
        assert "extra" in dumped
        assert dumped["extra"] is None


class TestExists:
    """Tests for exists and open_for_read."""

    def test_false_when_nothing_written(self, store: CacheStore) -> None:
        """No entry means no hit."""
        assert not store.exists(FP)

    def test_partial_entry_is_not_a_hit(self, store: CacheStore) -> None:
        """An uncommitted partial never satisfies exists."""
        with store.begin_write(FP) as writer:
            writer.append_page(_records(2))

        assert writer.path.exists()
        assert not store.exists(FP)

    def test_open_for_read_raises_cache_miss(self, store: CacheStore) -> None:
        """Reading a missing entry raises CacheMissError."""
        with pytest.raises(CacheMissError):
            store.open_for_read(FP)

    def test_open_for_read_ignores_partial(self, store: CacheStore) -> None:
        """A partial entry is not readable as a completed one."""
        with store.begin_write(FP) as writer:
            writer.append_page(_records(1))

        with pytest.raises(CacheMissError):
            store.open_for_read(FP)


class TestBeginWrite:
    """Tests for begin_write."""

    def test_leaves_other_partials_alone(self, store: CacheStore) -> None:
        """Starting a fetch does not touch a partial owned by another run."""
        other = store.root / f"{FP}.crashed{PARTIAL_SUFFIX}"
        other.write_text("stale\n" * 100, encoding="utf-8")

        writer = store.begin_write(FP)
        writer.append(LogRecord(timestamp=1, message="fresh"))
        store.commit(writer)

        assert other.exists()
        assert [r.message for r in store.iter_records(FP)] == ["fresh"]

    def test_wraps_os_errors(self, tmp_path: Path) -> None:
        """Missing cache directory surfaces as CacheIOError."""
        store = CacheStore(tmp_path / "missing")

        with pytest.raises(CacheIOError):
            store.begin_write(FP)


class TestConcurrentWriters:
    """Tests for two fetches of one fingerprint running at once."""

    def test_commit_publishes_only_the_committing_writer(self, store: CacheStore) -> None:
        """A later writer's unfinished records never appear in the entry."""
        first = store.begin_write(FP)
        first.append_page(_records(5))
        second = store.begin_write(FP)
        second.append_page([LogRecord(timestamp=100, message="m100")])

        store.commit(first)
        second.append_page([LogRecord(timestamp=101, message="m101")])

        assert list(store.iter_records(FP)) == _records(5)
        assert second.path.exists()
        second.close()

    def test_second_commit_replaces_first(self, store: CacheStore) -> None:
        """Both writers finish; the last commit wins with complete content."""
        first = store.begin_write(FP)
        second = store.begin_write(FP)
        first.append_page(_records(5))
        second.append_page(_records(2))

        store.commit(first)
        store.commit(second)

        assert list(store.iter_records(FP)) == _records(2)
        assert store.partial_paths(FP) == []

    def test_discard_does_not_remove_other_writer(self, store: CacheStore) -> None:
        """A failed fetch only cleans up its own partial file."""
        failed = store.begin_write(FP)
        running = store.begin_write(FP)
        running.append_page(_records(3))

        store.discard(failed)
        store.commit(running)

        assert not failed.path.exists()
        assert list(store.iter_records(FP)) == _records(3)


class TestCommit:
    """Tests for commit."""

    def test_replaces_existing_entry(self, store: CacheStore) -> None:
        """A new fetch replaces a previously committed entry."""
        writer = store.begin_write(FP)
        writer.append_page(_records(4))
        store.commit(writer)

        writer = store.begin_write(FP)
        writer.append_page(_records(1))
        store.commit(writer)

        assert len(list(store.iter_records(FP))) == 1
        assert store.partial_paths(FP) == []

    def test_uses_atomic_replace(self, store: CacheStore) -> None:
        """Promotion is a single os.replace from partial to entry."""
        writer = store.begin_write(FP)

        with patch("logcache.cache_store.os.replace") as mock_replace:
            store.commit(writer)

        mock_replace.assert_called_once_with(writer.path, store.entry_path(FP))

    def test_without_partial_raises(self, store: CacheStore) -> None:
        """Committing a writer whose file is gone is an IO failure."""
        writer = store.begin_write(FP)
        writer.close()
        writer.path.unlink()

        with pytest.raises(CacheIOError, match="commit"):
            store.commit(writer)


class TestDiscardAndDelete:
    """Tests for discard and delete."""

    def test_discard_removes_partial(self, store: CacheStore) -> None:
        """discard closes the writer and removes its file."""
        writer = store.begin_write(FP)

        store.discard(writer)

        assert writer.closed
        assert not writer.path.exists()

    def test_discard_twice_is_noop(self, store: CacheStore) -> None:
        """discard tolerates an already removed partial."""
        writer = store.begin_write(FP)
        store.discard(writer)

        store.discard(writer)

    def test_discard_keeps_committed_entry(self, store: CacheStore) -> None:
        """discard never touches the completed entry."""
        store.commit(store.begin_write(FP))

        store.discard(store.begin_write(FP))

        assert store.exists(FP)

    def test_delete_removes_entry(self, store: CacheStore) -> None:
        """delete removes a committed entry."""
        store.commit(store.begin_write(FP))

        store.delete(FP)

        assert not store.exists(FP)


class TestPrunePartials:
    """Tests for prune_partials."""

    def test_removes_idle_partials(self, store: CacheStore) -> None:
        """Partials untouched for longer than the limit are removed."""
        stale = store.root / f"{FP}.crashed{PARTIAL_SUFFIX}"
        stale.write_text("x\n", encoding="utf-8")
        old_time = time.time() - 100000
        os.utime(stale, (old_time, old_time))

        removed = store.prune_partials(FP, max_age_seconds=3600)

        assert removed == [stale]
        assert not stale.exists()

    def test_keeps_recent_partials(self, store: CacheStore) -> None:
        """A partial that is still being written stays in place."""
        writer = store.begin_write(FP)
        writer.append_page(_records(1))

        assert store.prune_partials(FP, max_age_seconds=3600) == []
        assert writer.path.exists()
        writer.close()

    def test_non_positive_age_disables_pruning(self, store: CacheStore) -> None:
        """max_age_seconds <= 0 never removes anything."""
        stale = store.root / f"{FP}.crashed{PARTIAL_SUFFIX}"
        stale.write_text("x\n", encoding="utf-8")
        old_time = time.time() - 100000
        os.utime(stale, (old_time, old_time))

        assert store.prune_partials(FP, max_age_seconds=0) == []
        assert stale.exists()

    def test_ignores_other_fingerprints(self, store: CacheStore) -> None:
        """Only partials of the given fingerprint are considered."""
        other = store.root / f"{'0' * 40}.crashed{PARTIAL_SUFFIX}"
        other.write_text("x\n", encoding="utf-8")
        old_time = time.time() - 100000
        os.utime(other, (old_time, old_time))

        assert store.prune_partials(FP, max_age_seconds=1) == []
        assert other.exists()
