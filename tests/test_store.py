"""Tests for store module."""

import asyncio
import sqlite3
import threading
from datetime import datetime, timezone

import pytest

from chessdb.contracts.games import GameRecord, GameStatus, VersionedSnapshot
from chessdb.errors import SourceUnavailable
from chessdb.store.event_log import EventLog
from chessdb.store.index_store import INDEX_VERSION, IndexStore
from chessdb.store.projections.games import GameIndexProjection
from chessdb.store.snapshot_store import MemorySnapshotStore, SqliteSnapshotStore


def append_invite(log, inviter, invitee, color="white"):
    return log.append(inviter, {"type": "chess_invite", "inviting": invitee, "myColor": color})


def append_accept(log, author, game_id):
    return log.append(author, {"type": "chess_invite_accept", "root": game_id})


def append_end(log, author, game_id, status):
    return log.append(author, {"type": "chess_game_end", "root": game_id, "status": status})


class CountingLog:
    """Wraps an EventLog and records every read position."""

    def __init__(self, log: EventLog):
        self.log = log
        self.reads: list[int] = []

    def read_since(self, seq, limit=None):
        self.reads.append(seq)
        return self.log.read_since(seq, limit)

    def last_seq(self):
        return self.log.last_seq()

    async def wait_for_append(self, after_seq):
        return await self.log.wait_for_append(after_seq)


class BrokenLog:
    def read_since(self, seq, limit=None):
        raise sqlite3.OperationalError("unable to open database file")

    def last_seq(self):
        raise sqlite3.OperationalError("unable to open database file")

    async def wait_for_append(self, after_seq):
        raise OSError("log went away")


class BrokenTailLog(CountingLog):
    async def wait_for_append(self, after_seq):
        raise OSError("log went away")


class BrokenSnapshotStore:
    def load(self, name):
        raise OSError("read-only file system")

    def save(self, name, snapshot):
        raise OSError("read-only file system")


class FlakySnapshotStore(MemorySnapshotStore):
    """Fails the first ``failures`` saves."""

    def __init__(self, failures=1):
        super().__init__()
        self.failures = failures

    def save(self, name, snapshot):
        if self.failures:
            self.failures -= 1
            raise OSError("no space left on device")
        super().save(name, snapshot)


def write_raw_entry(log, key, content_json):
    """Insert a row the way a foreign writer would, bypassing encoding."""
    conn = sqlite3.connect(log.db_path)
    try:
        conn.execute(
            "INSERT INTO entries (key, author, ts_wall, content_json) VALUES (?, ?, ?, ?)",
            (key, "@a", datetime.now(timezone.utc).isoformat(), content_json),
        )
        conn.commit()
    finally:
        conn.close()


class GatedLog(CountingLog):
    """Blocks reads until the gate opens."""

    def __init__(self, log):
        super().__init__(log)
        self.gate = threading.Event()

    def read_since(self, seq, limit=None):
        self.gate.wait(timeout=5)
        return super().read_since(seq, limit)


class TestEventLog:
    def test_append_and_read(self, tmp_path):
        log = EventLog(tmp_path / "log.db")

        first = append_invite(log, "@alice", "@bob")
        second = append_accept(log, "@bob", first.key)

        assert first.seq == 1
        assert second.seq == 2
        assert first.key.startswith("%")

        entries = log.read_since(0)
        assert [e.key for e in entries] == [first.key, second.key]
        assert entries[0].content == {"type": "chess_invite", "inviting": "@bob", "myColor": "white"}
        assert entries[1].author == "@bob"

    def test_read_since_position(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        for i in range(5):
            log.append("@a", {"type": "post", "n": i})

        assert [e.seq for e in log.read_since(3)] == [4, 5]
        assert [e.seq for e in log.read_since(0, limit=2)] == [1, 2]
        assert log.read_since(5) == []

    def test_append_batch(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        entries = log.append_batch([
            {"author": "@a", "content": {"type": "post"}},
            {"author": "@b", "content": "plain text", "key": "%fixed"},
        ])

        assert [e.seq for e in entries] == [1, 2]
        assert log.count_entries() == 2
        assert log.get("%fixed").content == "plain text"

    def test_keys_are_unique(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        log.append("@a", {}, key="%dup")
        with pytest.raises(sqlite3.IntegrityError):
            log.append("@a", {}, key="%dup")
        assert log.count_entries() == 1

    def test_last_seq_and_count(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        assert log.last_seq() == 0

        log.append("@a", {})
        log.append("@b", {})
        log.append("@a", {})

        assert log.last_seq() == 3
        assert log.count_entries("@a") == 2

    def test_replay(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        for i in range(3):
            log.append("@a", {"n": i})

        assert [e.content["n"] for e in log.replay()] == [0, 1, 2]

    def test_get_missing(self, tmp_path):
        assert EventLog(tmp_path / "log.db").get("%nope") is None

    @pytest.mark.asyncio
    async def test_wait_for_append_wakes_on_append(self, tmp_path):
        log = EventLog(tmp_path / "log.db")

        waiter = asyncio.create_task(log.wait_for_append(0))
        await asyncio.sleep(0.01)
        assert not waiter.done()

        log.append("@a", {"type": "post"})
        assert await asyncio.wait_for(waiter, timeout=1.0) == 1

    @pytest.mark.asyncio
    async def test_wait_for_append_already_past(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        log.append("@a", {})
        log.append("@a", {})

        assert await asyncio.wait_for(log.wait_for_append(1), timeout=1.0) == 2

    @pytest.mark.asyncio
    async def test_wait_for_append_polls_for_other_writers(self, tmp_path):
        log = EventLog(tmp_path / "log.db", poll_interval=0.05)
        waiting = asyncio.create_task(log.wait_for_append(0))
        await asyncio.sleep(0.01)

        write_raw_entry(log, "%other", "{}")
        assert await asyncio.wait_for(waiting, timeout=2.0) == 1


class TestSnapshotStores:
    def test_memory_store(self):
        store = MemorySnapshotStore()
        assert store.load("view") is None

        snapshot = VersionedSnapshot.of(2, 3, {"g1": GameRecord(game_id="g1")})
        store.save("view", snapshot)
        assert store.load("view") is snapshot

        store.clear()
        assert store.load("view") is None

    def test_sqlite_store_roundtrip(self, tmp_path):
        store = SqliteSnapshotStore(tmp_path / "views.db")
        record = GameRecord(
            game_id="g1",
            inviter_id="@a",
            invitee_id="@b",
            status=GameStatus.ENDED,
            terminal_status="mate",
            winner_id="@a",
            last_updated=1234.5,
        )
        store.save("view", VersionedSnapshot.of(2, 7, {"g1": record}))

        loaded = SqliteSnapshotStore(tmp_path / "views.db").load("view")
        assert loaded.schema_version == 2
        assert loaded.seq == 7
        assert loaded.index["g1"] == record

    def test_sqlite_store_overwrites(self, tmp_path):
        store = SqliteSnapshotStore(tmp_path / "views.db")
        store.save("view", VersionedSnapshot.of(1, 1, {}))
        store.save("view", VersionedSnapshot.of(2, 5, {"g1": GameRecord(game_id="g1")}))

        loaded = store.load("view")
        assert loaded.schema_version == 2
        assert len(loaded) == 1

    def test_sqlite_store_delete(self, tmp_path):
        store = SqliteSnapshotStore(tmp_path / "views.db")
        store.save("view", VersionedSnapshot.of(1, 1, {}))
        store.delete("view")
        assert store.load("view") is None


class TestGameIndexProjection:
    def test_apply_classifies_and_reduces(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        invite = append_invite(log, "@a", "@b")
        log.append("@a", {"type": "post", "text": "gg"})

        proj = GameIndexProjection(clock=lambda: 10.0)
        events = [proj.apply(entry) for entry in log.read_since(0)]

        assert events[0] is not None
        assert events[1] is None
        assert proj.seq == 2
        assert proj.index[invite.key].last_updated == 10.0

    def test_rebuild_from(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        invite = append_invite(log, "@a", "@b")
        append_accept(log, "@b", invite.key)

        proj = GameIndexProjection()
        proj.index["stale"] = GameRecord(game_id="stale")
        proj.rebuild_from(log.replay())

        assert list(proj.index) == [invite.key]
        assert proj.index[invite.key].status == GameStatus.STARTED

    def test_apply_all_counts_game_events(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        append_invite(log, "@a", "@b")
        log.append("@a", {"type": "post"})
        append_end(log, "@a", "%unknown", "draw")

        proj = GameIndexProjection()
        assert proj.apply_all(log.read_since(0)) == 2
        assert proj.seq == 3


class TestIndexStore:
    @pytest.mark.asyncio
    async def test_empty_log(self, tmp_path):
        store = IndexStore(EventLog(tmp_path / "log.db"))
        snapshot = await store.get_snapshot()

        assert snapshot.schema_version == INDEX_VERSION
        assert snapshot.seq == 0
        assert len(snapshot) == 0

    @pytest.mark.asyncio
    async def test_incremental_updates(self, tmp_path):
        log = CountingLog(EventLog(tmp_path / "log.db"))
        store = IndexStore(log)

        invite = append_invite(log.log, "@a", "@b")
        first = await store.get_snapshot()
        assert first.index[invite.key].status == GameStatus.INVITED

        append_accept(log.log, "@b", invite.key)
        second = await store.get_snapshot()

        assert second.seq == 2
        assert second.index[invite.key].status == GameStatus.STARTED
        # only the new entry was read on the second refresh
        assert log.reads == [0, 1, 1, 2]

    @pytest.mark.asyncio
    async def test_snapshots_are_frozen(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        store = IndexStore(log)

        invite = append_invite(log, "@a", "@b")
        before = await store.get_snapshot()
        append_accept(log, "@b", invite.key)
        append_invite(log, "@c", "@d")
        await store.get_snapshot()

        assert len(before) == 1
        assert before.index[invite.key].status == GameStatus.INVITED

    @pytest.mark.asyncio
    async def test_unchanged_log_returns_same_snapshot(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        store = IndexStore(log)
        append_invite(log, "@a", "@b")

        assert await store.get_snapshot() is await store.get_snapshot()

    @pytest.mark.asyncio
    async def test_non_game_entries_advance_position(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        store = IndexStore(log)
        log.append("@a", {"type": "post"})
        log.append("@a", "encrypted")

        snapshot = await store.get_snapshot()
        assert snapshot.seq == 2
        assert len(snapshot) == 0

    @pytest.mark.asyncio
    async def test_resumes_from_saved_snapshot(self, tmp_path):
        event_log = EventLog(tmp_path / "log.db")
        snapshots = SqliteSnapshotStore(tmp_path / "views.db")
        invite = append_invite(event_log, "@a", "@b")
        append_accept(event_log, "@b", invite.key)

        await IndexStore(event_log, snapshots).get_snapshot()

        append_end(event_log, "@a", invite.key, "resigned")
        log = CountingLog(event_log)
        snapshot = await IndexStore(log, snapshots).get_snapshot()

        assert log.reads[0] == 2
        assert snapshot.index[invite.key].status == GameStatus.ENDED
        assert snapshot.index[invite.key].winner_id == "@b"

    @pytest.mark.asyncio
    async def test_version_bump_rebuilds(self, tmp_path):
        event_log = EventLog(tmp_path / "log.db")
        snapshots = SqliteSnapshotStore(tmp_path / "views.db")
        append_invite(event_log, "@a", "@b")
        await IndexStore(event_log, snapshots, version=INDEX_VERSION).get_snapshot()

        log = CountingLog(event_log)
        snapshot = await IndexStore(log, snapshots, version=INDEX_VERSION + 1).get_snapshot()

        assert log.reads[0] == 0
        assert snapshot.schema_version == INDEX_VERSION + 1
        assert len(snapshot) == 1
        assert snapshots.load("ssb-chess-index").schema_version == INDEX_VERSION + 1

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_refresh(self, tmp_path):
        log = CountingLog(EventLog(tmp_path / "log.db"))
        store = IndexStore(log)
        for i in range(3):
            append_invite(log.log, f"@p{i}", "@q")

        results = await asyncio.gather(*(store.get_snapshot() for _ in range(5)))

        assert all(r is results[0] for r in results)
        assert len(results[0]) == 3
        assert log.reads == [0, 3]

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_refresh(self, tmp_path):
        log = GatedLog(EventLog(tmp_path / "log.db"))
        store = IndexStore(log)
        append_invite(log.log, "@a", "@b")

        cancelled = asyncio.create_task(store.get_snapshot())
        waiting = asyncio.create_task(store.get_snapshot())
        await asyncio.sleep(0.05)

        cancelled.cancel()
        log.gate.set()

        with pytest.raises(asyncio.CancelledError):
            await cancelled
        snapshot = await asyncio.wait_for(waiting, timeout=5)
        assert len(snapshot) == 1

    @pytest.mark.asyncio
    async def test_unreadable_log(self):
        store = IndexStore(BrokenLog())
        with pytest.raises(SourceUnavailable) as exc_info:
            await store.get_snapshot()

        assert exc_info.value.source == "event log"
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)

    @pytest.mark.asyncio
    async def test_unreadable_snapshot_store(self, tmp_path):
        store = IndexStore(EventLog(tmp_path / "log.db"), BrokenSnapshotStore())
        with pytest.raises(SourceUnavailable) as exc_info:
            await store.get_snapshot()

        assert exc_info.value.source == "snapshot store"

    @pytest.mark.asyncio
    async def test_each_call_surfaces_the_failure(self, tmp_path):
        log = CountingLog(EventLog(tmp_path / "log.db"))
        store = IndexStore(log, BrokenSnapshotStore())

        for _ in range(2):
            with pytest.raises(SourceUnavailable):
                await store.get_snapshot()
        assert log.reads == []


    @pytest.mark.asyncio
    @pytest.mark.parametrize("index_json", ["{not json", '{"%g1": {"status": "bogus"}}'])
    async def test_undecodable_snapshot(self, tmp_path, index_json):
        log = EventLog(tmp_path / "log.db")
        snapshots = SqliteSnapshotStore(tmp_path / "views.db")
        append_invite(log, "@a", "@b")
        await IndexStore(log, snapshots).get_snapshot()

        conn = sqlite3.connect(tmp_path / "views.db")
        conn.execute("UPDATE view_snapshots SET index_json = ?", (index_json,))
        conn.commit()
        conn.close()

        with pytest.raises(SourceUnavailable) as exc_info:
            await IndexStore(log, snapshots).get_snapshot()
        assert exc_info.value.source == "snapshot store"

    @pytest.mark.asyncio
    async def test_undecodable_log_entry(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        write_raw_entry(log, "%bad", "{not json")

        with pytest.raises(SourceUnavailable) as exc_info:
            await IndexStore(log).get_snapshot()
        assert exc_info.value.source == "event log"

    @pytest.mark.asyncio
    async def test_failed_save_is_retried(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        snapshots = FlakySnapshotStore()
        store = IndexStore(log, snapshots)
        queue = store.subscribe()
        invite = append_invite(log, "@a", "@b")

        with pytest.raises(SourceUnavailable):
            await store.get_snapshot()
        assert queue.empty()

        snapshot = await store.get_snapshot()
        assert invite.key in snapshot.index
        assert snapshots.load(store.name).seq == invite.seq
        assert queue.get_nowait() is snapshot


    @pytest.mark.asyncio
    async def test_follow_publishes_updates(self, tmp_path):
        log = EventLog(tmp_path / "log.db")
        store = IndexStore(log)
        queue = store.subscribe()

        await store.start()
        try:
            await asyncio.sleep(0.01)
            invite = append_invite(log, "@a", "@b")
            snapshot = await asyncio.wait_for(queue.get(), timeout=2.0)

            assert snapshot.seq == invite.seq
            assert invite.key in snapshot.index
            assert store.following
        finally:
            await store.stop()

        assert not store.following

    @pytest.mark.asyncio
    async def test_follow_failure_reaches_subscribers(self, tmp_path):
        store = IndexStore(BrokenTailLog(EventLog(tmp_path / "log.db")))
        updates = store.updates()

        next_update = asyncio.create_task(updates.__anext__())
        await asyncio.sleep(0)
        await store.start()

        with pytest.raises(SourceUnavailable):
            await asyncio.wait_for(next_update, timeout=2.0)
        await store.stop()

    @pytest.mark.asyncio
    async def test_undecodable_entry_while_following_reaches_subscribers(self, tmp_path):
        log = EventLog(tmp_path / "log.db", poll_interval=0.05)
        store = IndexStore(log)
        updates = store.updates()

        next_update = asyncio.create_task(updates.__anext__())
        await asyncio.sleep(0)
        await store.start()
        await asyncio.sleep(0.01)
        write_raw_entry(log, "%bad", "{not json")

        with pytest.raises(SourceUnavailable):
            await asyncio.wait_for(next_update, timeout=2.0)
        assert not store.following
        await store.stop()
