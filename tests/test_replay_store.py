"""
Tests for the TTL-keyed replay stores.
"""
import multiprocessing
import threading

import pytest

from basis_node.lib.replay_store import (
    PENDING,
    PENDING_TTL,
    REPLAY_TTL,
    USED,
    LockState,
    MemoryReplayStore,
    ReplayStore,
    ShelveReplayStore,
)
from conftest import FakeClock, TX_HASH


class DictStore(ReplayStore):
    """Store with no atomic primitive and no expiry."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def put(self, key, value, ttl_seconds):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


@pytest.fixture(params=["memory", "shelve"])
def store(request, tmp_path, clock):
    if request.param == "memory":
        s = MemoryReplayStore(clock=clock)
    else:
        s = ShelveReplayStore(str(tmp_path / "replay.db"), clock=clock)
    return s


class TestStoreContract:
    def test_absent_by_default(self, store):
        assert store.get(TX_HASH) is None
        assert store.state(TX_HASH) == LockState.ABSENT

    def test_put_get_delete(self, store):
        store.put(TX_HASH, PENDING, PENDING_TTL)
        assert store.get(TX_HASH) == PENDING
        assert store.state(TX_HASH) == LockState.PENDING

        store.delete(TX_HASH)
        assert store.state(TX_HASH) == LockState.ABSENT

    def test_delete_missing_key_is_noop(self, store):
        store.delete(TX_HASH)
        assert store.get(TX_HASH) is None

    def test_pending_expires_after_five_minutes(self, store, clock):
        store.put(TX_HASH, PENDING, PENDING_TTL)

        clock.advance(PENDING_TTL - 1)
        assert store.state(TX_HASH) == LockState.PENDING

        clock.advance(1)
        assert store.get(TX_HASH) is None, "abandoned pending lock must auto-expire"

    def test_used_persists_for_24_hours(self, store, clock):
        store.put(TX_HASH, USED, REPLAY_TTL)

        clock.advance(REPLAY_TTL - 1)
        assert store.state(TX_HASH) == LockState.USED

        clock.advance(1)
        assert store.state(TX_HASH) == LockState.ABSENT

    def test_overwrite_resets_ttl(self, store, clock):
        store.put(TX_HASH, PENDING, PENDING_TTL)
        clock.advance(PENDING_TTL - 10)
        store.put(TX_HASH, USED, REPLAY_TTL)

        clock.advance(PENDING_TTL)
        assert store.state(TX_HASH) == LockState.USED

    def test_put_if_absent(self, store, clock):
        assert store.atomic
        assert store.put_if_absent(TX_HASH, PENDING, PENDING_TTL)
        assert not store.put_if_absent(TX_HASH, PENDING, PENDING_TTL)

        clock.advance(PENDING_TTL)
        assert store.put_if_absent(TX_HASH, PENDING, PENDING_TTL), "expired record no longer blocks"

    def test_put_if_absent_leaves_existing_record(self, store):
        store.put(TX_HASH, USED, REPLAY_TTL)
        assert not store.put_if_absent(TX_HASH, PENDING, PENDING_TTL)
        assert store.get(TX_HASH) == USED

    def test_non_positive_ttl_rejected(self, store):
        with pytest.raises(ValueError):
            store.put(TX_HASH, PENDING, 0)


class TestMemoryStore:
    def test_len_counts_live_records(self):
        clock = FakeClock()
        store = MemoryReplayStore(clock=clock)
        store.put("a", PENDING, 10)
        store.put("b", USED, 100)
        assert len(store) == 2

        clock.advance(10)
        assert len(store) == 1


class TestShelveStore:
    def test_survives_reopen(self, tmp_path):
        path = str(tmp_path / "replay.db")
        clock = FakeClock()
        ShelveReplayStore(path, clock=clock).put(TX_HASH, USED, REPLAY_TTL)

        assert ShelveReplayStore(path, clock=clock).get(TX_HASH) == USED

    def test_purge_expired(self, tmp_path):
        clock = FakeClock()
        store = ShelveReplayStore(str(tmp_path / "replay.db"), clock=clock)
        store.put("a", PENDING, PENDING_TTL)
        store.put("b", USED, REPLAY_TTL)

        clock.advance(PENDING_TTL)
        assert store.purge_expired() == 1
        assert store.get("b") == USED


class TestFallbackPutIfAbsent:
    def test_non_atomic_store_falls_back_to_get_then_put(self):
        store = DictStore()
        assert not store.atomic
        assert store.put_if_absent(TX_HASH, PENDING, PENDING_TTL)
        assert not store.put_if_absent(TX_HASH, PENDING, PENDING_TTL)
        assert store.data[TX_HASH] == PENDING


class TestConcurrentAcquire:
    """put_if_absent must hand each key to exactly one caller."""

    def test_threads_race_for_same_keys(self, store):
        keys = [f"0x{i:064x}" for i in range(200)]
        barrier = threading.Barrier(8)
        wins = []

        def contend():
            barrier.wait()
            for key in keys:
                if store.put_if_absent(key, PENDING, PENDING_TTL):
                    wins.append(key)

        threads = [threading.Thread(target=contend) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(wins) == len(keys), "each key acquired exactly once"
        assert set(wins) == set(keys)


def _acquire_worker(path, keys, barrier, out_path):
    store = ShelveReplayStore(path)
    barrier.wait()
    won = [key for key in keys if store.put_if_absent(key, PENDING, PENDING_TTL)]
    with open(out_path, "w") as f:
        f.write("\n".join(won))


def _record_worker(path, worker, count, barrier):
    store = ShelveReplayStore(path)
    barrier.wait()
    for i in range(count):
        store.put(f"{worker}-{i}", USED, REPLAY_TTL)


class TestShelveAcrossProcesses:
    WORKERS = 4

    def _run(self, target, args_for):
        ctx = multiprocessing.get_context("fork")
        barrier = ctx.Barrier(self.WORKERS)
        procs = [ctx.Process(target=target, args=args_for(n, barrier)) for n in range(self.WORKERS)]
        for p in procs:
            p.start()
        for p in procs:
            p.join(timeout=120)
        assert all(p.exitcode == 0 for p in procs), "worker process failed"

    def test_each_key_acquired_by_one_process(self, tmp_path):
        path = str(tmp_path / "replay.db")
        keys = [f"0x{i:064x}" for i in range(100)]

        self._run(
            _acquire_worker,
            lambda n, barrier: (path, keys, barrier, str(tmp_path / f"won-{n}.txt")),
        )

        won = []
        for n in range(self.WORKERS):
            text = (tmp_path / f"won-{n}.txt").read_text()
            won.extend(line for line in text.splitlines() if line)
        assert len(won) == len(keys), "no key may be acquired by two workers"
        assert set(won) == set(keys)

    def test_used_records_from_every_process_survive(self, tmp_path):
        path = str(tmp_path / "replay.db")
        count = 100

        self._run(_record_worker, lambda n, barrier: (path, n, count, barrier))

        store = ShelveReplayStore(path)
        lost = [
            f"{n}-{i}"
            for n in range(self.WORKERS)
            for i in range(count)
            if store.get(f"{n}-{i}") != USED
        ]
        assert lost == [], f"{len(lost)} used records lost"
