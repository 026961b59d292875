"""Hold stores: atomic claim, expiry, tombstones and failure mapping."""

import threading
from datetime import timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from washbook.errors import UnavailableError
from washbook.services.slots.config import BookingConfig
from washbook.services.slots.domain import Hold, HoldKey
from washbook.services.slots.hold_store import InMemoryHoldStore, RedisHoldStore

from conftest import MONDAY, NOW

KEY = HoldKey(MONDAY, 600)


def make_hold(clock, hold_id="h1", holder_id="A", ttl=300, time_slot=600):
    return Hold(
        hold_id=hold_id,
        date=MONDAY,
        time_slot=time_slot,
        service_id=1,
        holder_id=holder_id,
        expires_at=clock() + timedelta(seconds=ttl),
    )


class TestInMemoryHoldStore:
    def test_put_then_get(self, holds, clock):
        hold = make_hold(clock)
        assert holds.put(KEY, hold, 300)
        assert holds.get(KEY) == hold
        assert holds.get_by_token("h1") == hold

    def test_other_holder_is_refused(self, holds, clock):
        assert holds.put(KEY, make_hold(clock), 300)
        assert not holds.put(KEY, make_hold(clock, "h2", "B"), 300)
        assert holds.get(KEY).holder_id == "A"

    def test_same_holder_refreshes(self, holds, clock):
        holds.put(KEY, make_hold(clock), 300)
        clock.advance(minutes=4)
        refreshed = make_hold(clock)
        assert holds.put(KEY, refreshed, 300)
        clock.advance(minutes=4)
        assert holds.get(KEY) == refreshed

    def test_expiry_frees_key_and_reports(self, holds, clock, expired_holds):
        hold = make_hold(clock)
        holds.put(KEY, hold, 300)

        clock.advance(seconds=300)

        assert holds.get(KEY) is None
        assert expired_holds == [hold]
        assert holds.put(KEY, make_hold(clock, "h2", "B"), 300)

    def test_expired_token_is_tombstoned(self, holds, clock):
        hold = make_hold(clock)
        holds.put(KEY, hold, 300)

        clock.advance(seconds=301)
        assert holds.get_by_token("h1") == hold

        clock.advance(hours=2)
        assert holds.get_by_token("h1") is None

    def test_remove_compares_hold_id(self, holds, clock):
        holds.put(KEY, make_hold(clock), 300)
        assert not holds.remove(KEY, "someone-else")
        assert holds.get(KEY) is not None

        assert holds.remove(KEY, "h1")
        assert holds.get(KEY) is None
        assert holds.get_by_token("h1") is None

    def test_get_many_returns_live_holds(self, holds, clock):
        holds.put(HoldKey(MONDAY, 480), make_hold(clock, "a", time_slot=480), 300)
        holds.put(HoldKey(MONDAY, 540), make_hold(clock, "b", ttl=10, time_slot=540), 10)
        clock.advance(seconds=20)

        result = holds.get_many(MONDAY, [480, 510, 540])

        assert list(result) == [480]

    def test_concurrent_claims_single_winner(self, clock):
        store = InMemoryHoldStore(clock=clock)
        results = []
        barrier = threading.Barrier(20)

        def claim(i):
            barrier.wait()
            results.append(store.put(KEY, make_hold(clock, f"h{i}", f"holder-{i}"), 300))

        threads = [threading.Thread(target=claim, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1


class RecordingRedis:
    """Minimal stand-in for redis.Redis recording script calls."""

    def __init__(self, script_result=1, fail=False):
        self.calls = []
        self.script_result = script_result
        self.fail = fail
        self.values = {}

    def register_script(self, source):
        def run(keys, args):
            if self.fail:
                raise RedisConnectionError("connection refused")
            self.calls.append((keys, args))
            return self.script_result
        return run

    def get(self, key):
        if self.fail:
            raise RedisConnectionError("connection refused")
        return self.values.get(key)

    def mget(self, keys):
        if self.fail:
            raise RedisConnectionError("connection refused")
        return [self.values.get(k) for k in keys]


class TestRedisHoldStore:
    def test_put_sets_slot_and_token_keys_with_ttls(self, clock):
        redis = RecordingRedis()
        store = RedisHoldStore(redis, BookingConfig(hold_tombstone_seconds=600), clock)

        assert store.put(KEY, make_hold(clock), 300)

        [(keys, args)] = redis.calls
        assert keys == ["hold:slot:2026-11-02:10:00", "hold:token:h1"]
        assert args[1:] == ["A", 300_000, 900_000]

    def test_put_refused(self, clock):
        store = RedisHoldStore(RecordingRedis(script_result=0), BookingConfig(), clock)
        assert not store.put(KEY, make_hold(clock), 300)

    def test_reads_skip_expired_records(self, clock):
        redis = RecordingRedis()
        live = make_hold(clock)
        stale = make_hold(clock, "h2", time_slot=630, ttl=-1)
        redis.values["hold:slot:2026-11-02:10:00"] = live.to_json()
        redis.values["hold:slot:2026-11-02:10:30"] = stale.to_json()
        redis.values["hold:token:h2"] = stale.to_json()
        store = RedisHoldStore(redis, BookingConfig(), clock)

        assert store.get(KEY) == live
        assert store.get_many(MONDAY, [600, 630, 660]) == {600: live}
        assert store.get_by_token("h2") == stale

    def test_connection_errors_become_unavailable(self, clock):
        store = RedisHoldStore(RecordingRedis(fail=True), BookingConfig(), clock)

        with pytest.raises(UnavailableError):
            store.put(KEY, make_hold(clock), 300)
        with pytest.raises(UnavailableError):
            store.get_many(MONDAY, [600])
        with pytest.raises(UnavailableError):
            store.remove(KEY, "h1")


def test_hold_json_round_trip():
    hold = Hold("h1", MONDAY, 600, 1, "A", NOW)
    assert Hold.from_json(hold.to_json()) == hold
