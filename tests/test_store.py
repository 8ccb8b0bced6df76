from ip_block.store import MemoryStore, RedisStore, build_store

from fakes import FakeClock, FakeRedis


def test_memory_store_expires():
    clock = FakeClock()
    store = MemoryStore(clock=clock)
    store.set("foo", "bar", ttl=1)
    assert store.get("foo") == "bar"
    clock.advance(1.1)
    assert store.get("foo") is None


def test_memory_store_without_ttl_keeps_value():
    clock = FakeClock()
    store = MemoryStore(clock=clock)
    store.set("logs", [1, 2])
    clock.advance(10**9)
    assert store.get("logs") == [1, 2]
    store.delete("logs")
    assert store.get("logs") is None


def test_memory_store_add_only_when_absent():
    clock = FakeClock()
    store = MemoryStore(clock=clock)
    assert store.add("nonce", 1, ttl=5)
    assert not store.add("nonce", 1, ttl=5)
    clock.advance(6)
    assert store.add("nonce", 1, ttl=5)


def test_memory_store_incr_refreshes_expiry_and_recovers_from_garbage():
    clock = FakeClock()
    store = MemoryStore(clock=clock)
    assert store.incr("count", ttl=10) == 1
    clock.advance(8)
    assert store.incr("count", ttl=10) == 2
    clock.advance(8)
    assert store.get("count") == 2

    store.set("count", "garbage")
    assert store.incr("count", ttl=10) == 1


def test_redis_store_roundtrips_json_values():
    client = FakeRedis()
    store = RedisStore(client)
    store.set("logs", [{"ip": "1.2.3.4"}])
    assert store.get("logs") == [{"ip": "1.2.3.4"}]
    assert client.ttls["logs"] is None

    client.data["broken"] = b"{not json"
    assert store.get("broken") is None


def test_redis_store_incr_sets_expiry_and_reads_back():
    client = FakeRedis()
    store = RedisStore(client)
    assert store.incr("count", ttl=3600) == 1
    assert store.incr("count", ttl=3600) == 2
    assert store.get("count") == 2
    assert client.ttls["count"] == 3600


def test_redis_store_incr_resets_corrupt_counter():
    client = FakeRedis()
    store = RedisStore(client)
    client.data["count"] = b"\"abc\""
    assert store.incr("count", ttl=60) == 1
    assert store.get("count") == 1


def test_redis_store_add_and_delete():
    client = FakeRedis()
    store = RedisStore(client)
    assert store.add("nonce", 1, ttl=30)
    assert not store.add("nonce", 1, ttl=30)
    store.delete("nonce")
    assert store.get("nonce") is None


def test_build_store_defaults_to_memory():
    assert isinstance(build_store(None), MemoryStore)


def test_memory_store_sweeps_expired_keys_on_write():
    clock = FakeClock()
    store = MemoryStore(clock=clock, sweep_interval=60)
    for i in range(2000):
        store.incr(f"ip_block_count_{i}", ttl=3600)
    store.set("ip_block_logs", [])
    assert len(store) == 2001

    clock.advance(36000)
    store.incr("ip_block_count_new", ttl=3600)
    assert len(store) == 2
    assert store.get("ip_block_logs") == []


def test_memory_store_sweep_waits_for_interval():
    clock = FakeClock()
    store = MemoryStore(clock=clock, sweep_interval=60)
    store.set("short", 1, ttl=1)
    clock.advance(2)
    store.set("other", 1)
    assert len(store) == 2
    clock.advance(60)
    store.set("other", 2)
    assert len(store) == 1


def test_stored_bools_are_not_counts():
    store = MemoryStore()
    store.set("count", True)
    assert store.incr("count", ttl=10) == 1
