from ip_block.audit_log import AuditLog, LogEntry
from ip_block.store import MemoryStore


def entry(ip: str, attempts: int = 5, timestamp: int = 1_700_000_000) -> LogEntry:
    return LogEntry.capture(ip=ip, attempts=attempts, now=timestamp)


def test_record_prepends_newest_first():
    log = AuditLog(MemoryStore())
    log.record(entry("1.1.1.1", timestamp=1))
    log.record(entry("2.2.2.2", timestamp=2))
    assert [e.ip for e in log.list()] == ["2.2.2.2", "1.1.1.1"]


def test_record_caps_at_five_hundred():
    log = AuditLog(MemoryStore())
    for i in range(501):
        log.record(entry(f"10.0.{i // 256}.{i % 256}", timestamp=i))

    entries = log.list()
    assert len(entries) == 500
    assert entries[0].timestamp == 500
    assert entries[-1].timestamp == 1
    assert all(e.timestamp != 0 for e in entries)


def test_remove_by_address_keeps_relative_order():
    log = AuditLog(MemoryStore())
    for ip in ["a", "b", "a", "c", "a"]:
        log.record(entry(ip))
    # listing is newest first: a, c, a, b, a
    assert log.remove_by_address("a") == 3
    assert [e.ip for e in log.list()] == ["c", "b"]
    assert log.remove_by_address("zzz") == 0


def test_remove_by_index_recompacts():
    log = AuditLog(MemoryStore())
    for ip in ["a", "b", "c"]:
        log.record(entry(ip))
    assert log.remove_by_index(1)
    assert [e.ip for e in log.list()] == ["c", "a"]
    assert not log.remove_by_index(5)
    assert not log.remove_by_index(-1)
    assert [e.ip for e in log.list()] == ["c", "a"]


def test_corrupt_storage_reads_empty_and_is_reset_on_write():
    store = MemoryStore()
    log = AuditLog(store, key="ip_block_logs")
    store.set("ip_block_logs", "definitely not a list")
    assert log.list() == []
    log.record(entry("1.2.3.4"))
    assert [e.ip for e in log.list()] == ["1.2.3.4"]


def test_malformed_items_are_skipped_or_defaulted():
    store = MemoryStore()
    store.set("ip_block_logs", [42, {"ip": "9.9.9.9", "attempts": "x"}])
    entries = AuditLog(store).list()
    assert len(entries) == 1
    assert entries[0].ip == "9.9.9.9"
    assert entries[0].attempts == 0
    assert entries[0].email == ""


def test_capture_sanitizes_request_values():
    captured = LogEntry.capture(
        ip="1.2.3.4",
        attempts=5,
        user_agent=" ".join(["word"] * 30),
        email=" Buyer@Example.com ",
        url="/checkout/<script>",
        timezone_name="UTC",
        now=1_704_067_200,
    )
    assert captured.time == "2024-01-01 00:00:00"
    assert captured.timestamp == 1_704_067_200
    assert captured.user_agent.count("word") == 20
    assert captured.email == "Buyer@Example.com"
    assert "<" not in captured.url
    assert set(captured.to_dict()) == {
        "time", "timestamp", "ip", "attempts", "user_agent", "email", "url"
    }
