import threading

from coldstore.core.constants import TABLE_ITEM_CODES, TABLE_STOCK, TABLE_TRANSACTIONS, TABLE_USERS
from coldstore.services import mirror as mirror_module
from coldstore.services.mirror import ChangeEvent, StoreMirror, fingerprint
from coldstore.services.realtime import RealtimeListener, normalize_payload
from coldstore.services.seed_data import INITIAL_ITEM_CODES

from conftest import make_lot


def test_load_seeds_empty_catalog_tables(client, mirror):
    assert mirror.item_codes() == sorted(INITIAL_ITEM_CODES)
    assert [u.username for u in mirror.users()] == ["admin"]
    assert len(client.tables[TABLE_ITEM_CODES]) == len(INITIAL_ITEM_CODES)
    assert mirror.loaded


def test_load_does_not_reseed_existing_tables(store, client):
    client.tables[TABLE_USERS] = [{"username": "bob", "password": "x", "role": "USER"}]
    m = StoreMirror()
    m.load(store)
    assert [u.username for u in m.users()] == ["bob"]
    assert len(client.tables[TABLE_USERS]) == 1


def test_failed_seed_leaves_table_empty(store, client):
    client.fail(TABLE_ITEM_CODES, "insert")
    m = StoreMirror()
    m.load(store)
    assert m.item_codes() == []


def test_insert_is_idempotent_and_delete_of_absent_key_is_noop():
    m = StoreMirror()
    row = make_lot("L1").to_row()
    assert m.apply_remote(ChangeEvent.insert(TABLE_STOCK, row))
    assert not m.apply_remote(ChangeEvent.insert(TABLE_STOCK, row))
    assert len(m.stock()) == 1
    assert m.apply_remote(ChangeEvent.delete(TABLE_STOCK, "L1"))
    assert not m.apply_remote(ChangeEvent.delete(TABLE_STOCK, "L1"))
    assert m.stock() == []


def test_update_for_unknown_key_is_ignored():
    m = StoreMirror()
    assert not m.apply_remote(ChangeEvent.update(TABLE_STOCK, make_lot("L9").to_row()))
    assert m.stock() == []


def test_transactions_are_append_only():
    m = StoreMirror()
    tx_row = {"id": "T1", "type": "IN", "item": make_lot().to_row(), "timestamp": "2024-01-01T00:00:00Z"}
    m.apply_remote(ChangeEvent.insert(TABLE_TRANSACTIONS, tx_row))
    assert not m.apply_remote(ChangeEvent.delete(TABLE_TRANSACTIONS, "T1"))
    assert len(m.transactions()) == 1


def test_echo_of_local_change_is_consumed_once():
    m = StoreMirror(track_echoes=True)
    row = make_lot("L1", pcs=10).to_row()
    m.apply_local(ChangeEvent.insert(TABLE_STOCK, row))
    m.apply_local(ChangeEvent.update(TABLE_STOCK, {**row, "pcs": 4}))

    # late echo of the insert must not roll pcs back to 10
    echo = ChangeEvent.insert(TABLE_STOCK, {**row, "pcs": 10.0})
    assert not m.apply_remote(echo)
    assert m.lot("L1").pcs == 4

    # a second identical remote insert is a genuine change
    assert m.apply_remote(echo)
    assert m.lot("L1").pcs == 10


def test_local_changes_leave_no_fingerprints_without_listener():
    m = StoreMirror()
    for n in range(50):
        m.apply_local(ChangeEvent.insert(TABLE_ITEM_CODES, {"code": f"C{n}"}))
        m.apply_local(ChangeEvent.delete(TABLE_ITEM_CODES, f"C{n}"))
    assert len(m._local_changes) == 0

    m.apply_local(ChangeEvent.insert(TABLE_ITEM_CODES, {"code": "KEEP"}))
    assert m.apply_remote(ChangeEvent.insert(TABLE_ITEM_CODES, {"code": "KEEP"})) is False
    assert m.apply_remote(ChangeEvent.delete(TABLE_ITEM_CODES, "KEEP"))
    assert m.item_codes() == []


def test_unmatched_fingerprints_stay_bounded():
    m = StoreMirror(track_echoes=True)
    for n in range(1000):
        m.apply_local(ChangeEvent.insert(TABLE_ITEM_CODES, {"code": f"C{n}"}))
        m.apply_local(ChangeEvent.delete(TABLE_ITEM_CODES, f"C{n}"))
    # server echo with an extra column never matches
    m.apply_remote(ChangeEvent.insert(TABLE_ITEM_CODES, {"code": "C999", "created_at": "x"}))
    assert len(m._local_changes) <= mirror_module.MAX_PENDING_ECHOES


def test_stale_fingerprint_does_not_swallow_remote_change(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(mirror_module.time, "time", lambda: now[0])
    m = StoreMirror(track_echoes=True)
    m.apply_local(ChangeEvent.insert(TABLE_ITEM_CODES, {"code": "OLD"}))
    m.apply_local(ChangeEvent.delete(TABLE_ITEM_CODES, "OLD"))

    now[0] += mirror_module.ECHO_TTL_SECONDS + 1
    assert m.apply_remote(ChangeEvent.insert(TABLE_ITEM_CODES, {"code": "OLD"}))
    assert m.item_codes() == ["OLD"]
    assert len(m._local_changes) == 0


def test_fingerprint_ignores_numeric_type_and_nulls():
    a = ChangeEvent.insert(TABLE_STOCK, {"id": "L1", "pcs": 5, "holdReason": None})
    b = ChangeEvent.insert(TABLE_STOCK, {"id": "L1", "pcs": 5.0})
    assert fingerprint(a) == fingerprint(b)


def test_drain_applies_inbox_in_order():
    m = StoreMirror()
    row = make_lot("L1", pcs=10).to_row()
    m.enqueue(ChangeEvent.insert(TABLE_STOCK, row))
    m.enqueue(ChangeEvent.update(TABLE_STOCK, {"id": "L1", "pcs": 3}))
    m.enqueue(ChangeEvent.delete(TABLE_STOCK, "L2"))
    assert m.drain() == 2
    assert m.lot("L1").pcs == 3
    assert m.drain() == 0


def test_enqueue_is_thread_safe():
    m = StoreMirror()
    threads = [
        threading.Thread(
            target=lambda n=n: m.enqueue(ChangeEvent.insert(TABLE_STOCK, make_lot(f"L{n}").to_row()))
        )
        for n in range(20)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert m.drain() == 20


def test_reload_replaces_state(store, client):
    m = StoreMirror()
    m.load(store)
    m.apply_remote(ChangeEvent.insert(TABLE_STOCK, make_lot("ghost").to_row()))
    client.tables[TABLE_STOCK] = [make_lot("L1").to_row()]
    m.load(store)
    assert [lot.id for lot in m.stock()] == ["L1"]


# ─── realtime payloads ────────────────────────────────────────────────
def test_normalize_flat_payload():
    event = normalize_payload(
        {"table": "stock", "eventType": "UPDATE", "new": {"id": "L1", "pcs": 3}, "old": {"id": "L1"}}
    )
    assert (event.table, event.event_type, event.key) == ("stock", "UPDATE", "L1")


def test_normalize_nested_payload():
    event = normalize_payload(
        {"data": {"table": "users", "type": "delete", "record": None, "old_record": {"username": "bob"}}}
    )
    assert (event.event_type, event.key, event.new) == ("DELETE", "bob", None)


def test_normalize_drops_unknown_tables():
    assert normalize_payload({"table": "other", "eventType": "INSERT", "new": {}}) is None


def test_listener_callback_queues_on_mirror():
    m = StoreMirror()
    listener = RealtimeListener("url", "key", m)
    listener.on_change(
        {"table": "item_codes", "eventType": "INSERT", "new": {"code": "NEW-CODE"}, "old": {}}
    )
    assert m.item_codes() == []
    m.drain()
    assert m.item_codes() == ["NEW-CODE"]
    assert not listener.running
