"""
LocalStore ordering, targeted deletes and clear semantics.
"""

import sqlite3

import pytest

from netlogger.common.exceptions import StoreError
from netlogger.services.storage.local_db import LocalStore

from .helpers import make_record


def fill(store, count, start=0):
    return [store.append(make_record(start + i)) for i in range(count)]


def test_append_assigns_increasing_ids(store):
    ids = fill(store, 3)
    assert ids == sorted(ids)
    assert len(set(ids)) == 3
    assert store.count() == 3


def test_record_round_trip(store):
    record = make_record(7, latitude="52.520008", longitude="13.404954")
    record_id = store.append(record)

    [stored] = store.recent(1)
    assert stored.id == record_id
    assert stored.to_document() == record.to_document()


def test_recent_is_newest_first(store):
    ids = fill(store, 5)
    assert [r.id for r in store.recent(3)] == ids[::-1][:3]
    assert store.recent(0) == []


def test_all_is_newest_first(store):
    ids = fill(store, 4)
    assert [r.id for r in store.all()] == ids[::-1]


def test_oldest_is_fifo(store):
    ids = fill(store, 5)
    assert [r.id for r in store.oldest(2)] == ids[:2]
    assert [r.id for r in store.oldest(10)] == ids
    assert store.oldest(0) == []


def test_delete_by_ids_touches_only_given_ids(store):
    ids = fill(store, 5)
    deleted = store.delete_by_ids([ids[0], ids[2], 999999])

    assert deleted == 2
    assert [r.id for r in store.oldest(10)] == [ids[1], ids[3], ids[4]]
    assert store.delete_by_ids([]) == 0


def test_delete_by_ids_chunks_large_id_lists(store):
    store.SQLITE_MAX_PARAMS = 2
    ids = fill(store, 7)

    assert store.delete_by_ids(ids[:5]) == 5
    assert [r.id for r in store.oldest(10)] == ids[5:]


def test_clear_all_keeps_id_sequence(store):
    ids = fill(store, 3)
    assert store.clear_all() == 3
    assert store.count() == 0

    new_id = store.append(make_record(99))
    assert new_id > max(ids)
    assert store.count() == 1


def test_append_failure_raises_store_error(store):
    conn = sqlite3.connect(str(store.db_path))
    conn.execute("DROP TABLE network_logs")
    conn.commit()
    conn.close()

    with pytest.raises(StoreError) as exc_info:
        store.append(make_record(1))
    assert exc_info.value.operation == "append"


def test_count_and_stats_failures_raise_store_error(store):
    conn = sqlite3.connect(str(store.db_path))
    conn.execute("DROP TABLE network_logs")
    conn.commit()
    conn.close()

    with pytest.raises(StoreError) as exc_info:
        store.count()
    assert exc_info.value.operation == "count"

    with pytest.raises(StoreError) as exc_info:
        store.get_stats()
    assert exc_info.value.operation == "stats"


def test_store_survives_reopen(tmp_path):
    path = tmp_path / "nested" / "netlogger.db"
    first = LocalStore(path)
    fill(first, 2)

    second = LocalStore(path)
    assert second.count() == 2


def test_get_stats(store):
    ids = fill(store, 3)
    stats = store.get_stats()
    assert stats["total_records"] == 3
    assert stats["oldest_id"] == ids[0]
    assert stats["newest_id"] == ids[-1]
    assert stats["db_size_bytes"] > 0
