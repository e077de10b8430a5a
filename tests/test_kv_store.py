import pytest
from sqlmodel import Session

from asset_tracker.errors import StorageQuotaExceededError, StorageWriteError
from asset_tracker.kv_store import KeyValueEntry, KeyValueStore


def test_load_missing_key_returns_none(kv_store):
    assert kv_store.load("inventory_assets") is None


def test_save_then_load(kv_store):
    kv_store.save("inventory_logs", [{"id": "1", "action": "Add"}])
    assert kv_store.load("inventory_logs") == [{"id": "1", "action": "Add"}]

    kv_store.save("inventory_logs", [])
    assert kv_store.load("inventory_logs") == []
    assert kv_store.keys() == ["inventory_logs"]


def test_corrupt_json_loads_as_none(kv_store):
    with Session(kv_store.engine) as session:
        session.add(KeyValueEntry(key="inventory_assets", value="{not json"))
        session.commit()

    assert kv_store.load("inventory_assets") is None
    assert kv_store.load_raw("inventory_assets") == "{not json"


def test_unserializable_value_raises(kv_store):
    with pytest.raises(StorageWriteError):
        kv_store.save("inventory_assets", {"when": object()})
    assert kv_store.load("inventory_assets") is None


def test_quota_exceeded_keeps_previous_value(tmp_path):
    kv = KeyValueStore.from_url(f"sqlite:///{tmp_path / 'quota.db'}", quota_bytes=120)
    try:
        kv.save("inventory_assets", ["small"])
        with pytest.raises(StorageQuotaExceededError) as excinfo:
            kv.save("inventory_assets", ["x" * 500])

        assert excinfo.value.quota == 120
        assert isinstance(excinfo.value, StorageWriteError)
        assert kv.load("inventory_assets") == ["small"]
    finally:
        kv.close()


def test_quota_counts_replaced_value_once(tmp_path):
    kv = KeyValueStore.from_url(f"sqlite:///{tmp_path / 'quota.db'}", quota_bytes=100)
    try:
        # Each save replaces the previous value, so usage must not accumulate
        for _ in range(10):
            kv.save("k", "y" * 60)
        assert kv.usage() == len("k") + len('"' + "y" * 60 + '"')
    finally:
        kv.close()


def test_remove(kv_store):
    kv_store.save("inventory_audit_logs", [1, 2])
    kv_store.remove("inventory_audit_logs")
    kv_store.remove("inventory_audit_logs")
    assert kv_store.load("inventory_audit_logs") is None
    assert kv_store.usage() == 0
