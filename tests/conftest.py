"""Shared fixtures: adapters on throwaway SQLite files and an asset factory."""

from typing import Any

import pytest

from asset_tracker.blob_store import ImageBlobStore
from asset_tracker.kv_store import KeyValueStore
from asset_tracker.models import Asset
from asset_tracker.store import InventoryStore


def build_asset(**overrides: Any) -> Asset:
    fields = {
        "computer_no": "JTAPNB-000001",
        "serial_no": "PF00001",
        "brand": "Dell",
        "model": "Latitude 5440",
        "status": "In Stock",
    }
    fields.update(overrides)
    return Asset(**fields)


@pytest.fixture
def make_asset():
    return build_asset


@pytest.fixture
def kv_store(tmp_path):
    store = KeyValueStore.from_url(f"sqlite:///{tmp_path / 'metadata.db'}", quota_bytes=0)
    yield store
    store.close()


@pytest.fixture
async def blob_store(tmp_path):
    store = ImageBlobStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'images.db'}")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
async def store(kv_store, blob_store):
    inventory = InventoryStore(kv_store, blob_store)
    await inventory.load()
    return inventory
