async def test_missing_asset_has_no_images(blob_store):
    assert await blob_store.get_images("nope") == []


async def test_images_round_trip_in_order(blob_store):
    images = ["data:image/png;base64,AAA", b"\x89PNG\r\n\x1a\n", "data:image/jpeg;base64,BBB"]
    await blob_store.save_images("asset-1", images)

    assert await blob_store.get_images("asset-1") == images
    assert await blob_store.asset_ids() == ["asset-1"]


async def test_save_replaces_whole_list(blob_store):
    await blob_store.save_images("asset-1", ["a", "b", "c"])
    await blob_store.save_images("asset-1", ["z"])

    assert await blob_store.get_images("asset-1") == ["z"]


async def test_delete_images_only_touches_one_asset(blob_store):
    await blob_store.save_images("asset-1", ["a"])
    await blob_store.save_images("asset-2", ["b"])

    await blob_store.delete_images("asset-1")
    await blob_store.delete_images("asset-1")

    assert await blob_store.get_images("asset-1") == []
    assert await blob_store.get_images("asset-2") == ["b"]
