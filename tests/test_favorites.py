import pytest

from equipment_service.favorites import MemoryFavoritesStore, RedisFavoritesStore, favorites_key


@pytest.fixture(params=["redis", "memory"])
def store(request, redis):
    if request.param == "redis":
        return RedisFavoritesStore(redis)
    return MemoryFavoritesStore()


@pytest.mark.asyncio
async def test_add_is_idempotent(store):
    await store.add(1, "INV-1:SN-1")
    await store.add(1, "INV-1:SN-1")
    assert await store.list(1) == ["INV-1:SN-1"]


@pytest.mark.asyncio
async def test_list_is_sorted_and_per_user(store):
    for equipment_id in ("c", "a", "b"):
        await store.add(7, equipment_id)
    await store.add(8, "z")

    assert await store.list(7) == ["a", "b", "c"]
    assert await store.list(8) == ["z"]
    assert await store.list(9) == []


@pytest.mark.asyncio
async def test_remove_missing_is_noop(store):
    await store.remove(1, "nothing")
    assert await store.list(1) == []


@pytest.mark.asyncio
async def test_toggle_flips_membership(store):
    assert await store.toggle(1, "x") is True
    assert await store.contains(1, "x") is True
    assert await store.toggle(1, "x") is False
    assert await store.contains(1, "x") is False


@pytest.mark.asyncio
async def test_redis_layout(redis):
    store = RedisFavoritesStore(redis)
    await store.add(3, "C-555")
    assert favorites_key(3) == "favorites:3"
    assert await redis.smembers("favorites:3") == {"C-555"}


@pytest.mark.asyncio
async def test_invalid_user_id_on_endpoint(client):
    resp = await client.get("/api/favorites/nobody")
    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid user ID"}
