from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import DataError

from inventory_tracker.errors import InvalidItemError, RecordNotFoundError, StoreUnavailableError
from inventory_tracker.store import RedisInventoryStore, _sql_errors


@pytest.mark.asyncio
async def test_sql_store_assigns_ids_and_allows_duplicate_names(store):
    first = await store.create_record({"name": "Apples", "quantity": 1})
    second = await store.create_record({"name": "apples", "quantity": 2})

    records = await store.list_records()

    assert first != second
    assert {record.id for record in records} == {first, second}


@pytest.mark.asyncio
async def test_sql_store_update_and_delete(store):
    item_id = await store.create_record({"name": "Milk", "quantity": 1})

    await store.update_record(item_id, {"quantity": 7})
    [record] = await store.list_records()
    assert (record.id, record.name, record.quantity) == (item_id, "Milk", 7)

    await store.delete_record(item_id)
    assert await store.list_records() == []


@pytest.mark.asyncio
async def test_sql_store_missing_ids_raise_not_found(store):
    with pytest.raises(RecordNotFoundError):
        await store.update_record("missing", {"quantity": 1})
    with pytest.raises(RecordNotFoundError):
        await store.delete_record("missing")


@pytest.mark.asyncio
async def test_sql_store_rejects_negative_quantity_and_unknown_fields(store):
    item_id = await store.create_record({"name": "Milk", "quantity": 1})

    with pytest.raises(InvalidItemError):
        await store.update_record(item_id, {"quantity": -1})
    with pytest.raises(InvalidItemError):
        await store.update_record(item_id, {"colour": "white"})
    with pytest.raises(InvalidItemError):
        await store.create_record({"name": "Eggs", "quantity": -3})


class _FakeRedis:
    """Minimal in-process stand-in for the redis.asyncio calls the store makes."""

    def __init__(self):
        self.hashes = {}
        self.sets = {}

    async def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def exists(self, key):
        return int(key in self.hashes)

    async def delete(self, key):
        return int(self.hashes.pop(key, None) is not None)

    async def sadd(self, key, member):
        self.sets.setdefault(key, set()).add(member)

    async def srem(self, key, member):
        self.sets.get(key, set()).discard(member)

    async def smembers(self, key):
        return set(self.sets.get(key, set()))


@pytest.mark.asyncio
async def test_redis_store_round_trip():
    client = _FakeRedis()
    store = RedisInventoryStore(client)

    item_id = await store.create_record({"name": "Eggs", "quantity": 12})
    await store.update_record(item_id, {"quantity": 6})
    [record] = await store.list_records()

    assert (record.id, record.name, record.quantity) == (item_id, "Eggs", 6)
    assert client.sets["inventory:ids"] == {item_id}

    await store.delete_record(item_id)
    assert await store.list_records() == []
    assert client.sets["inventory:ids"] == set()


@pytest.mark.asyncio
async def test_redis_store_missing_ids_raise_not_found():
    store = RedisInventoryStore(_FakeRedis())

    with pytest.raises(RecordNotFoundError):
        await store.update_record("missing", {"quantity": 1})
    with pytest.raises(RecordNotFoundError):
        await store.delete_record("missing")


@pytest.mark.asyncio
async def test_redis_store_drops_dangling_index_entries():
    client = _FakeRedis()
    client.sets["inventory:ids"] = {"ghost"}
    store = RedisInventoryStore(client)

    assert await store.list_records() == []
    assert client.sets["inventory:ids"] == set()


class _DownRedis(_FakeRedis):
    async def smembers(self, key):
        raise RedisConnectionError("Connection refused")


@pytest.mark.asyncio
async def test_redis_connection_errors_become_store_unavailable():
    store = RedisInventoryStore(_DownRedis())

    with pytest.raises(StoreUnavailableError):
        await store.list_records()


@pytest.mark.asyncio
async def test_stores_reject_quantities_beyond_column_range(store):
    item_id = await store.create_record({"name": "Big", "quantity": 2**31 - 1})
    redis_store = RedisInventoryStore(_FakeRedis())

    with pytest.raises(InvalidItemError):
        await store.update_record(item_id, {"quantity": 2**31})
    with pytest.raises(InvalidItemError):
        await store.create_record({"name": "Huge", "quantity": 2**63})
    with pytest.raises(InvalidItemError):
        await redis_store.create_record({"name": "Huge", "quantity": 2**63})

    [record] = await store.list_records()
    assert record.quantity == 2**31 - 1


def test_sql_data_errors_become_invalid_item():
    with pytest.raises(InvalidItemError):
        with _sql_errors("update"):
            raise DataError("UPDATE inventory", {}, Exception("integer out of range"))
