import abc
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, List

from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError
from sqlalchemy import select
from sqlalchemy.exc import DataError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import models, schemas
from .schemas import MAX_QUANTITY
from .errors import InvalidItemError, RecordNotFoundError, StoreUnavailableError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "quantity")


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise InvalidItemError(f"Unknown inventory fields: {sorted(unknown)}")
    if "quantity" in fields and not 0 <= fields["quantity"] <= MAX_QUANTITY:
        raise InvalidItemError(f"Quantity out of range: {fields['quantity']}")


class InventoryStore(abc.ABC):
    """
    The document collection the reconciler persists to. Ids are assigned here;
    name uniqueness is NOT enforced here.
    """

    @abc.abstractmethod
    async def create_record(self, fields: Dict[str, Any]) -> str:
        ...

    @abc.abstractmethod
    async def list_records(self) -> List[schemas.InventoryItem]:
        ...

    @abc.abstractmethod
    async def update_record(self, item_id: str, fields: Dict[str, Any]) -> None:
        """Raises RecordNotFoundError if item_id is absent."""

    @abc.abstractmethod
    async def delete_record(self, item_id: str) -> None:
        """Raises RecordNotFoundError if item_id is absent."""


@contextmanager
def _sql_errors(operation: str):
    try:
        yield
    except (IntegrityError, DataError) as e:
        logger.warning(f"Store rejected {operation}: {e.orig}")
        raise InvalidItemError(f"Store rejected {operation}: {e.orig}") from e
    except (OperationalError, InterfaceError, OSError) as e:
        logger.error(f"Inventory store unavailable during {operation}: {e}")
        raise StoreUnavailableError(f"Inventory store unavailable during {operation}") from e


class SqlInventoryStore(InventoryStore):
    """Stores the collection as rows of an async SQLAlchemy table. One session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_record(self, fields: Dict[str, Any]) -> str:
        _check_fields(fields)
        with _sql_errors("create"):
            async with self._session_factory() as db:
                db_item = models.InventoryRecord(name=fields["name"], quantity=fields["quantity"])
                db.add(db_item)
                await db.commit()
                logger.info(f"Created record '{db_item.id}' ({db_item.name}) with quantity {db_item.quantity}")
                return db_item.id

    async def list_records(self) -> List[schemas.InventoryItem]:
        with _sql_errors("list"):
            async with self._session_factory() as db:
                stmt = select(models.InventoryRecord).order_by(
                    models.InventoryRecord.created_at, models.InventoryRecord.name
                )
                result = await db.execute(stmt)
                items = [schemas.InventoryItem.model_validate(row) for row in result.scalars().all()]
        logger.debug(f"Listed {len(items)} inventory records")
        return items

    async def update_record(self, item_id: str, fields: Dict[str, Any]) -> None:
        _check_fields(fields)
        with _sql_errors("update"):
            async with self._session_factory() as db:
                db_item = await db.get(models.InventoryRecord, item_id)
                if db_item is None:
                    logger.warning(f"Attempted to update non-existent record '{item_id}'")
                    raise RecordNotFoundError(item_id)
                for key, value in fields.items():
                    setattr(db_item, key, value)
                await db.commit()
                logger.info(f"Updated record '{item_id}': {fields}")

    async def delete_record(self, item_id: str) -> None:
        with _sql_errors("delete"):
            async with self._session_factory() as db:
                db_item = await db.get(models.InventoryRecord, item_id)
                if db_item is None:
                    logger.warning(f"Attempted to delete non-existent record '{item_id}'")
                    raise RecordNotFoundError(item_id)
                await db.delete(db_item)
                await db.commit()
                logger.info(f"Deleted record '{item_id}'")


@contextmanager
def _redis_errors(operation: str):
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.error(f"Redis unavailable during {operation}: {e}")
        raise StoreUnavailableError(f"Inventory store unavailable during {operation}") from e


class RedisInventoryStore(InventoryStore):
    """
    Stores each record as a hash at "<collection>:<id>" and indexes the ids
    in the set "<collection>:ids". The client must decode responses to str.
    """

    def __init__(self, client, collection: str = "inventory"):
        self._client = client
        self._collection = collection

    def _key(self, item_id: str) -> str:
        return f"{self._collection}:{item_id}"

    @property
    def _index_key(self) -> str:
        return f"{self._collection}:ids"

    async def create_record(self, fields: Dict[str, Any]) -> str:
        _check_fields(fields)
        item_id = str(uuid.uuid4())
        with _redis_errors("create"):
            await self._client.hset(
                self._key(item_id),
                mapping={"name": fields["name"], "quantity": int(fields["quantity"])},
            )
            await self._client.sadd(self._index_key, item_id)
        logger.info(f"Created record '{item_id}' ({fields['name']}) with quantity {fields['quantity']}")
        return item_id

    async def list_records(self) -> List[schemas.InventoryItem]:
        items = []
        with _redis_errors("list"):
            item_ids = await self._client.smembers(self._index_key)
            for item_id in sorted(item_ids):
                data = await self._client.hgetall(self._key(item_id))
                if not data:
                    # Index entry outlived its hash (e.g. interrupted delete)
                    logger.warning(f"Dropping dangling index entry '{item_id}'")
                    await self._client.srem(self._index_key, item_id)
                    continue
                items.append(schemas.InventoryItem(id=item_id, name=data["name"], quantity=int(data["quantity"])))
        logger.debug(f"Listed {len(items)} inventory records")
        return items

    async def update_record(self, item_id: str, fields: Dict[str, Any]) -> None:
        _check_fields(fields)
        with _redis_errors("update"):
            if not await self._client.exists(self._key(item_id)):
                logger.warning(f"Attempted to update non-existent record '{item_id}'")
                raise RecordNotFoundError(item_id)
            await self._client.hset(self._key(item_id), mapping=fields)
        logger.info(f"Updated record '{item_id}': {fields}")

    async def delete_record(self, item_id: str) -> None:
        with _redis_errors("delete"):
            removed = await self._client.delete(self._key(item_id))
            await self._client.srem(self._index_key, item_id)
        if not removed:
            logger.warning(f"Attempted to delete non-existent record '{item_id}'")
            raise RecordNotFoundError(item_id)
        logger.info(f"Deleted record '{item_id}'")
