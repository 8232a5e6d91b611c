"""
Inventory reconciliation rules.

Items are keyed by case-insensitive name: adding a name that already exists
bumps that record's quantity instead of creating a second one. Driving a
quantity to exactly zero deletes the record. Every mutation ends with a full
reload from the store, so the in-memory view is always the store's view
(last write wins, no local merge).
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, List

from . import schemas
from .errors import InvalidItemError, RecordNotFoundError, StoreUnavailableError
from .store import InventoryStore

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """Comparison key used for every name match."""
    return name.strip().lower()


def _validate_quantity(quantity, allow_zero: bool) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidItemError(f"Quantity must be an integer, got {quantity!r}")
    if quantity < 0 or (quantity == 0 and not allow_zero) or quantity > schemas.MAX_QUANTITY:
        raise InvalidItemError(f"Quantity out of range: {quantity}")
    return quantity


def _find_by_name(items: List[schemas.InventoryItem], name: str) -> schemas.InventoryItem | None:
    key = normalize_name(name)
    for item in items:
        if normalize_name(item.name) == key:
            return item
    return None


def _find_by_id(items: List[schemas.InventoryItem], item_id: str) -> schemas.InventoryItem | None:
    for item in items:
        if item.id == item_id:
            return item
    return None


class InventoryReconciler:
    """Sole writer of an InventoryState; callers observe `state` and call the operations."""

    def __init__(self, store: InventoryStore, serialize_mutations: bool = True):
        self._store = store
        self._serialize_mutations = serialize_mutations
        # key -> (lock, number of operations holding or waiting on it)
        self._locks: Dict[str, list] = {}
        self._pending = 0
        self.state = schemas.InventoryState()

    @property
    def lock_count(self) -> int:
        """Number of per-item locks currently held or waited on."""
        return len(self._locks)

    def _notify(self, level: str, message: str):
        self.state.notification = schemas.Notification(level=level, message=message)
        log = {"success": logger.info, "warning": logger.warning}.get(level, logger.error)
        log(message)

    @asynccontextmanager
    async def _item_lock(self, key: str):
        entry = self._locks.setdefault(key, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @asynccontextmanager
    async def _operation(self, lock_key: str | None):
        self._pending += 1
        self.state.loading = True
        try:
            if self._serialize_mutations and lock_key is not None:
                async with self._item_lock(lock_key):
                    yield
            else:
                yield
        except StoreUnavailableError as e:
            # Keep the last good items but flag them; the next operation reloads.
            self.state.stale = True
            self._notify("error", str(e))
            raise
        finally:
            self._pending -= 1
            self.state.loading = self._pending > 0

    async def _reload(self):
        self.state.items = await self._store.list_records()
        self.state.stale = False

    def _name_of(self, item_id: str) -> str:
        item = _find_by_id(self.state.items, item_id)
        return item.name if item is not None else item_id

    async def reload(self) -> schemas.InventoryState:
        """Replaces the in-memory view with the store's current collection."""
        async with self._operation(None):
            await self._reload()
        return self.state

    async def add(self, name: str, quantity: int = 1) -> schemas.InventoryState:
        """
        Adds `quantity` of `name`. An existing record whose name matches
        case-insensitively absorbs the quantity; otherwise a new record is
        created. Empty or whitespace-only names are ignored.
        """
        trimmed = (name or "").strip()
        if not trimmed:
            logger.debug("Ignoring add with an empty item name")
            return self.state
        quantity = _validate_quantity(quantity, allow_zero=False)

        async with self._operation(normalize_name(trimmed)):
            existing = _find_by_name(await self._store.list_records(), trimmed)
            if existing is not None:
                total = existing.quantity + quantity
                if total > schemas.MAX_QUANTITY:
                    raise InvalidItemError(
                        f"Adding {quantity} to {existing.name} would exceed {schemas.MAX_QUANTITY}"
                    )
                try:
                    await self._store.update_record(existing.id, {"quantity": total})
                    message = f"Updated {existing.name}: quantity is now {total}"
                except RecordNotFoundError:
                    logger.warning(f"Record '{existing.id}' vanished before update, creating '{trimmed}' instead")
                    existing = None
            if existing is None:
                await self._store.create_record({"name": trimmed, "quantity": quantity})
                message = f"Added {trimmed} (quantity {quantity})"
            await self._reload()

        self._notify("success", message)
        return self.state

    async def _write_quantity(self, item_id: str, new_quantity: int, name: str) -> str:
        """Writes an absolute quantity (0 deletes). Caller holds the item's operation."""
        try:
            if new_quantity == 0:
                await self._store.delete_record(item_id)
                message = f"Removed {name}"
            else:
                await self._store.update_record(item_id, {"quantity": new_quantity})
                message = f"Set {name} to {new_quantity}"
        except RecordNotFoundError:
            await self._reload()
            self._notify("warning", f"{name} no longer exists; inventory refreshed")
            raise
        await self._reload()
        return message

    async def set_quantity(self, item_id: str, new_quantity: int) -> schemas.InventoryState:
        """Sets an absolute quantity; 0 deletes the record. Raises RecordNotFoundError after resyncing."""
        new_quantity = _validate_quantity(new_quantity, allow_zero=True)

        async with self._operation(item_id):
            message = await self._write_quantity(item_id, new_quantity, self._name_of(item_id))

        self._notify("success", message)
        return self.state

    async def _step(self, item_id: str, delta: int) -> schemas.InventoryState:
        # Read-modify-write under the item's lock so concurrent steps don't overwrite each other
        async with self._operation(item_id):
            current = _find_by_id(await self._store.list_records(), item_id)
            if current is None:
                await self._reload()
                self._notify("warning", f"{self._name_of(item_id)} no longer exists; inventory refreshed")
                raise RecordNotFoundError(item_id)
            new_quantity = _validate_quantity(max(0, current.quantity + delta), allow_zero=True)
            message = await self._write_quantity(item_id, new_quantity, current.name)

        self._notify("success", message)
        return self.state

    async def increment(self, item_id: str) -> schemas.InventoryState:
        return await self._step(item_id, 1)

    async def decrement(self, item_id: str) -> schemas.InventoryState:
        # Clamped at zero, and zero deletes
        return await self._step(item_id, -1)

    async def remove(self, item_id: str) -> schemas.InventoryState:
        """Deletes the record whatever its quantity. Deleting a missing record is a no-op."""
        name = self._name_of(item_id)

        async with self._operation(item_id):
            try:
                await self._store.delete_record(item_id)
                message = f"Removed {name}"
            except RecordNotFoundError:
                logger.info(f"Record '{item_id}' already absent, nothing to remove")
                message = f"{name} was already removed"
            await self._reload()

        self._notify("success", message)
        return self.state
