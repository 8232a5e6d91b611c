class InventoryError(Exception):
    """Base class for inventory failures."""


class InvalidItemError(InventoryError, ValueError):
    """Rejected name, quantity or field before it reached the store."""


class RecordNotFoundError(InventoryError, LookupError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory record '{item_id}' not found")


class StoreUnavailableError(InventoryError):
    """The backing store could not be reached. Not retried automatically."""
