from pydantic import BaseModel, ConfigDict, Field, conint
from typing import List, Literal
import datetime

MAX_QUANTITY = 2**31 - 1 # Fits the 32-bit INTEGER column


class InventoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True) # Build straight from ORM rows

    id: str
    name: str
    quantity: conint(ge=0, le=MAX_QUANTITY) # Allows 0 only transiently; zero-quantity records get deleted


# Request bodies for the HTTP surface
class ItemAddRequest(BaseModel):
    name: str # Whitespace-only names are accepted here and ignored by the reconciler
    quantity: conint(gt=0, le=MAX_QUANTITY) = 1


class QuantityUpdateRequest(BaseModel):
    quantity: conint(ge=0, le=MAX_QUANTITY) # 0 deletes the record


class Notification(BaseModel):
    level: Literal["success", "warning", "error"]
    message: str


class InventoryState(BaseModel):
    """
    The in-memory view of the collection. Only the reconciler writes it;
    everything else reads it.
    """
    items: List[InventoryItem] = Field(default_factory=list)
    loading: bool = False
    stale: bool = False # Set after a store failure, cleared by the next reload
    notification: Notification | None = None


class MetadataResponse(BaseModel):
    updated_at: datetime.datetime | None = None
