from fastapi import FastAPI, Depends, HTTPException, Request, Response, status
import asyncio
import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis

from . import config, database, metadata, schemas
from .errors import InvalidItemError, RecordNotFoundError, StoreUnavailableError
from .reconciler import InventoryReconciler
from .store import InventoryStore, RedisInventoryStore, SqlInventoryStore

# Configure logging basic setup
logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')
logger = logging.getLogger(__name__)


async def refresh_last_updated(app: FastAPI):
    """Background task: caches the metadata timestamp on app.state, or None."""
    app.state.last_updated = await metadata.fetch_last_updated()
    logger.info(f"Last updated timestamp: {app.state.last_updated}")


def build_store() -> tuple[InventoryStore, redis.Redis | None]:
    if config.STORE_BACKEND == "redis":
        logger.info(f"Using Redis store at {config.REDIS_HOST}:{config.REDIS_PORT}")
        pool = redis.ConnectionPool(
            host=config.REDIS_HOST,
            port=config.REDIS_PORT,
            db=config.REDIS_DB,
            decode_responses=True # Decode responses to strings
        )
        client = redis.Redis(connection_pool=pool)
        return RedisInventoryStore(client, collection=config.INVENTORY_COLLECTION), client
    if config.STORE_BACKEND != "sql":
        raise RuntimeError(f"Unknown STORE_BACKEND '{config.STORE_BACKEND}' (expected 'sql' or 'redis')")
    logger.info("Using SQL store")
    return SqlInventoryStore(database.AsyncSessionFactory), None


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Inventory Tracker starting up...")
    store, redis_client = build_store()
    if redis_client is None:
        await database.create_tables()
    app.state.reconciler = InventoryReconciler(store, serialize_mutations=config.SERIALIZE_MUTATIONS)
    app.state.last_updated = None

    # Fire-and-forget; the inventory never waits on it
    metadata_task = asyncio.get_running_loop().create_task(refresh_last_updated(app))

    yield

    logger.info("Inventory Tracker shutting down...")
    if not metadata_task.done():
        metadata_task.cancel()
        try:
            await metadata_task
        except asyncio.CancelledError:
            logger.info("Metadata fetch cancelled.")
    if redis_client is not None:
        await redis_client.aclose()
    await database.engine.dispose() # Clean up engine resources


app = FastAPI(
    title="Inventory Tracker",
    description="Tracks named items and their quantities, merged case-insensitively by name.",
    version="0.1.0",
    lifespan=lifespan
)


def get_reconciler(request: Request) -> InventoryReconciler:
    """FastAPI dependency returning the app-wide reconciler."""
    return request.app.state.reconciler


async def _run(operation, description: str):
    """Maps inventory errors onto HTTP errors."""
    try:
        return await operation
    except InvalidItemError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception as e:
        logger.exception(f"Error during {description}") # Log full traceback
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An unexpected error occurred during {description}: {e}"
        )


@app.get("/health", tags=["Monitoring"], summary="Health Check")
async def health_check():
    return {"status": "healthy"}


@app.get("/items", response_model=schemas.InventoryState, tags=["Inventory"], summary="Reload Inventory")
async def list_items(reconciler: InventoryReconciler = Depends(get_reconciler)):
    """Re-fetches the whole collection from the store and returns it."""
    return await _run(reconciler.reload(), "inventory reload")


@app.post(
    "/items",
    response_model=schemas.InventoryState,
    status_code=status.HTTP_201_CREATED,
    tags=["Inventory"],
    summary="Add Item"
)
async def add_item(
    request_data: schemas.ItemAddRequest,
    response: Response,
    reconciler: InventoryReconciler = Depends(get_reconciler)
):
    """
    Adds a quantity of a named item. A name matching an existing item
    (ignoring case and surrounding whitespace) adds to that item's quantity.
    A blank name changes nothing and answers 200 instead of 201.
    """
    logger.info(f"Received add request: {request_data.name!r} x {request_data.quantity}")
    if not request_data.name.strip():
        response.status_code = status.HTTP_200_OK
    return await _run(reconciler.add(request_data.name, request_data.quantity), f"add of '{request_data.name}'")


@app.put("/items/{item_id}/quantity", response_model=schemas.InventoryState, tags=["Inventory"], summary="Set Item Quantity")
async def set_item_quantity(
    item_id: str,
    request_data: schemas.QuantityUpdateRequest,
    reconciler: InventoryReconciler = Depends(get_reconciler)
):
    """Sets an absolute quantity. Setting 0 deletes the item."""
    return await _run(reconciler.set_quantity(item_id, request_data.quantity), f"quantity update of {item_id}")


@app.post("/items/{item_id}/increment", response_model=schemas.InventoryState, tags=["Inventory"], summary="Increment Item")
async def increment_item(item_id: str, reconciler: InventoryReconciler = Depends(get_reconciler)):
    return await _run(reconciler.increment(item_id), f"increment of {item_id}")


@app.post("/items/{item_id}/decrement", response_model=schemas.InventoryState, tags=["Inventory"], summary="Decrement Item")
async def decrement_item(item_id: str, reconciler: InventoryReconciler = Depends(get_reconciler)):
    """Lowers the quantity by one, never below zero; reaching zero deletes the item."""
    return await _run(reconciler.decrement(item_id), f"decrement of {item_id}")


@app.delete("/items/{item_id}", response_model=schemas.InventoryState, tags=["Inventory"], summary="Delete Item")
async def delete_item(item_id: str, reconciler: InventoryReconciler = Depends(get_reconciler)):
    """Deletes an item regardless of quantity. Deleting a missing item succeeds."""
    return await _run(reconciler.remove(item_id), f"delete of {item_id}")


@app.get("/metadata", response_model=schemas.MetadataResponse, tags=["Monitoring"], summary="Last Updated")
async def read_metadata(request: Request):
    return schemas.MetadataResponse(updated_at=getattr(request.app.state, "last_updated", None))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("inventory_tracker.main:app", host=config.APP_HOST, port=config.APP_PORT)
