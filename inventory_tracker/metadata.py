import datetime
import logging

import httpx
from pydantic import ValidationError

from . import config, schemas

logger = logging.getLogger(__name__)


async def fetch_last_updated(
    url: str | None = None,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> datetime.datetime | None:
    """
    Best-effort read of the `updated_at` field from the public metadata
    endpoint. Any failure is logged and reported as None; this never raises.
    """
    url = url if url is not None else config.METADATA_URL
    if not url:
        logger.debug("No metadata URL configured, skipping last-updated fetch")
        return None
    timeout = timeout if timeout is not None else config.METADATA_TIMEOUT_SECONDS

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url)
            response.raise_for_status()
            payload = schemas.MetadataResponse.model_validate(response.json())
    except httpx.HTTPStatusError as e:
        logger.warning(f"Metadata endpoint returned status {e.response.status_code}: {e.response.text[:200]}")
        return None
    except httpx.RequestError as e:
        logger.warning(f"Could not reach metadata endpoint ({e.request.url}): {e}")
        return None
    except (ValueError, ValidationError) as e:
        logger.warning(f"Unusable metadata response from {url}: {e}")
        return None
    except Exception as e:
        # e.g. httpx.InvalidURL from a malformed METADATA_URL
        logger.exception(f"Unexpected error fetching metadata from {url}: {e}")
        return None

    if payload.updated_at is None:
        logger.warning(f"Metadata response from {url} has no updated_at")
    return payload.updated_at
