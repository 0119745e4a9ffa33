"""Shared storage area endpoints."""
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from ...models.storage import StorageValue, StorageWrite
from ...storage import ANY
from .. import state

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{key}", response_model=StorageValue)
async def get_value(key: str) -> StorageValue:
    return StorageValue(key=key, value=state.get_area().get(key))


@router.put("/{key}", response_model=StorageValue)
async def put_value(key: str, write: StorageWrite) -> StorageValue:
    expected = write.expected if write.compare else ANY
    if not state.get_area().set(key, write.value, expected):
        raise HTTPException(status_code=409, detail="Value changed since it was read")
    logger.debug(f"Stored {key}")
    return StorageValue(key=key, value=write.value)


@router.get("/{key}/events")
async def watch_value(key: str) -> StreamingResponse:
    """Stream values of ``key`` as newline-delimited JSON.

    The first line is the value at subscription time, then one line per write.
    """
    area = state.get_area()

    async def events():
        async with area.watch(key) as updates:
            yield StorageValue(key=key, value=area.get(key)).model_dump_json() + "\n"
            async for value in updates:
                yield StorageValue(key=key, value=value).model_dump_json() + "\n"

    return StreamingResponse(events(), media_type="application/x-ndjson")
