"""RPC endpoints used by popups."""
import logging
import random
import string
from typing import Optional

from fastapi import APIRouter, Header, HTTPException

from ...models.tab import RoomCreated, Tab
from ...rooms import ROOM_CODE_LENGTH
from .. import state

logger = logging.getLogger(__name__)

router = APIRouter()


def generate_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    return ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))


def resolve_tab(key: str) -> Tab:
    """Return the tab for a sender key, registering it on first sight."""
    tab = state.tabs.get(key)
    if tab is None:
        tab = Tab(id=state.next_tab_id(), key=key)
        state.tabs[key] = tab
        logger.info(f"Registered tab {tab.id} for {key!r}")
    return tab


@router.post("/createRoom", response_model=RoomCreated)
async def create_room() -> RoomCreated:
    code = generate_room_code()
    logger.info(f"Created room {code}")
    return RoomCreated(code=code)


@router.get("/getTabId", response_model=Tab)
async def get_tab_id(x_tab_key: Optional[str] = Header(None)) -> Tab:
    if not x_tab_key:
        raise HTTPException(status_code=400, detail="Missing X-Tab-Key header")
    return resolve_tab(x_tab_key)
