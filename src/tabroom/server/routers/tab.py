"""Tab registry and message relay."""
import logging
from typing import Any, Dict, List

import httpx
from fastapi import APIRouter, HTTPException

from ...models.tab import Tab, TabRegistration
from .. import state
from .rpc import resolve_tab

logger = logging.getLogger(__name__)

router = APIRouter()

RELAY_TIMEOUT = 10.0


@router.post("/", response_model=Tab)
async def register(registration: TabRegistration) -> Tab:
    """Register a tab, or update where its page agent listens."""
    tab = resolve_tab(registration.key)
    if registration.agent_url:
        tab = tab.model_copy(update={"agent_url": registration.agent_url})
        state.tabs[tab.key] = tab
        logger.info(f"Tab {tab.id} page agent at {tab.agent_url}")
    return tab


@router.get("/", response_model=List[Tab])
async def list_tabs() -> List[Tab]:
    return list(state.tabs.values())


@router.post("/{tab_id}/message")
async def send_message(tab_id: int, message: Dict[str, Any]) -> Dict[str, Any]:
    """Deliver a message to the tab's page agent and return its answer."""
    tab = state.find_tab(tab_id)
    if tab is None:
        raise HTTPException(status_code=404, detail="Tab not found")
    if not tab.agent_url:
        raise HTTPException(status_code=502, detail="No page agent in tab")

    logger.debug(f"Relaying {message} to tab {tab_id}")
    try:
        async with httpx.AsyncClient(timeout=RELAY_TIMEOUT) as client:
            response = await client.post(tab.agent_url, json=message)
            response.raise_for_status()
            return response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Page agent of tab {tab_id} failed: {e}")
        raise HTTPException(status_code=502, detail=f"Page agent unreachable: {e}")
