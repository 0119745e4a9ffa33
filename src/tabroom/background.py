"""Client for the privileged background process."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from .api_client import api_call
from .models.tab import RoomCreated, Tab, TabRegistration

logger = logging.getLogger(__name__)

TAB_KEY_HEADER = "X-Tab-Key"


class BackgroundClient(ABC):
    """Operations the popup needs from the background process.

    Every call may raise TransportError. Nothing here retries.
    """

    @abstractmethod
    async def create_room(self) -> str:
        """Generate a new room and return its code."""

    @abstractmethod
    async def get_tab_id(self) -> int:
        """Return the identifier of the calling tab."""

    @abstractmethod
    async def send_tab_message(self, tab_id: int, message: Dict[str, Any]) -> Dict[str, Any]:
        """Deliver ``message`` to the page agent of ``tab_id`` and return its answer."""


class HttpBackgroundClient(BackgroundClient):
    """Background client talking to the local server over HTTP.

    The calling tab is whatever the client's X-Tab-Key header names.
    """

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def create_room(self) -> str:
        room = await api_call(self.client, "POST", "/rpc/createRoom", response_model=RoomCreated)
        logger.debug(f"Background created room {room.code}")
        return room.code

    async def get_tab_id(self) -> int:
        tab = await api_call(self.client, "GET", "/rpc/getTabId", response_model=Tab)
        logger.debug(f"Resolved tab {tab.key!r} to id {tab.id}")
        return tab.id

    async def send_tab_message(self, tab_id: int, message: Dict[str, Any]) -> Dict[str, Any]:
        return await api_call(self.client, "POST", f"/tab/{tab_id}/message", json=message)

    async def register_tab(self, key: str, agent_url: Optional[str] = None) -> Tab:
        """Announce the tab and where its page agent listens."""
        return await api_call(
            self.client, "POST", "/tab/",
            data=TabRegistration(key=key, agent_url=agent_url),
            response_model=Tab,
        )
