"""Shared test fixtures."""
from typing import Any, Dict, List, Optional, Tuple

import pytest

from tabroom.background import BackgroundClient
from tabroom.storage import StorageArea


class FakeBackground(BackgroundClient):
    """Background client answering from canned values."""

    def __init__(self, tab_id: int = 7, codes: Optional[List[str]] = None,
                 detection: Optional[Dict[str, Any]] = None):
        self.tab_id = tab_id
        self.codes = list(codes or ["QX7K2"])
        self.detection = detection if detection is not None else {"status": "success"}
        self.create_error: Optional[Exception] = None
        self.tab_error: Optional[Exception] = None
        self.message_error: Optional[Exception] = None
        self.messages: List[Tuple[int, Dict[str, Any]]] = []
        self.create_calls = 0

    async def create_room(self) -> str:
        self.create_calls += 1
        if self.create_error:
            raise self.create_error
        return self.codes.pop(0)

    async def get_tab_id(self) -> int:
        if self.tab_error:
            raise self.tab_error
        return self.tab_id

    async def send_tab_message(self, tab_id: int, message: Dict[str, Any]) -> Dict[str, Any]:
        self.messages.append((tab_id, message))
        if self.message_error:
            raise self.message_error
        return self.detection


@pytest.fixture
def background():
    return FakeBackground()


@pytest.fixture
def area():
    """In-memory storage area."""
    return StorageArea()


@pytest.fixture
def reset_global_config():
    """Restore the global config after a test."""
    from tabroom import config as config_module

    original = config_module._config
    yield
    config_module.set_config(original)


@pytest.fixture
def server_state():
    """Fresh tab registry and in-memory storage for the server."""
    from tabroom.server import state

    original_tabs = dict(state.tabs)
    state.tabs.clear()
    area = StorageArea()
    state.set_area(area)

    yield area

    state.tabs.clear()
    state.tabs.update(original_tabs)
    state.set_area(None)
