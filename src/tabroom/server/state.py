"""Global state of the background server."""
import itertools
import os
from pathlib import Path
from typing import Dict, Optional

from ..config import get_config
from ..models.tab import Tab
from ..storage import StorageArea

# Tabs keyed by their sender key
tabs: Dict[str, Tab] = {}
_tab_ids = itertools.count(1)

server_dir = Path(f"/tmp/tabroom-{os.getenv('USER', 'nobody')}")

_area: Optional[StorageArea] = None


def next_tab_id() -> int:
    return next(_tab_ids)


def find_tab(tab_id: int) -> Optional[Tab]:
    for tab in tabs.values():
        if tab.id == tab_id:
            return tab
    return None


def get_area() -> StorageArea:
    """Storage area shared by every popup, opened on first use."""
    global _area
    if _area is None:
        _area = StorageArea(get_config().storage.path)
    return _area


def set_area(area: Optional[StorageArea]) -> None:
    global _area
    _area = area
