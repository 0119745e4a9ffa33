"""Room mapping codec.

The tab to room mapping is persisted as a single JSON string so that it can be
kept under one key of a shared key-value area. Every function here takes the
raw stored value and returns a new raw value, so they can be dropped into a
read-modify-write cycle without knowing where the value lives.
"""
import json
import logging
import re
from typing import Dict, Mapping, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import MalformedStorageError, ValidationError

logger = logging.getLogger(__name__)

ROOM_CODE_LENGTH = 5
ROOM_CODE_PATTERN = re.compile(r"[a-zA-Z0-9]*")

TabRoomMap = Dict[int, str]

_rooms_adapter = TypeAdapter(TabRoomMap)


def decode_rooms(raw: str) -> TabRoomMap:
    """Decode a stored value, raising MalformedStorageError if it is not a mapping."""
    try:
        return _rooms_adapter.validate_python(json.loads(raw))
    except (ValueError, TypeError, RecursionError, PydanticValidationError) as e:
        raise MalformedStorageError(f"Cannot decode room mapping: {e}") from e


def parse_rooms(raw: Optional[str]) -> TabRoomMap:
    """Return the mapping stored in ``raw``.

    Missing or malformed values are treated as an empty mapping.
    """
    if raw is None:
        return {}
    try:
        return decode_rooms(raw)
    except MalformedStorageError as e:
        logger.debug(f"Ignoring malformed room mapping: {e}")
        return {}


def serialize_rooms(rooms: Mapping[int, str]) -> str:
    """Encode a mapping for storage. Keys become decimal strings."""
    return json.dumps({str(tab_id): room for tab_id, room in rooms.items()})


def store_room(raw: Optional[str], patch: Mapping[int, str]) -> str:
    """Merge ``patch`` into the stored mapping, overwriting existing entries."""
    rooms = parse_rooms(raw)
    rooms.update(patch)
    return serialize_rooms(rooms)


def delete_room(raw: Optional[str], tab_id: int) -> str:
    """Remove the entry for ``tab_id``. Absent entries are ignored."""
    rooms = parse_rooms(raw)
    rooms.pop(tab_id, None)
    return serialize_rooms(rooms)


def validate_room_code(code: Optional[str]) -> str:
    """Check a room code typed by the user and return it in uppercase.

    Raises:
        ValidationError: with a message suitable for showing next to the field
    """
    if not code:
        raise ValidationError("Room code can't be empty.")
    if len(code) > ROOM_CODE_LENGTH:
        raise ValidationError("Room code too long.")
    if len(code) < ROOM_CODE_LENGTH:
        raise ValidationError("Room code too short")
    if not ROOM_CODE_PATTERN.fullmatch(code):
        raise ValidationError("Room code format incorrect")
    return code.upper()
