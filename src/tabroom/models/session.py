"""Session view model."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    """Room membership of a popup's tab."""

    UNRESOLVED = "unresolved"
    NO_ROOM = "no_room"
    IN_ROOM = "in_room"


class DetectionStatus(str, Enum):
    """Progress of video detection in the tab."""

    NONE = "none"
    DETECTING = "detecting"
    DETECTED = "detected"
    ERROR = "error"


class SessionView(BaseModel):
    """What the popup renders."""

    model_config = ConfigDict(frozen=True)

    tab_id: Optional[int] = Field(None, description="Tab identifier once resolved")
    state: SessionState = SessionState.UNRESOLVED
    room_code: Optional[str] = None
    detection_status: DetectionStatus = DetectionStatus.NONE
    error_message: Optional[str] = None

    @property
    def in_room(self) -> bool:
        return self.state is SessionState.IN_ROOM
