"""Tab and room RPC models."""
from typing import Literal, Optional

from pydantic import BaseModel, Field


class TabRegistration(BaseModel):
    """Register the calling tab with the background."""

    key: str = Field(..., description="Opaque sender identity of the tab")
    agent_url: Optional[str] = Field(None, description="Where the tab's page agent accepts messages")


class Tab(BaseModel):
    """A tab known to the background."""

    id: int = Field(..., description="Tab identifier, stable for the tab's lifetime")
    key: str = Field(..., description="Opaque sender identity of the tab")
    agent_url: Optional[str] = Field(None, description="Page agent endpoint")


class RoomCreated(BaseModel):
    """A freshly generated room."""

    code: str = Field(..., description="Room code")


class DetectResponse(BaseModel):
    """Answer of the page agent to a detectVideo message."""

    status: Literal["success", "error"]
    message: Optional[str] = None
