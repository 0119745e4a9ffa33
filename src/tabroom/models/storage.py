"""Storage area wire models."""
from typing import Optional

from pydantic import BaseModel, Field


class StorageValue(BaseModel):
    """Current value of a storage key."""

    key: str = Field(..., description="Storage key")
    value: Optional[str] = Field(None, description="Stored string, absent if unset")


class StorageWrite(BaseModel):
    """Write request for a storage key."""

    value: Optional[str] = Field(None, description="New value, null removes the key")
    compare: bool = Field(False, description="Only write if the key still holds `expected`")
    expected: Optional[str] = Field(None, description="Value the writer last observed")
