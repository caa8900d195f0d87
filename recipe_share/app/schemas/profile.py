import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

HANDLE_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
HANDLE_MIN_LENGTH = 3
HANDLE_MAX_LENGTH = 30
DISPLAY_NAME_MAX_LENGTH = 50


class ProfileCreate(BaseModel):
    handle: Optional[str] = None
    displayName: Optional[str] = None


class ProfileRead(BaseModel):
    id: str
    handle: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


def validate_handle(handle: str) -> Optional[str]:
    """Return an error message for an unusable handle, or None."""
    if not HANDLE_PATTERN.match(handle):
        return "Handle can only contain letters, numbers, hyphens, and underscores"
    if len(handle) < HANDLE_MIN_LENGTH or len(handle) > HANDLE_MAX_LENGTH:
        return "Handle must be between 3 and 30 characters"
    return None


def validate_display_name(display_name: str) -> Optional[str]:
    if len(display_name) > DISPLAY_NAME_MAX_LENGTH:
        return "Display name must be less than 50 characters"
    return None
