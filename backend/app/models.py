from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    token: str


class MessageResponse(BaseModel):
    message: str


class EmailAddress(BaseModel):
    id: str | None = None
    email_address: str = ""


class ClerkUserData(BaseModel):
    """User object as sent in Clerk `user.*` events."""

    id: str
    email_addresses: list[EmailAddress] = Field(default_factory=list)
    primary_email_address_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    image_url: str | None = None


class UserProfile(BaseModel):
    clerk_id: str
    email: str = ""
    name: str
    profile_image: str = ""

    def to_chat_user(self) -> dict[str, Any]:
        user: dict[str, Any] = {"id": self.clerk_id, "name": self.name}
        if self.profile_image:
            user["image"] = self.profile_image
        return user


def message_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})
