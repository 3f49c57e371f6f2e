"""
Pydantic models for user data.

``UserPayload`` is the request body for create and update; every field
is optional here because the service, not the schema, decides what is
required, keeping the rules identical to the gRPC front‑end.  The
avatar travels as standard base64 text in JSON.
"""

import base64
import binascii
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..core.store import User, UserAttributes


def _decode_avatar(value: Optional[str]) -> bytes:
    if not value:
        return b""
    return base64.b64decode(value, validate=True)


class UserPayload(BaseModel):
    """Schema for creating or replacing a user's attributes."""

    name: Optional[str] = Field(None, examples=["Ada Lovelace"])
    email: Optional[str] = Field(None, examples=["ada@example.com"])
    phone: Optional[str] = Field(None, examples=["+44 20 7946 0000"])
    address: Optional[str] = None
    bio: Optional[str] = None
    tags: Optional[List[str]] = Field(None, examples=[["math", "engines"]])
    avatar: Optional[str] = Field(None, description="Base64 encoded avatar image")

    @field_validator("avatar")
    @classmethod
    def validate_avatar(cls, v: Optional[str]) -> Optional[str]:
        try:
            _decode_avatar(v)
        except (binascii.Error, ValueError):
            raise ValueError("avatar must be base64 encoded") from None
        return v

    def to_attributes(self) -> UserAttributes:
        return UserAttributes(
            name=self.name or "",
            email=self.email or "",
            phone=self.phone or "",
            address=self.address or "",
            bio=self.bio or "",
            tags=list(self.tags or []),
            avatar=_decode_avatar(self.avatar),
        )


class UserRead(BaseModel):
    """Schema for reading a user from the API."""

    id: str
    name: str
    email: str
    phone: str = ""
    address: str = ""
    bio: str = ""
    tags: List[str] = []
    avatar: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserRead":
        attrs = user.attributes
        return cls(
            id=user.id,
            name=attrs.name,
            email=attrs.email,
            phone=attrs.phone,
            address=attrs.address,
            bio=attrs.bio,
            tags=list(attrs.tags),
            avatar=base64.b64encode(attrs.avatar).decode("ascii"),
        )


class UserList(BaseModel):
    users: List[UserRead]
