"""Pydantic v2 schemas for API request/response validation."""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from estate_platform.domain.enums import PropertyStatus, RoomBucket

_SPECIAL_CHARS = re.compile(r"[^A-Za-z0-9]")


def validate_password_strength(password: str) -> str:
    """Password policy: 8+ chars, mixed case, a digit and a special character."""
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password must be at most 72 bytes")
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain a lowercase letter")
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"[0-9]", password):
        raise ValueError("Password must contain a digit")
    if not _SPECIAL_CHARS.search(password):
        raise ValueError("Password must contain a special character")
    return password


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Schema for signing up."""

    email: str
    password: str
    name: str = Field(min_length=3)

    @field_validator("password")
    @classmethod
    def _strong(cls, v: str) -> str:
        return validate_password_strength(v)


class UserLogin(BaseModel):
    email: str
    password: str


class ConfirmSignUp(BaseModel):
    email: str
    code: str = Field(min_length=6, max_length=6)


class EmailOnly(BaseModel):
    email: str


class ConfirmResetPassword(BaseModel):
    email: str
    code: str = Field(min_length=6, max_length=6)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _strong(cls, v: str) -> str:
        return validate_password_strength(v)


class PasswordChange(BaseModel):
    old_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _strong(cls, v: str) -> str:
        return validate_password_strength(v)


class SessionResponse(BaseModel):
    """Schema for the current session."""

    identity_id: str
    authenticated: bool
    user_sub: str | None = None
    username: str | None = None
    groups: list[str] = []
    profile_picture_url: str | None = None


class TokenResponse(BaseModel):
    """Schema for JWT token responses."""

    access_token: str
    token_type: str = "bearer"
    session: SessionResponse


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str


# ---------------------------------------------------------------------------
# Property
# ---------------------------------------------------------------------------


class PropertyBase(BaseModel):
    status: PropertyStatus = PropertyStatus.DRAFT
    address_line1: str = Field(min_length=1)
    address_line2: str | None = None
    city: str = Field(min_length=1)
    postcode: str = Field(min_length=1)
    price: float = Field(ge=0)
    bedrooms: int = Field(ge=0)
    bathrooms: int = Field(ge=0)
    description: str = ""


class PropertyCreate(PropertyBase):
    """Fields of a new listing; images are attached separately."""


class PropertyUpdate(BaseModel):
    """Partial update of a listing."""

    status: PropertyStatus | None = None
    address_line1: str | None = Field(default=None, min_length=1)
    address_line2: str | None = None
    city: str | None = Field(default=None, min_length=1)
    postcode: str | None = Field(default=None, min_length=1)
    price: float | None = Field(default=None, ge=0)
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    description: str | None = None


class PropertyRecord(PropertyBase):
    """A stored listing as returned by the data API."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    images: list[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PropertyResponse(PropertyRecord):
    """A listing with public image URLs resolved."""

    image_urls: list[str] = []


class PropertyFilter(BaseModel):
    """Search criteria; empty selections do not constrain."""

    statuses: list[PropertyStatus] = []
    bedrooms: list[RoomBucket] = []
    bathrooms: list[RoomBucket] = []
    min_price: float | None = Field(default=None, ge=0)
    max_price: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _price_range(self) -> "PropertyFilter":
        if self.min_price is not None and self.max_price is not None and self.max_price < self.min_price:
            raise ValueError("max_price must not be lower than min_price")
        return self


class PropertyPage(BaseModel):
    items: list[PropertyResponse]
    page: int
    page_size: int
    total_items: int
    total_pages: int
    page_numbers: list[int | str]
