"""SQLAlchemy ORM models backing the auth provider and the data API.

All models use SQLite-compatible types:
- String(36) for UUID primary keys
- JSON for structured data (no JSONB)
- DateTime for timestamps (no TIMESTAMPTZ)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.sql import func

from estate_platform.infra.database import Base


def _utcnow() -> datetime:
    """Naive UTC timestamp with microseconds, so rows sort in insertion order."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Auth provider
# ---------------------------------------------------------------------------


class Identity(Base):
    """Sign-in identity held by the auth provider."""

    __tablename__ = "identities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # subject
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    groups = Column(JSON, default=list)
    confirmed = Column(Boolean, default=False)
    confirmation_code = Column(String(6), nullable=True)
    reset_code = Column(String(6), nullable=True)
    # Bumped on sign-out / password change; tokens carrying an older value are revoked
    token_version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=func.now())
    last_login_at = Column(DateTime, nullable=True)


# ---------------------------------------------------------------------------
# Data API collections
# ---------------------------------------------------------------------------


class Property(Base):
    """A listed property. ``images`` is ordered; the first entry is the cover."""

    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status = Column(String(20), nullable=False)  # draft, for-sale, withdrawn, sold
    address_line1 = Column(String(255), nullable=False)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    postcode = Column(String(20), nullable=False)
    price = Column(Float, nullable=False)
    bedrooms = Column(Integer, nullable=False)
    bathrooms = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class UserRecord(Base):
    """Per-identity anchor row for user-owned relations such as favourites."""

    __tablename__ = "user_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner = Column(String(300), nullable=False, index=True)  # "<sub>::<username>"
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class FavoriteProperty(Base):
    """Join row between a UserRecord and a Property.

    Uniqueness of (user_id, property_id) is kept by the favourites service,
    not by a constraint.
    """

    __tablename__ = "favorite_properties"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("user_records.id"), nullable=False, index=True)
    property_id = Column(String(36), nullable=False, index=True)  # no FK: listings can be deleted under favourites
    owner = Column(String(300), nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
