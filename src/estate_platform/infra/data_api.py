"""Document-style data API with per-collection access rules.

Every call returns an ``Envelope``; failures are reported through
``Envelope.errors`` and never raised, the same contract a hosted data API
exposes to its clients. Callers decide what counts as failure.

Filters are conjunctive dicts of ``{field: {operator: value}}``::

    {"owner": {"begins_with": sub}, "property_id": {"eq": property_id}}
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from estate_platform.domain.enums import ADMIN_GROUP, AuthMode
from estate_platform.domain.models import FavoriteProperty, Property, UserRecord
from estate_platform.domain.session import AuthSession, get_groups

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LIST_LIMIT = 100

READ = "read"
CREATE = "create"
UPDATE = "update"
DELETE = "delete"
ALL_OPERATIONS = frozenset({READ, CREATE, UPDATE, DELETE})


@dataclass
class Envelope(Generic[T]):
    data: Optional[T] = None
    errors: Optional[list[dict]] = None
    extensions: Optional[dict] = None
    next_token: Optional[str] = None


def _error(error_type: str, message: str) -> Envelope:
    return Envelope(errors=[{"errorType": error_type, "message": message}])


# ---------------------------------------------------------------------------
# Access rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rule:
    kind: str  # guest, authenticated, group, owner
    operations: frozenset[str]
    group: Optional[str] = None


@dataclass(frozen=True)
class ModelSpec:
    name: str
    orm: type
    writable: frozenset[str]
    required: frozenset[str] = frozenset()
    rules: tuple[Rule, ...] = ()
    owner_field: Optional[str] = None


PROPERTY_SPEC = ModelSpec(
    name="Property",
    orm=Property,
    writable=frozenset({
        "status", "address_line1", "address_line2", "city", "postcode",
        "price", "bedrooms", "bathrooms", "description", "images",
    }),
    required=frozenset({
        "status", "address_line1", "city", "postcode", "price",
        "bedrooms", "bathrooms", "description", "images",
    }),
    rules=(
        Rule("guest", frozenset({READ})),
        Rule("authenticated", frozenset({READ})),
        Rule("group", ALL_OPERATIONS, group=ADMIN_GROUP),
    ),
)

USER_RECORD_SPEC = ModelSpec(
    name="UserRecord",
    orm=UserRecord,
    writable=frozenset(),
    rules=(Rule("owner", ALL_OPERATIONS),),
    owner_field="owner",
)

FAVORITE_PROPERTY_SPEC = ModelSpec(
    name="FavoriteProperty",
    orm=FavoriteProperty,
    writable=frozenset({"user_id", "property_id"}),
    required=frozenset({"user_id", "property_id"}),
    rules=(Rule("owner", ALL_OPERATIONS),),
    owner_field="owner",
)


@dataclass
class Caller:
    auth_mode: AuthMode
    owner: Optional[str] = None
    groups: list[str] = field(default_factory=list)

    @property
    def is_guest(self) -> bool:
        return self.auth_mode == AuthMode.IDENTITY_POOL or not self.owner

    @classmethod
    def from_session(cls, auth_mode: AuthMode, session: AuthSession) -> "Caller":
        if auth_mode == AuthMode.IDENTITY_POOL:
            return cls(auth_mode=auth_mode)
        return cls(auth_mode=auth_mode, owner=session.owner, groups=get_groups(session))


def _grant(spec: ModelSpec, caller: Caller, operation: str) -> Optional[str]:
    """Return "all", "owner" or None for *operation* by *caller*."""
    owner_only = False
    for rule in spec.rules:
        if operation not in rule.operations:
            continue
        if rule.kind == "guest" and caller.is_guest:
            return "all"
        if caller.is_guest:
            continue
        if rule.kind == "authenticated":
            return "all"
        if rule.kind == "group" and rule.group in caller.groups:
            return "all"
        if rule.kind == "owner":
            owner_only = True
    return "owner" if owner_only else None


# ---------------------------------------------------------------------------
# Filters & serialization
# ---------------------------------------------------------------------------

_OPERATORS = {
    "eq": lambda col, v: col == v,
    "ne": lambda col, v: col != v,
    "lt": lambda col, v: col < v,
    "le": lambda col, v: col <= v,
    "gt": lambda col, v: col > v,
    "ge": lambda col, v: col >= v,
    "begins_with": lambda col, v: col.startswith(v, autoescape=True),
    "contains": lambda col, v: col.contains(v, autoescape=True),
}


def _build_conditions(orm: type, filter_: Optional[dict]) -> list:
    conditions = []
    for field_name, ops in (filter_ or {}).items():
        column = getattr(orm, field_name, None)
        if column is None or field_name not in orm.__table__.columns:
            raise ValueError(f"Unknown filter field '{field_name}'")
        if not isinstance(ops, dict):
            raise ValueError(f"Filter for '{field_name}' must map operators to values")
        for op, value in ops.items():
            if op not in _OPERATORS:
                raise ValueError(f"Unsupported filter operator '{op}'")
            conditions.append(_OPERATORS[op](column, value))
    return conditions


def _row_to_dict(row: Any) -> dict:
    result = {}
    for column in row.__table__.columns:
        value = getattr(row, column.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        result[column.name] = value
    return result


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


class ModelClient:
    """CRUD capability for one collection, bound to a caller."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        spec: ModelSpec,
        caller: Caller,
    ) -> None:
        self._session_factory = session_factory
        self._spec = spec
        self._caller = caller

    @property
    def name(self) -> str:
        return self._spec.name

    def _unauthorized(self, operation: str) -> Envelope:
        return _error("Unauthorized", f"Not Authorized to {operation} {self._spec.name}")

    def _owns(self, row: Any) -> bool:
        return getattr(row, self._spec.owner_field) == self._caller.owner

    def _validate_fields(self, data: dict, *, creating: bool) -> Optional[Envelope]:
        unknown = set(data) - self._spec.writable
        if unknown:
            return _error(
                "ValidationError",
                f"Unknown field(s) for {self._spec.name}: {', '.join(sorted(unknown))}",
            )
        if creating:
            missing = {
                name for name in self._spec.required
                if data.get(name) is None
            }
            if missing:
                return _error(
                    "ValidationError",
                    f"Missing required field(s) for {self._spec.name}: {', '.join(sorted(missing))}",
                )
        else:
            nulled = {name for name in self._spec.required if name in data and data[name] is None}
            if nulled:
                return _error(
                    "ValidationError",
                    f"Required field(s) cannot be null: {', '.join(sorted(nulled))}",
                )
        return None

    async def list(
        self,
        filter: Optional[dict] = None,
        limit: int = DEFAULT_LIST_LIMIT,
        next_token: Optional[str] = None,
    ) -> Envelope[list[dict]]:
        grant = _grant(self._spec, self._caller, READ)
        if grant is None:
            return self._unauthorized("list")

        try:
            conditions = _build_conditions(self._spec.orm, filter)
        except ValueError as e:
            return _error("ValidationError", str(e))
        if grant == "owner":
            conditions.append(getattr(self._spec.orm, self._spec.owner_field) == self._caller.owner)

        try:
            offset = int(next_token) if next_token else 0
        except ValueError:
            return _error("ValidationError", f"Invalid next_token '{next_token}'")

        query = select(self._spec.orm)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(self._spec.orm.created_at, self._spec.orm.id)
        query = query.offset(offset).limit(limit + 1)

        try:
            async with self._session_factory() as db:
                result = await db.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Data API list %s failed: %s", self._spec.name, e)
            return _error("DataStoreError", str(e))

        more = len(rows) > limit
        items = [_row_to_dict(row) for row in rows[:limit]]
        return Envelope(data=items, next_token=str(offset + limit) if more else None)

    async def get(self, id: str) -> Envelope[dict]:
        grant = _grant(self._spec, self._caller, READ)
        if grant is None:
            return self._unauthorized("get")

        try:
            async with self._session_factory() as db:
                row = await db.get(self._spec.orm, id)
        except SQLAlchemyError as e:
            logger.error("Data API get %s %s failed: %s", self._spec.name, id, e)
            return _error("DataStoreError", str(e))

        if row is None:
            return Envelope(data=None)
        if grant == "owner" and not self._owns(row):
            return self._unauthorized("get")
        return Envelope(data=_row_to_dict(row))

    async def create(self, data: Optional[dict] = None) -> Envelope[dict]:
        data = dict(data or {})
        grant = _grant(self._spec, self._caller, CREATE)
        if grant is None:
            return self._unauthorized("create")

        invalid = self._validate_fields(data, creating=True)
        if invalid:
            return invalid

        row = self._spec.orm(id=str(uuid.uuid4()), **data)
        if self._spec.owner_field:
            setattr(row, self._spec.owner_field, self._caller.owner)

        try:
            async with self._session_factory() as db:
                db.add(row)
                await db.commit()
                await db.refresh(row)
        except SQLAlchemyError as e:
            logger.error("Data API create %s failed: %s", self._spec.name, e)
            return _error("DataStoreError", str(e))

        return Envelope(data=_row_to_dict(row))

    async def update(self, data: dict) -> Envelope[dict]:
        data = dict(data)
        record_id = data.pop("id", None)
        if not record_id:
            return _error("ValidationError", "update requires an 'id'")

        grant = _grant(self._spec, self._caller, UPDATE)
        if grant is None:
            return self._unauthorized("update")

        invalid = self._validate_fields(data, creating=False)
        if invalid:
            return invalid

        try:
            async with self._session_factory() as db:
                row = await db.get(self._spec.orm, record_id)
                if row is None:
                    return _error("ConditionalCheckFailed", f"{self._spec.name} {record_id} does not exist")
                if grant == "owner" and not self._owns(row):
                    return self._unauthorized("update")
                for key, value in data.items():
                    setattr(row, key, value)
                await db.commit()
                await db.refresh(row)
        except SQLAlchemyError as e:
            logger.error("Data API update %s %s failed: %s", self._spec.name, record_id, e)
            return _error("DataStoreError", str(e))

        return Envelope(data=_row_to_dict(row))

    async def delete(self, id: str) -> Envelope[dict]:
        grant = _grant(self._spec, self._caller, DELETE)
        if grant is None:
            return self._unauthorized("delete")

        try:
            async with self._session_factory() as db:
                row = await db.get(self._spec.orm, id)
                if row is None:
                    return _error("ConditionalCheckFailed", f"{self._spec.name} {id} does not exist")
                if grant == "owner" and not self._owns(row):
                    return self._unauthorized("delete")
                deleted = _row_to_dict(row)
                await db.delete(row)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("Data API delete %s %s failed: %s", self._spec.name, id, e)
            return _error("DataStoreError", str(e))

        return Envelope(data=deleted)


class DataClient:
    """Session-bound handle exposing one ``ModelClient`` per collection."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        auth_mode: AuthMode,
        session: AuthSession,
    ) -> None:
        self.auth_mode = auth_mode
        caller = Caller.from_session(auth_mode, session)
        self.property = ModelClient(session_factory, PROPERTY_SPEC, caller)
        self.user = ModelClient(session_factory, USER_RECORD_SPEC, caller)
        self.favorite_property = ModelClient(session_factory, FAVORITE_PROPERTY_SPEC, caller)


class DataApi:
    """Entry point of the data backend; hands out session-bound clients."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    def client(self, auth_mode: AuthMode, session: AuthSession) -> DataClient:
        return DataClient(self._session_factory, auth_mode, session)
