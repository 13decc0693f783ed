"""
Polymorphic entity references.

Owners and resources are referenced by an explicit (type, id) pair rather than
a foreign key to a fixed table. Identifiers are normalized to strings so that
an integer key and its string form compare equal.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Session

from .errors import InvalidOwnerError


class EntityRef(BaseModel):
    """Reference to an owner or a resource: a type tag plus an opaque id."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = Field(..., min_length=1, max_length=255)
    id: str = Field(..., min_length=1, max_length=64)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if value is None or isinstance(value, bool):
            return value
        return str(value)

    def as_owner_columns(self) -> dict:
        return {"owner_type": self.type, "owner_id": self.id}

    def __str__(self) -> str:
        return f"{self.type}#{self.id}"


def make_ref(type_: Any, id_: Any) -> EntityRef:
    """Build an ``EntityRef``, reporting a malformed type or id as ``InvalidOwnerError``."""
    try:
        return EntityRef(type=type_, id=id_)
    except ValidationError as e:
        raise InvalidOwnerError(
            f"Invalid reference {type_}#{id_}: {e.error_count()} validation error(s).",
            code="INVALID_REFERENCE",
        ) from e


def morph_type_of(cls: type) -> str:
    """Type tag of a mapped class: ``__morph_type__`` or the class name."""
    return getattr(cls, "__morph_type__", None) or cls.__name__


def to_ref(value: Any) -> EntityRef:
    """Resolve ``value`` to an ``EntityRef``.

    Accepts an ``EntityRef``, any object exposing ``ownership_ref()``, or a
    persisted SQLAlchemy instance with a single-column primary key.

    Raises:
        InvalidOwnerError: If ``value`` cannot be referenced.
    """
    if isinstance(value, EntityRef):
        return value
    if value is None:
        raise InvalidOwnerError("No owner given.", code="OWNER_MISSING")
    if isinstance(value, type):
        raise InvalidOwnerError(f"{value.__name__} is a class, not an instance.")

    ownership_ref = getattr(value, "ownership_ref", None)
    if callable(ownership_ref):
        ref = ownership_ref()
        if not isinstance(ref, EntityRef):
            raise InvalidOwnerError(
                f"{type(value).__name__}.ownership_ref() must return an EntityRef."
            )
        return ref

    try:
        state = sa_inspect(value)
    except NoInspectionAvailable:
        raise InvalidOwnerError(
            f"{type(value).__name__} is not a valid owner or resource reference."
        ) from None

    mapper = getattr(state, "mapper", None)
    if mapper is None:
        raise InvalidOwnerError(
            f"{type(value).__name__} is not a mapped instance."
        )

    # Persistent instances carry their identity; expired attributes stay unloaded
    key = state.identity or mapper.primary_key_from_instance(value)
    if len(key) != 1:
        raise InvalidOwnerError(
            f"{type(value).__name__} has a composite primary key and cannot be referenced."
        )
    if key[0] is None:
        raise InvalidOwnerError(
            f"{type(value).__name__} has no primary key yet; persist it first.",
            code="NOT_PERSISTED",
        )
    return make_ref(morph_type_of(type(value)), key[0])


def try_ref(value: Any) -> Optional[EntityRef]:
    """Like ``to_ref`` but returns None for anything unresolvable."""
    if value is None:
        return None
    try:
        return to_ref(value)
    except InvalidOwnerError:
        return None


def resolve_ref(session: Session, ref: EntityRef) -> Optional[Any]:
    """Load the instance referenced by ``ref`` from any mapped class of the session's registry.

    Returns None when no mapped class carries the type tag or the row is gone.
    """
    from .db.base import Base

    for mapper in Base.registry.mappers:
        if morph_type_of(mapper.class_) != ref.type:
            continue
        pk_column = mapper.primary_key[0]
        try:
            python_type = pk_column.type.python_type
        except NotImplementedError:
            python_type = str
        try:
            key = python_type(ref.id)
        except (TypeError, ValueError):
            key = ref.id
        return session.get(mapper.class_, key)
    return None
