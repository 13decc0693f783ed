"""
SQLAlchemy models for resource ownership.

``OwnershipModel`` is the join table used in multiple ownership mode.
``Ownable`` marks host models as resources; ``OwnableMixin`` (or
``ownable_mixin(name)``) adds the inline owner columns used in single mode.
"""

from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func

from ..config import get_settings
from ..refs import EntityRef
from .base import Base


class Ownable:
    """Marker for host models that can be owned.

    Class attributes:
        __morph_type__: Type tag stored in ownership references (default: class name)
        __ownership_mode__: Pin the model to 'single' or 'multiple'; a pin that
            disagrees with the configured mode is rejected at hook installation
    """

    __morph_type__: Optional[str] = None
    __ownership_mode__: Optional[str] = None


def ownable_mixin(morph_name: str = "owner") -> type:
    """Build a mixin adding nullable ``<morph>_type`` / ``<morph>_id`` columns.

    Example:
        class Document(ownable_mixin("team"), Base):
            __tablename__ = "documents"
            id = Column(Integer, primary_key=True)
    """
    type_attr = f"{morph_name}_type"
    id_attr = f"{morph_name}_id"

    def _table_args(cls):
        return (
            Index(f"ix_{cls.__tablename__}_{morph_name}", type_attr, id_attr),
        )

    attrs = {
        "__ownership_morph__": morph_name,
        type_attr: Column(String(255), nullable=True),
        id_attr: Column(String(64), nullable=True),
        "__table_args__": declared_attr(_table_args),
    }
    class_name = "".join(part.title() for part in morph_name.split("_")) + "OwnableMixin"
    return type(class_name, (Ownable,), attrs)


OwnableMixin = ownable_mixin("owner")


class OwnershipModel(Base):
    """One (resource, owner) relationship with a role and permission overrides."""

    __tablename__ = get_settings().table_name

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Owned resource (polymorphic)
    ownable_type = Column(String(255), nullable=False)
    ownable_id = Column(String(64), nullable=False)

    # Owner (polymorphic)
    owner_type = Column(String(255), nullable=False)
    owner_id = Column(String(64), nullable=False)

    role = Column(String(64), nullable=True)
    permissions = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "ownable_type", "ownable_id", "owner_type", "owner_id", name="ownership_unique"
        ),
        Index("ix_ownerships_ownable", "ownable_type", "ownable_id"),
        Index("ix_ownerships_owner", "owner_type", "owner_id"),
        Index("ix_ownerships_ownable_role", "ownable_type", "ownable_id", "role"),
    )

    @property
    def owner_ref(self) -> EntityRef:
        return EntityRef(type=self.owner_type, id=self.owner_id)

    @property
    def ownable_ref(self) -> EntityRef:
        return EntityRef(type=self.ownable_type, id=self.ownable_id)

    @property
    def custom_permissions(self) -> frozenset:
        return frozenset(self.permissions or ())

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "ownable_type": self.ownable_type,
            "ownable_id": self.ownable_id,
            "owner_type": self.owner_type,
            "owner_id": self.owner_id,
            "role": self.role,
            "permissions": list(self.permissions) if self.permissions else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"OwnershipModel({self.ownable_type}#{self.ownable_id} -> "
            f"{self.owner_type}#{self.owner_id}, role={self.role})"
        )
