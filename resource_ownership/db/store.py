"""
Ownership record store.

Database operations over the ownership join table. Uniqueness of
(resource, owner) pairs is enforced by the ``ownership_unique`` constraint;
an insert that loses a race against a concurrent insert falls back to
updating the row that won.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..refs import EntityRef
from .models import OwnershipModel

logger = structlog.get_logger()

_UNSET = object()


def normalize_permissions(permissions: Optional[Iterable[str]]) -> Optional[List[str]]:
    """Sorted, de-duplicated permission list; empty input is stored as NULL."""
    if not permissions:
        return None
    return sorted(set(permissions))


class OwnershipStore:
    """Service for managing ownership records in the database."""

    def __init__(self, db: Session):
        self.db = db

    def _pair(self, resource: EntityRef, owner: EntityRef):
        return (
            OwnershipModel.ownable_type == resource.type,
            OwnershipModel.ownable_id == resource.id,
            OwnershipModel.owner_type == owner.type,
            OwnershipModel.owner_id == owner.id,
        )

    def _of_resource(self, resource: EntityRef):
        return (
            OwnershipModel.ownable_type == resource.type,
            OwnershipModel.ownable_id == resource.id,
        )

    def find(self, resource: EntityRef, owner: EntityRef) -> Optional[OwnershipModel]:
        """Get the record of an (resource, owner) pair."""
        return self.db.scalars(
            select(OwnershipModel).where(*self._pair(resource, owner))
        ).first()

    def exists(
        self, resource: EntityRef, owner: EntityRef, role: Optional[str] = None
    ) -> bool:
        """Whether a record exists for the pair, optionally with a given role."""
        stmt = select(OwnershipModel.id).where(*self._pair(resource, owner))
        if role is not None:
            stmt = stmt.where(OwnershipModel.role == role)
        return self.db.scalars(stmt.limit(1)).first() is not None

    def list(
        self,
        resource: EntityRef,
        owner_type: Optional[str] = None,
        role: Optional[str] = None,
    ) -> List[OwnershipModel]:
        """List records of a resource with optional filtering."""
        stmt = select(OwnershipModel).where(*self._of_resource(resource))
        if owner_type:
            stmt = stmt.where(OwnershipModel.owner_type == owner_type)
        if role:
            stmt = stmt.where(OwnershipModel.role == role)
        return list(self.db.scalars(stmt.order_by(OwnershipModel.id)))

    def count(self, resource: EntityRef) -> int:
        return self.db.scalar(
            select(func.count(OwnershipModel.id)).where(*self._of_resource(resource))
        ) or 0

    def upsert(
        self,
        resource: EntityRef,
        owner: EntityRef,
        role: Optional[str],
        permissions: Optional[Iterable[str]] = None,
        commit: bool = True,
    ) -> Tuple[OwnershipModel, bool]:
        """Create the record of a pair, or overwrite role and permissions of the existing one.

        Returns:
            The record and whether it was newly created
        """
        stored_permissions = normalize_permissions(permissions)
        existing = self.find(resource, owner)
        if existing is not None:
            self._overwrite(existing, role, stored_permissions)
            self._finish(commit, existing)
            return existing, False

        now = datetime.now(timezone.utc)
        record = OwnershipModel(
            ownable_type=resource.type,
            ownable_id=resource.id,
            owner_type=owner.type,
            owner_id=owner.id,
            role=role,
            permissions=stored_permissions,
            created_at=now,
            updated_at=now,
        )
        try:
            with self.db.begin_nested():
                self.db.add(record)
                self.db.flush()
        except IntegrityError:
            # Another transaction created the same pair concurrently.
            existing = self.find(resource, owner)
            if existing is None:
                raise
            logger.info(
                "ownership_insert_conflict",
                resource=str(resource),
                owner=str(owner),
            )
            self._overwrite(existing, role, stored_permissions)
            self._finish(commit, existing)
            return existing, False

        self._finish(commit, record)
        return record, True

    def update(
        self,
        record: OwnershipModel,
        role=_UNSET,
        permissions=_UNSET,
        owner: Optional[EntityRef] = None,
        commit: bool = True,
    ) -> OwnershipModel:
        """Update fields of an existing record in place."""
        if role is not _UNSET:
            record.role = role
        if permissions is not _UNSET:
            record.permissions = normalize_permissions(permissions)
        if owner is not None:
            record.owner_type = owner.type
            record.owner_id = owner.id
        record.updated_at = datetime.now(timezone.utc)
        self._finish(commit, record)
        return record

    def update_role(
        self, resource: EntityRef, owner: EntityRef, role: str, commit: bool = True
    ) -> int:
        """Set the role of a pair. Returns the number of rows changed."""
        result = self.db.execute(
            update(OwnershipModel)
            .where(*self._pair(resource, owner))
            .values(role=role, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session="fetch")
        )
        self._finish(commit)
        return result.rowcount or 0

    def delete(self, resource: EntityRef, owner: EntityRef, commit: bool = True) -> int:
        """Delete the record of a pair. Returns the number of rows deleted."""
        result = self.db.execute(
            delete(OwnershipModel)
            .where(*self._pair(resource, owner))
            .execution_options(synchronize_session="fetch")
        )
        self._finish(commit)
        return result.rowcount or 0

    def delete_all(self, resource: EntityRef, commit: bool = True) -> int:
        """Delete every record of a resource."""
        result = self.db.execute(
            delete(OwnershipModel)
            .where(*self._of_resource(resource))
            .execution_options(synchronize_session="fetch")
        )
        self._finish(commit)
        return result.rowcount or 0

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def _overwrite(
        self, record: OwnershipModel, role: Optional[str], permissions: Optional[List[str]]
    ) -> None:
        record.role = role
        record.permissions = permissions
        record.updated_at = datetime.now(timezone.utc)

    def _finish(self, commit: bool, record: Optional[OwnershipModel] = None) -> None:
        if commit:
            self.db.commit()
            if record is not None:
                self.db.refresh(record)
        else:
            self.db.flush()
