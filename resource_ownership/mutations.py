"""
Ownership mutation protocol.

Adds, removes, transfers and synchronizes owners while enforcing the
invariants: roles must be configured, each (resource, owner) pair has at most
one record, and mode-specific operations only run in their mode. Every call
is committed as a whole or rolled back; storage errors propagate.
"""

from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional

import structlog

from .cache import DecisionCache
from .config import OwnershipConfig
from .context import ActorContext
from .db.models import OwnershipModel
from .db.store import OwnershipStore, normalize_permissions
from .errors import InvalidOwnerError
from .events import EventSink, NullEventSink, OwnershipEvent
from .refs import EntityRef, make_ref, to_ref
from .roles import RoleRegistry

logger = structlog.get_logger()


class OwnershipMutator:
    """Ownership state changes for one session."""

    def __init__(
        self,
        config: OwnershipConfig,
        store: OwnershipStore,
        context: ActorContext,
        sink: Optional[EventSink] = None,
        registry: Optional[RoleRegistry] = None,
        cache: Optional[DecisionCache] = None,
    ):
        self.config = config
        self.store = store
        self.context = context
        self.sink = sink or NullEventSink()
        self.registry = registry or RoleRegistry(config.roles)
        self.cache = cache
        self.logger = logger.bind(mode=config.mode)

    # ------------------------------------------------------------------
    # Guards and helpers
    # ------------------------------------------------------------------

    def _require_mode(self, mode: str, operation: str) -> None:
        if self.config.mode != mode:
            raise InvalidOwnerError(
                f"{operation} is only available in {mode} ownership mode.",
                code="WRONG_MODE",
            )

    def _validated_role(self, role: Optional[str]) -> str:
        role = role if role is not None else self.config.default_role
        if not self.registry.is_valid_role(role):
            raise InvalidOwnerError(f"The role [{role}] is not valid.", code="INVALID_ROLE")
        return role

    def _check_capacity(self, resource_ref: EntityRef, incoming: int = 1) -> None:
        limit = self.config.max_owners
        if limit is None:
            return
        if self.store.count(resource_ref) + incoming > limit:
            raise InvalidOwnerError(
                f"{resource_ref} cannot have more than {limit} owners.",
                code="MAX_OWNERS_EXCEEDED",
            )

    def _publish(self, event: OwnershipEvent, fire_event: bool) -> None:
        if not fire_event or not self.config.events.enabled(event.type):
            return
        if event.actor is None:
            event.actor = self.context.current_ref()
        self.sink.publish(event)

    def _invalidate(self, resource_ref: EntityRef) -> None:
        if self.cache is not None:
            self.cache.invalidate_resource(resource_ref)

    @contextmanager
    def _unit(self, resource_ref: EntityRef) -> Iterator[None]:
        """Commit the enclosed writes together, or roll them back."""
        try:
            yield
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise
        finally:
            self._invalidate(resource_ref)

    # ------------------------------------------------------------------
    # Multiple ownership
    # ------------------------------------------------------------------

    def add_owner(
        self,
        resource: Any,
        owner: Any,
        role: Optional[str] = None,
        permissions: Optional[Iterable[str]] = None,
        fire_event: bool = True,
        notify_update: bool = False,
    ) -> OwnershipModel:
        """Grant ``owner`` a role on ``resource``.

        An existing record of the pair is updated in place; only a new record
        publishes ``ownership.created``. Set ``notify_update`` to publish
        ``ownership.updated`` for the in-place path.

        Raises:
            InvalidOwnerError: Invalid role, wrong mode, unreferenceable owner
                or resource, or ``max_owners`` reached
        """
        self._require_mode("multiple", "add_owner")
        role = self._validated_role(role)
        resource_ref = to_ref(resource)
        owner_ref = to_ref(owner)

        with self._unit(resource_ref):
            if not self.store.exists(resource_ref, owner_ref):
                self._check_capacity(resource_ref)
            record, created = self.store.upsert(
                resource_ref, owner_ref, role, permissions, commit=False
            )
        self.store.db.refresh(record)

        self.logger.info(
            "ownership_added" if created else "ownership_updated",
            resource=str(resource_ref),
            owner=str(owner_ref),
            role=role,
        )
        if created:
            self._publish(OwnershipEvent.created(resource_ref, record.to_dict()), fire_event)
        elif notify_update:
            delta = {
                **owner_ref.as_owner_columns(),
                "role": role,
                "permissions": normalize_permissions(permissions),
            }
            self._publish(OwnershipEvent.updated(resource_ref, delta), fire_event)
        return record

    def add_owners(
        self,
        resource: Any,
        owners: Iterable[Any],
        role: Optional[str] = None,
        permissions: Optional[Iterable[str]] = None,
        fire_event: bool = True,
    ) -> List[OwnershipModel]:
        """Add several owners with the same role in one transaction.

        Owners, role and ``max_owners`` are checked before the first write;
        repeated owners are added once.
        """
        self._require_mode("multiple", "add_owners")
        role = self._validated_role(role)
        resource_ref = to_ref(resource)
        owner_refs = list(dict.fromkeys(to_ref(owner) for owner in owners))

        with self._unit(resource_ref):
            incoming = [
                ref for ref in owner_refs if not self.store.exists(resource_ref, ref)
            ]
            self._check_capacity(resource_ref, incoming=len(incoming))
            results = [
                self.store.upsert(resource_ref, ref, role, permissions, commit=False)
                for ref in owner_refs
            ]

        self.logger.info(
            "ownership_added_many",
            resource=str(resource_ref),
            added=sum(1 for _, created in results if created),
            updated=sum(1 for _, created in results if not created),
            role=role,
        )
        records = []
        for record, created in results:
            self.store.db.refresh(record)
            if created:
                self._publish(OwnershipEvent.created(resource_ref, record.to_dict()), fire_event)
            records.append(record)
        return records

    def update_owner_role(
        self, resource: Any, owner: Any, role: str, fire_event: bool = True
    ) -> bool:
        """Change the role of an existing owner. Returns whether a record changed."""
        self._require_mode("multiple", "update_owner_role")
        role = self._validated_role(role)
        resource_ref = to_ref(resource)
        owner_ref = to_ref(owner)

        with self._unit(resource_ref):
            updated = self.store.update_role(resource_ref, owner_ref, role, commit=False)

        if updated > 0:
            self.logger.info(
                "ownership_role_updated",
                resource=str(resource_ref),
                owner=str(owner_ref),
                role=role,
            )
            delta = {**owner_ref.as_owner_columns(), "role": role}
            self._publish(OwnershipEvent.updated(resource_ref, delta), fire_event)
        return updated > 0

    def sync_owners(
        self,
        resource: Any,
        owners: Iterable[Any],
        role: Optional[str] = None,
        permissions: Optional[Iterable[str]] = None,
        fire_event: bool = False,
    ) -> List[OwnershipModel]:
        """Replace every owner of ``resource`` with ``owners``.

        Existing records are deleted first, so every given owner is created
        fresh. The whole replacement is one transaction.
        """
        self._require_mode("multiple", "sync_owners")
        role = self._validated_role(role)
        resource_ref = to_ref(resource)
        owner_refs = list(dict.fromkeys(to_ref(owner) for owner in owners))

        limit = self.config.max_owners
        if limit is not None and len(owner_refs) > limit:
            raise InvalidOwnerError(
                f"{resource_ref} cannot have more than {limit} owners.",
                code="MAX_OWNERS_EXCEEDED",
            )

        with self._unit(resource_ref):
            removed = self.store.delete_all(resource_ref, commit=False)
            records = [
                self.store.upsert(resource_ref, ref, role, permissions, commit=False)[0]
                for ref in owner_refs
            ]

        self.logger.info(
            "ownership_synced",
            resource=str(resource_ref),
            removed=removed,
            added=len(records),
        )
        for record in records:
            self.store.db.refresh(record)
            self._publish(OwnershipEvent.created(resource_ref, record.to_dict()), fire_event)
        return records

    # ------------------------------------------------------------------
    # Both modes
    # ------------------------------------------------------------------

    def remove_owner(self, resource: Any, owner: Any, fire_event: bool = True) -> bool:
        """Remove ``owner`` from ``resource``. Returns whether anything was removed.

        In single mode the inline owner is cleared only if it is ``owner``.
        """
        owner_ref = to_ref(owner)
        if self.config.is_single:
            current = self._inline_owner(resource)
            if current != owner_ref:
                return False
            return self.clear_owner(resource, fire_event=fire_event)

        resource_ref = to_ref(resource)
        with self._unit(resource_ref):
            deleted = self.store.delete(resource_ref, owner_ref, commit=False)

        if deleted > 0:
            self.logger.info(
                "ownership_removed", resource=str(resource_ref), owner=str(owner_ref)
            )
            self._publish(OwnershipEvent.deleted(resource_ref, owner_ref), fire_event)
        return deleted > 0

    def transfer_ownership(
        self, resource: Any, from_owner: Any, to_owner: Any, fire_event: bool = True
    ) -> bool:
        """Hand ``from_owner``'s ownership over to ``to_owner``.

        Single mode: equivalent to ``set_owner(to_owner)``. Multiple mode: the
        existing record is rewritten in place, keeping role and permissions.

        Returns:
            False when ``from_owner`` holds no record (multiple mode)

        Raises:
            InvalidOwnerError: If ``to_owner`` already holds a record
        """
        if self.config.is_single:
            return self.set_owner(resource, to_owner, fire_event=fire_event)

        resource_ref = to_ref(resource)
        from_ref = to_ref(from_owner)
        to_owner_ref = to_ref(to_owner)

        record = self.store.find(resource_ref, from_ref)
        if record is None:
            return False
        if from_ref == to_owner_ref:
            return True
        if self.store.exists(resource_ref, to_owner_ref):
            raise InvalidOwnerError(
                f"{to_owner_ref} already owns {resource_ref}.", code="ALREADY_OWNER"
            )

        with self._unit(resource_ref):
            self.store.update(record, owner=to_owner_ref, commit=False)

        self.logger.info(
            "ownership_transferred",
            resource=str(resource_ref),
            from_owner=str(from_ref),
            to_owner=str(to_owner_ref),
            role=record.role,
        )
        self._publish(
            OwnershipEvent.transferred(resource_ref, from_ref, to_owner_ref), fire_event
        )
        return True

    def clear_all_owners(self, resource: Any, fire_event: bool = True) -> int:
        """Remove every owner. Returns the number of owners removed."""
        if self.config.is_single:
            had_owner = self._inline_owner(resource) is not None
            self.clear_owner(resource, fire_event=fire_event)
            return 1 if had_owner else 0

        resource_ref = to_ref(resource)
        with self._unit(resource_ref):
            removed = self.store.delete_all(resource_ref, commit=False)
        self.logger.info("ownership_cleared", resource=str(resource_ref), removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Single ownership
    # ------------------------------------------------------------------

    def _inline_owner(self, resource: Any) -> Optional[EntityRef]:
        owner_type = getattr(resource, self.config.owner_type_attr, None)
        owner_id = getattr(resource, self.config.owner_id_attr, None)
        if owner_type is None or owner_id is None:
            return None
        try:
            return make_ref(owner_type, owner_id)
        except InvalidOwnerError:
            return None

    def _save_resource(self, resource: Any) -> None:
        db = self.store.db
        try:
            db.add(resource)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(resource)

    def set_owner(self, resource: Any, owner: Any, fire_event: bool = True) -> bool:
        """Make ``owner`` the sole owner of ``resource`` and persist it."""
        self._require_mode("single", "set_owner")
        owner_ref = to_ref(owner)

        setattr(resource, self.config.owner_type_attr, owner_ref.type)
        setattr(resource, self.config.owner_id_attr, owner_ref.id)
        self._save_resource(resource)

        resource_ref = to_ref(resource)
        self.logger.info("ownership_set", resource=str(resource_ref), owner=str(owner_ref))
        self._publish(
            OwnershipEvent.updated(resource_ref, owner_ref.as_owner_columns()), fire_event
        )
        return True

    def clear_owner(self, resource: Any, fire_event: bool = True) -> bool:
        """Remove the inline owner of ``resource`` and persist it."""
        self._require_mode("single", "clear_owner")
        previous = self._inline_owner(resource)

        setattr(resource, self.config.owner_type_attr, None)
        setattr(resource, self.config.owner_id_attr, None)
        self._save_resource(resource)

        resource_ref = to_ref(resource)
        self.logger.info(
            "ownership_cleared",
            resource=str(resource_ref),
            previous_owner=str(previous) if previous else None,
        )
        self._publish(OwnershipEvent.deleted(resource_ref, None), fire_event)
        return True
