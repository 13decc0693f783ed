"""
Ownership decision engine.

Answers "does this actor own / may this actor act on this resource". Every
check is total: an absent actor, an unresolvable reference or a missing
record yields False, never an exception.

The bypass predicate is not consulted here; the policy layer
evaluates it before asking the engine.
"""

from typing import Any, List, Optional

import structlog
from sqlalchemy import String, and_, cast, exists, false
from sqlalchemy.sql import Select

from .cache import DecisionCache
from .config import OWNER_ROLE, OwnershipConfig
from .context import ActorContext
from .db.models import OwnershipModel
from .db.store import OwnershipStore
from .errors import InvalidOwnerError
from .refs import EntityRef, make_ref, morph_type_of, try_ref
from .roles import RoleRegistry

logger = structlog.get_logger()


def should_scope(config: OwnershipConfig, context: Optional[ActorContext]) -> bool:
    """Whether listing queries should be restricted to the current actor."""
    if context is None:
        return False
    if not context.interactive and not config.scope_in_background:
        return False
    actor = context.current()
    if actor is None:
        return False
    return not config.is_bypassed(actor)


def single_owner_criteria(config: OwnershipConfig, model: type, owner: EntityRef):
    """WHERE clause matching rows of ``model`` whose inline owner is ``owner``."""
    return and_(
        getattr(model, config.owner_type_attr) == owner.type,
        getattr(model, config.owner_id_attr) == owner.id,
    )


def record_grants(registry: RoleRegistry, record: OwnershipModel, permission: str) -> bool:
    """Permission decision for one ownership record.

    Order: owner role, role wildcard, role permission, custom override.
    """
    if record.role == OWNER_ROLE:
        return True
    resolved = registry.resolve_permissions(record.role)
    if resolved.grants_all:
        return True
    if permission in resolved.permissions:
        return True
    return permission in record.custom_permissions


class DecisionEngine:
    """Ownership and permission checks for one session."""

    def __init__(
        self,
        config: OwnershipConfig,
        store: OwnershipStore,
        context: ActorContext,
        registry: Optional[RoleRegistry] = None,
        cache: Optional[DecisionCache] = None,
    ):
        self.config = config
        self.store = store
        self.context = context
        self.registry = registry or RoleRegistry(config.roles)
        self.cache = cache

    # ------------------------------------------------------------------
    # Reference helpers
    # ------------------------------------------------------------------

    def _owner_ref(self, owner: Any) -> Optional[EntityRef]:
        if owner is None:
            return self.context.current_ref()
        return try_ref(owner)

    def _inline_owner(self, resource: Any) -> Optional[EntityRef]:
        owner_type = getattr(resource, self.config.owner_type_attr, None)
        owner_id = getattr(resource, self.config.owner_id_attr, None)
        if owner_type is None or owner_id is None:
            return None
        try:
            return make_ref(owner_type, owner_id)
        except InvalidOwnerError:
            return None

    def _cached(self, resource: EntityRef, parts: tuple, compute) -> Any:
        if self.cache is None:
            return compute()
        return self.cache.remember(self.cache.key(resource, *parts), compute)

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def is_owned_by(self, resource: Any, owner: Any = None) -> bool:
        """Whether ``owner`` (default: the current actor) owns ``resource``."""
        owner_ref = self._owner_ref(owner)
        if owner_ref is None or resource is None:
            return False

        if self.config.is_single:
            stored = self._inline_owner(resource)
            return stored is not None and stored == owner_ref

        return self._has_record(resource, owner_ref)

    def has_owner(self, resource: Any, owner: Any) -> bool:
        """Whether ``owner`` is one of the owners of ``resource``."""
        owner_ref = try_ref(owner)
        if owner_ref is None or resource is None:
            return False
        if self.config.is_single:
            return self._inline_owner(resource) == owner_ref
        return self._has_record(resource, owner_ref)

    def _has_record(self, resource: Any, owner_ref: EntityRef, role: Optional[str] = None) -> bool:
        resource_ref = try_ref(resource)
        if resource_ref is None:
            return False
        return self._cached(
            resource_ref,
            ("owner", owner_ref.type, owner_ref.id, role or ""),
            lambda: self.store.exists(resource_ref, owner_ref, role=role),
        )

    def has_owner_with_role(self, resource: Any, owner: Any, role: str) -> bool:
        owner_ref = try_ref(owner)
        if owner_ref is None or resource is None or self.config.is_single:
            return False
        return self._has_record(resource, owner_ref, role=role)

    def get_ownership_record(self, resource: Any, owner: Any) -> Optional[OwnershipModel]:
        resource_ref = try_ref(resource)
        owner_ref = try_ref(owner)
        if resource_ref is None or owner_ref is None:
            return None
        return self.store.find(resource_ref, owner_ref)

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def has_permission(self, resource: Any, owner: Any, permission: str) -> bool:
        """Whether ``owner`` holds ``permission`` on ``resource``.

        In single mode the sole owner holds every permission.
        """
        owner_ref = self._owner_ref(owner)
        if owner_ref is None or resource is None:
            return False

        if self.config.is_single:
            return self.is_owned_by(resource, owner_ref)

        resource_ref = try_ref(resource)
        if resource_ref is None:
            return False

        def decide() -> bool:
            record = self.store.find(resource_ref, owner_ref)
            if record is None:
                return False
            return record_grants(self.registry, record, permission)

        granted = self._cached(
            resource_ref, ("perm", owner_ref.type, owner_ref.id, permission), decide
        )
        logger.debug(
            "ownership_permission_checked",
            resource=str(resource_ref),
            owner=str(owner_ref),
            permission=permission,
            granted=granted,
        )
        return granted

    owner_has_permission = has_permission

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def get_owner(self, resource: Any) -> Optional[EntityRef]:
        """Inline owner of ``resource``. Single mode only."""
        if not self.config.is_single:
            raise InvalidOwnerError(
                "get_owner is only available in single ownership mode.", code="WRONG_MODE"
            )
        return self._inline_owner(resource)

    def get_owners(self, resource: Any, owner_type: Optional[str] = None) -> List[EntityRef]:
        if self.config.is_single:
            owner = self._inline_owner(resource)
            if owner is None or (owner_type and owner.type != owner_type):
                return []
            return [owner]
        resource_ref = try_ref(resource)
        if resource_ref is None:
            return []
        return [record.owner_ref for record in self.store.list(resource_ref, owner_type=owner_type)]

    def get_owners_with_role(self, resource: Any, role: str) -> List[EntityRef]:
        resource_ref = try_ref(resource)
        if resource_ref is None or self.config.is_single:
            return []
        return [record.owner_ref for record in self.store.list(resource_ref, role=role)]

    def owners_count(self, resource: Any) -> int:
        if self.config.is_single:
            return 1 if self._inline_owner(resource) is not None else 0
        resource_ref = try_ref(resource)
        if resource_ref is None:
            return 0
        return self.store.count(resource_ref)

    # ------------------------------------------------------------------
    # Query scoping
    # ------------------------------------------------------------------

    def should_scope(self) -> bool:
        return should_scope(self.config, self.context)

    def scope(self, stmt: Select, model: type) -> Select:
        """Restrict ``stmt`` to the current actor's rows when scoping applies (single mode)."""
        if not self.config.is_single or not self.should_scope():
            return stmt
        owner_ref = self.context.current_ref()
        if owner_ref is None:
            return stmt
        return stmt.where(single_owner_criteria(self.config, model, owner_ref))

    def owned_by(self, stmt: Select, model: type, owner: Any = None) -> Select:
        """Restrict ``stmt`` to rows of ``model`` owned by ``owner`` (default: current actor).

        An unresolvable owner matches no rows.
        """
        owner_ref = self._owner_ref(owner)
        if owner_ref is None:
            return stmt.where(false())

        if self.config.is_single:
            return stmt.where(single_owner_criteria(self.config, model, owner_ref))

        pk_column = model.__mapper__.primary_key[0]
        return stmt.where(
            exists().where(
                OwnershipModel.ownable_type == morph_type_of(model),
                OwnershipModel.ownable_id == cast(pk_column, String),
                OwnershipModel.owner_type == owner_ref.type,
                OwnershipModel.owner_id == owner_ref.id,
            )
        )
