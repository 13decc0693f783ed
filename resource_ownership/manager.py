"""
Ownership manager.

Single entry point wiring the registry, record store, decision engine,
mutation protocol and policy for one database session and one actor context.

Usage:
    config = build_config()
    manager = OwnershipManager(config, db, context=ActorContext(authenticator=current_user))
    manager.add_owner(project, alice, role="editor")
    manager.has_permission(project, alice, "edit")
"""

from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from .cache import DecisionCache, bind_cache
from .config import OwnershipConfig
from .context import ActorContext, bind_context
from .db.models import OwnershipModel
from .db.store import OwnershipStore
from .engine import DecisionEngine
from .errors import OwnershipConfigError
from .events import EventSink, NullEventSink
from .mutations import OwnershipMutator
from .policy import OwnablePolicy
from .refs import EntityRef, resolve_ref, try_ref
from .roles import RoleRegistry


class OwnershipManager:
    """Facade over the ownership components for one session."""

    def __init__(
        self,
        config: OwnershipConfig,
        db: Session,
        context: Optional[ActorContext] = None,
        sink: Optional[EventSink] = None,
        cache: Optional[DecisionCache] = None,
    ):
        if config.table_name != OwnershipModel.__tablename__:
            raise OwnershipConfigError(
                f"Configured table '{config.table_name}' does not match the mapped "
                f"ownership table '{OwnershipModel.__tablename__}'. Set "
                "OWNERSHIP_TABLE_NAME before importing the models.",
                code="TABLE_MISMATCH",
            )

        self.config = config
        self.db = db
        self.context = context or ActorContext(guard=config.guard)
        self.sink = sink or NullEventSink()
        self.cache = cache if cache is not None else DecisionCache.from_config(config.cache)
        self.registry = RoleRegistry(config.roles)
        self.store = OwnershipStore(db)
        self.engine = DecisionEngine(
            config, self.store, self.context, registry=self.registry, cache=self.cache
        )
        self.mutator = OwnershipMutator(
            config,
            self.store,
            self.context,
            sink=self.sink,
            registry=self.registry,
            cache=self.cache,
        )
        self.policy = OwnablePolicy(self)
        bind_context(db, self.context)
        bind_cache(db, self.cache)

    # ------------------------------------------------------------------
    # Actor context
    # ------------------------------------------------------------------

    def current(self) -> Any:
        return self.context.current()

    def set(self, owner: Any) -> "OwnershipManager":
        self.context.set(owner)
        return self

    def run_as(self, owner: Any, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return self.context.run_as(owner, fn, *args, **kwargs)

    def acting_as(self, owner: Any):
        return self.context.acting_as(owner)

    def bypass(self, actor: Any = None) -> bool:
        """Evaluate the bypass predicate for ``actor`` (default: the authenticated actor)."""
        if actor is None:
            actor = self.context.authenticated()
        return self.config.is_bypassed(actor)

    def should_scope(self) -> bool:
        return self.engine.should_scope()

    def resolve(self, ref: Optional[EntityRef]) -> Any:
        """Load the entity behind ``ref``, or None."""
        if ref is None:
            return None
        return resolve_ref(self.db, ref)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def is_owned_by(self, resource: Any, owner: Any = None) -> bool:
        return self.engine.is_owned_by(resource, owner)

    def has_owner(self, resource: Any, owner: Any) -> bool:
        return self.engine.has_owner(resource, owner)

    def has_owner_with_role(self, resource: Any, owner: Any, role: str) -> bool:
        return self.engine.has_owner_with_role(resource, owner, role)

    def has_permission(self, resource: Any, owner: Any, permission: str) -> bool:
        return self.engine.has_permission(resource, owner, permission)

    owner_has_permission = has_permission

    def get_ownership_record(self, resource: Any, owner: Any) -> Optional[OwnershipModel]:
        return self.engine.get_ownership_record(resource, owner)

    def get_owner(self, resource: Any, resolve: bool = False) -> Any:
        """Inline owner reference (or the loaded owner with ``resolve``). Single mode only."""
        ref = self.engine.get_owner(resource)
        return self.resolve(ref) if resolve else ref

    def get_owners(self, resource: Any, owner_type: Optional[str] = None):
        return self.engine.get_owners(resource, owner_type)

    def get_owners_with_role(self, resource: Any, role: str):
        return self.engine.get_owners_with_role(resource, role)

    def owners_count(self, resource: Any) -> int:
        return self.engine.owners_count(resource)

    def scope(self, stmt, model: type):
        return self.engine.scope(stmt, model)

    def owned_by(self, stmt, model: type, owner: Any = None):
        return self.engine.owned_by(stmt, model, owner)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_owner(self, resource: Any, owner: Any, role: Optional[str] = None, permissions=None, **kwargs):
        return self.mutator.add_owner(resource, owner, role, permissions, **kwargs)

    def add_owners(self, resource: Any, owners, role: Optional[str] = None, permissions=None, **kwargs):
        return self.mutator.add_owners(resource, owners, role, permissions, **kwargs)

    def remove_owner(self, resource: Any, owner: Any, **kwargs) -> bool:
        return self.mutator.remove_owner(resource, owner, **kwargs)

    def transfer_ownership(self, resource: Any, from_owner: Any, to_owner: Any, **kwargs) -> bool:
        return self.mutator.transfer_ownership(resource, from_owner, to_owner, **kwargs)

    def sync_owners(self, resource: Any, owners, role: Optional[str] = None, permissions=None, **kwargs):
        return self.mutator.sync_owners(resource, owners, role, permissions, **kwargs)

    def set_owner(self, resource: Any, owner: Any, **kwargs) -> bool:
        return self.mutator.set_owner(resource, owner, **kwargs)

    def clear_owner(self, resource: Any, **kwargs) -> bool:
        return self.mutator.clear_owner(resource, **kwargs)

    def clear_all_owners(self, resource: Any, **kwargs) -> int:
        return self.mutator.clear_all_owners(resource, **kwargs)

    def update_owner_role(self, resource: Any, owner: Any, role: str, **kwargs) -> bool:
        return self.mutator.update_owner_role(resource, owner, role, **kwargs)

    def __repr__(self) -> str:
        actor = try_ref(self.context.current())
        return f"OwnershipManager(mode={self.config.mode}, actor={actor})"
