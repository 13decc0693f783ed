"""
SQLAlchemy hooks for ownable models.

- single mode: new resources default to the current actor as owner, and ORM
  selects of ownable models are restricted to the current actor when global
  scoping is on
- multiple mode: the creator of a resource becomes its owner, and deleting a
  resource deletes its ownership records

The current actor is read from the ``ActorContext`` bound to the session
(see ``context.bind_context``); sessions without one are left untouched.
Decisions cached for a resource whose records change here are dropped from
the ``DecisionCache`` bound to the session (see ``cache.bind_cache``).
"""

from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple

import structlog
from sqlalchemy import delete, event, insert
from sqlalchemy.orm import Session, object_session, with_loader_criteria

from .cache import cache_of
from .config import OwnershipConfig
from .context import context_of
from .db.base import Base
from .db.models import Ownable, OwnershipModel
from .engine import should_scope, single_owner_criteria
from .errors import OwnershipConfigError
from .refs import EntityRef, morph_type_of, try_ref

logger = structlog.get_logger()

SKIP_SCOPE_OPTION = "skip_ownership_scope"


def _forget_decisions(target: Any, resource: Optional[EntityRef]) -> None:
    cache = cache_of(object_session(target))
    if cache is not None and resource is not None:
        cache.invalidate_resource(resource)


def ownable_models(base: Any) -> List[type]:
    """Mapped classes of ``base`` that are ownable."""
    return [
        mapper.class_
        for mapper in base.registry.mappers
        if issubclass(mapper.class_, Ownable)
    ]


def check_model_modes(config: OwnershipConfig, base: Any) -> None:
    """Reject ownable models that cannot work under the configured mode.

    Raises:
        OwnershipConfigError: A model pins the other mode, or lacks the inline
            owner columns in single mode
    """
    for cls in ownable_models(base):
        mapper = cls.__mapper__
        pinned = getattr(cls, "__ownership_mode__", None)
        if pinned is not None and pinned != config.mode:
            raise OwnershipConfigError(
                f"{cls.__name__} is pinned to {pinned} ownership but the configured "
                f"mode is {config.mode}.",
                code="MIXED_MODES",
            )
        if config.is_single:
            missing = [
                attr
                for attr in (config.owner_type_attr, config.owner_id_attr)
                if attr not in mapper.attrs
            ]
            if missing:
                raise OwnershipConfigError(
                    f"{cls.__name__} has no {', '.join(missing)} column(s) for "
                    f"morph '{config.morph_name}'.",
                    code="MISSING_OWNER_COLUMNS",
                )


class OwnershipHooks:
    """Registers and removes the ownership event listeners."""

    def __init__(self, config: OwnershipConfig):
        self.config = config
        self._listeners: List[Tuple[Any, str, Callable]] = []

    @property
    def installed(self) -> bool:
        return bool(self._listeners)

    def install(self, base: Optional[Any] = None) -> "OwnershipHooks":
        """Validate the ownable models of ``base`` and register their listeners.

        Models must be declared before installation; ``base`` defaults to the
        package declarative base.
        """
        base = base if base is not None else Base
        check_model_modes(self.config, base)
        if self.installed:
            return self

        models = ownable_models(base)
        for model in models:
            if self.config.is_single:
                self._listen(model, "before_insert", self._assign_current_owner)
            else:
                if self.config.auto_assign_creator:
                    self._listen(model, "after_insert", self._assign_creator)
                self._listen(model, "after_delete", self._cascade_delete)
        if self.config.is_single and self.config.apply_global_scope:
            self._listen(Session, "do_orm_execute", self._scope_to_current)

        logger.info(
            "ownership_hooks_installed",
            mode=self.config.mode,
            models=[model.__name__ for model in models],
        )
        return self

    def remove(self) -> None:
        for target, name, fn in self._listeners:
            event.remove(target, name, fn)
        self._listeners.clear()

    def _listen(self, target: Any, name: str, fn: Callable, **kwargs: Any) -> None:
        event.listen(target, name, fn, **kwargs)
        self._listeners.append((target, name, fn))

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def _assign_current_owner(self, mapper, connection, target) -> None:
        type_attr = self.config.owner_type_attr
        id_attr = self.config.owner_id_attr
        if getattr(target, type_attr, None) or getattr(target, id_attr, None):
            return
        context = context_of(object_session(target))
        owner = context.current_ref() if context is not None else None
        if owner is None:
            return
        setattr(target, type_attr, owner.type)
        setattr(target, id_attr, owner.id)

    def _assign_creator(self, mapper, connection, target) -> None:
        context = context_of(object_session(target))
        owner = context.current_ref() if context is not None else None
        resource = try_ref(target)
        if owner is None or resource is None:
            return
        now = datetime.now(timezone.utc)
        connection.execute(
            insert(OwnershipModel.__table__).values(
                ownable_type=resource.type,
                ownable_id=resource.id,
                owner_type=owner.type,
                owner_id=owner.id,
                role=self.config.default_role,
                permissions=None,
                created_at=now,
                updated_at=now,
            )
        )
        _forget_decisions(target, resource)
        logger.info("ownership_creator_assigned", resource=str(resource), owner=str(owner))

    def _cascade_delete(self, mapper, connection, target) -> None:
        pk = mapper.primary_key_from_instance(target)
        if len(pk) != 1 or pk[0] is None:
            return
        table = OwnershipModel.__table__
        connection.execute(
            delete(table).where(
                table.c.ownable_type == morph_type_of(type(target)),
                table.c.ownable_id == str(pk[0]),
            )
        )
        _forget_decisions(target, try_ref(target))

    def _scope_to_current(self, execute_state) -> None:
        if (
            not execute_state.is_select
            or execute_state.is_column_load
            or execute_state.is_relationship_load
            or execute_state.execution_options.get(SKIP_SCOPE_OPTION, False)
        ):
            return
        context = context_of(execute_state.session)
        if not should_scope(self.config, context):
            return
        owner = context.current_ref()
        if owner is None:
            return

        options = [
            with_loader_criteria(
                mapper.class_,
                single_owner_criteria(self.config, mapper.class_, owner),
                include_aliases=True,
            )
            for mapper in execute_state.all_mappers
            if issubclass(mapper.class_, Ownable)
        ]
        if options:
            execute_state.statement = execute_state.statement.options(*options)
