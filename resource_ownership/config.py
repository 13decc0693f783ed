"""
Configuration management for resource ownership.

``Settings`` reads the recognized options from the environment (prefix
``OWNERSHIP_``) or a ``.env`` file. ``build_config`` turns them into the
immutable ``OwnershipConfig`` that every component receives at construction.
"""

import keyword
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import OwnershipConfigError

WILDCARD = "*"
OWNER_ROLE = "owner"
BYPASS_ABILITY = "ownership.bypass"

SUPPORTED_MODES = ("single", "multiple")


class RoleDefinition(BaseModel):
    """A configured role: label, description and permission set."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., description="Human readable label")
    description: str = Field(default="", description="What the role allows")
    permissions: List[str] = Field(
        default_factory=list, description="Granted permissions; '*' grants all"
    )


DEFAULT_ROLES: Dict[str, RoleDefinition] = {
    "owner": RoleDefinition(
        name="Owner",
        description="Full access to the resource",
        permissions=[WILDCARD],
    ),
    "admin": RoleDefinition(
        name="Administrator",
        description="Can manage all aspects except ownership",
        permissions=["view", "edit", "delete", "manage_users"],
    ),
    "editor": RoleDefinition(
        name="Editor",
        description="Can view and edit content",
        permissions=["view", "edit"],
    ),
    "viewer": RoleDefinition(
        name="Viewer",
        description="Can only view content",
        permissions=["view"],
    ),
}


class Settings(BaseSettings):
    """Ownership settings."""

    model_config = SettingsConfigDict(
        env_prefix="OWNERSHIP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Mode has no default: an unset mode fails at build_config()
    mode: Optional[str] = Field(default=None, description="'single' or 'multiple'")

    # Single ownership
    morph_name: str = Field(default="owner")
    apply_global_scope: bool = Field(default=True)
    guard: str = Field(default="web")
    scope_in_background: bool = Field(default=False)

    # Decision cache
    cache_enabled: bool = Field(default=True)
    cache_ttl: int = Field(default=3600)
    cache_prefix: str = Field(default="ownership_")

    # Events
    event_ownership_created: bool = Field(default=True)
    event_ownership_updated: bool = Field(default=True)
    event_ownership_deleted: bool = Field(default=True)
    event_ownership_transferred: bool = Field(default=True)

    # Multiple ownership
    table_name: str = Field(default="ownerships")
    default_role: str = Field(default=OWNER_ROLE)
    roles: Dict[str, RoleDefinition] = Field(default_factory=lambda: dict(DEFAULT_ROLES))
    auto_assign_creator: bool = Field(default=True)
    max_owners: Optional[int] = Field(default=None)
    unique_owner: bool = Field(default=True)

    # Database
    database_url: str = Field(default="sqlite:///./resource_ownership.db")

    # Logging
    log_level: str = Field(default="INFO")


class CacheConfig(BaseModel):
    """Decision cache options."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = True
    ttl: int = Field(default=3600, ge=0)
    prefix: str = "ownership_"


class EventToggles(BaseModel):
    """Per-event enable flags."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ownership_created: bool = True
    ownership_updated: bool = True
    ownership_deleted: bool = True
    ownership_transferred: bool = True

    def enabled(self, event_type: str) -> bool:
        """Whether events of ``event_type`` (e.g. 'ownership.created') are published."""
        return bool(getattr(self, event_type.replace(".", "_"), False))


def default_bypass(actor: Any) -> bool:
    """Actors exposing ``can('ownership.bypass')`` returning truthy bypass checks."""
    can = getattr(actor, "can", None)
    if actor is None or not callable(can):
        return False
    return bool(can(BYPASS_ABILITY))


class OwnershipConfig(BaseModel):
    """Immutable configuration shared by every ownership component."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    mode: Literal["single", "multiple"]
    morph_name: str = "owner"
    apply_global_scope: bool = True
    guard: str = "web"
    bypass: Callable[[Any], bool] = default_bypass
    scope_in_background: bool = False
    cache: CacheConfig = Field(default_factory=CacheConfig)
    events: EventToggles = Field(default_factory=EventToggles)
    table_name: str = "ownerships"
    default_role: str = OWNER_ROLE
    roles: Dict[str, RoleDefinition] = Field(default_factory=lambda: dict(DEFAULT_ROLES))
    auto_assign_creator: bool = True
    max_owners: Optional[int] = None
    unique_owner: bool = True

    @model_validator(mode="after")
    def _check_consistency(self) -> "OwnershipConfig":
        if not self.morph_name.isidentifier() or keyword.iskeyword(self.morph_name):
            raise ValueError(f"morph_name '{self.morph_name}' is not a valid attribute name")
        if self.default_role not in self.roles:
            raise ValueError(
                f"default_role '{self.default_role}' is not one of the configured roles: "
                f"{', '.join(sorted(self.roles))}"
            )
        if self.max_owners is not None and self.max_owners < 1:
            raise ValueError("max_owners must be a positive integer or null")
        if not self.unique_owner:
            raise ValueError(
                "unique_owner cannot be disabled: (resource, owner) pairs are unique in storage"
            )
        return self

    @property
    def is_single(self) -> bool:
        return self.mode == "single"

    @property
    def is_multiple(self) -> bool:
        return self.mode == "multiple"

    @property
    def owner_type_attr(self) -> str:
        return f"{self.morph_name}_type"

    @property
    def owner_id_attr(self) -> str:
        return f"{self.morph_name}_id"

    def is_bypassed(self, actor: Any) -> bool:
        """Evaluate the host bypass predicate for ``actor``."""
        return bool(self.bypass(actor))


def build_config(
    settings: Optional[Settings] = None,
    bypass: Optional[Callable[[Any], bool]] = None,
    **overrides: Any,
) -> OwnershipConfig:
    """Build the immutable ownership configuration.

    Args:
        settings: Source settings. Defaults to the process settings.
        bypass: Host predicate granting unconditional access to privileged actors.
        **overrides: Field values that take precedence over ``settings``.

    Raises:
        OwnershipConfigError: If the mode is missing or unsupported, or the
            remaining options are inconsistent.
    """
    settings = settings or get_settings()
    mode = overrides.pop("mode", settings.mode)
    if not mode:
        raise OwnershipConfigError(
            "Ownership mode is not set. Set OWNERSHIP_MODE to 'single' or 'multiple'.",
            code="MODE_NOT_SET",
        )
    if mode not in SUPPORTED_MODES:
        raise OwnershipConfigError(
            f"Ownership mode '{mode}' is not supported. "
            f"Supported modes: {', '.join(SUPPORTED_MODES)}",
            code="MODE_NOT_SUPPORTED",
        )

    values: Dict[str, Any] = {
        "mode": mode,
        "morph_name": settings.morph_name,
        "apply_global_scope": settings.apply_global_scope,
        "guard": settings.guard,
        "scope_in_background": settings.scope_in_background,
        "cache": CacheConfig(
            enabled=settings.cache_enabled,
            ttl=settings.cache_ttl,
            prefix=settings.cache_prefix,
        ),
        "events": EventToggles(
            ownership_created=settings.event_ownership_created,
            ownership_updated=settings.event_ownership_updated,
            ownership_deleted=settings.event_ownership_deleted,
            ownership_transferred=settings.event_ownership_transferred,
        ),
        "table_name": settings.table_name,
        "default_role": settings.default_role,
        "roles": settings.roles,
        "auto_assign_creator": settings.auto_assign_creator,
        "max_owners": settings.max_owners,
        "unique_owner": settings.unique_owner,
    }
    if bypass is not None:
        values["bypass"] = bypass
    values.update(overrides)

    try:
        return OwnershipConfig(**values)
    except ValidationError as e:
        raise OwnershipConfigError(str(e)) from e


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get ownership settings."""
    return settings
