"""
Resource Ownership

Ownership tracking and authorization for SQLAlchemy models, with single
(inline owner) and multiple (owners with roles) modes.
"""

import importlib.metadata

__version__ = importlib.metadata.version("resource-ownership")

from .cache import DecisionCache
from .config import OwnershipConfig, RoleDefinition, Settings, build_config, get_settings
from .context import ActorContext, bind_context
from .db.models import Ownable, OwnableMixin, OwnershipModel, ownable_mixin
from .engine import DecisionEngine
from .errors import InvalidOwnerError, OwnershipConfigError, OwnershipDenied, OwnershipError
from .events import (
    EventSink,
    FanoutEventSink,
    LoggingEventSink,
    NullEventSink,
    OwnershipEvent,
    OwnershipEventTypes,
    RecordingEventSink,
)
from .hooks import OwnershipHooks
from .manager import OwnershipManager
from .mutations import OwnershipMutator
from .policy import OwnablePolicy
from .refs import EntityRef, to_ref
from .roles import RoleRegistry

__all__ = [
    "ActorContext",
    "bind_context",
    "build_config",
    "DecisionCache",
    "DecisionEngine",
    "EntityRef",
    "EventSink",
    "FanoutEventSink",
    "get_settings",
    "InvalidOwnerError",
    "LoggingEventSink",
    "NullEventSink",
    "Ownable",
    "OwnableMixin",
    "ownable_mixin",
    "OwnablePolicy",
    "OwnershipConfig",
    "OwnershipConfigError",
    "OwnershipDenied",
    "OwnershipError",
    "OwnershipEvent",
    "OwnershipEventTypes",
    "OwnershipHooks",
    "OwnershipManager",
    "OwnershipModel",
    "OwnershipMutator",
    "RecordingEventSink",
    "RoleDefinition",
    "RoleRegistry",
    "Settings",
    "to_ref",
]
