"""
Database package for resource ownership.
"""

from .audit_models import AuditLogModel
from .audit_service import AuditEventSink, AuditService
from .base import Base, get_db, get_engine, get_session_local, init_database
from .models import Ownable, OwnableMixin, OwnershipModel, ownable_mixin
from .store import OwnershipStore

__all__ = [
    "AuditEventSink",
    "AuditLogModel",
    "AuditService",
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
    "Ownable",
    "OwnableMixin",
    "OwnershipModel",
    "OwnershipStore",
    "ownable_mixin",
]
