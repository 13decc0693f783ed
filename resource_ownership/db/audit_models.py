"""
Audit Log Database Models.

Every published ownership change can be recorded with before/after
snapshots and the acting owner, giving a forensic trail of who owned what
and when.
"""

from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Index,
    String,
    Text,
)
from sqlalchemy.sql import func

from .base import Base


audit_action_enum = Enum(
    "created",
    "updated",
    "deleted",
    "transferred",
    name="ownership_audit_action",
)


class AuditLogModel(Base):
    """Audit log entry for one ownership change."""

    __tablename__ = "ownership_audit_log"

    # Primary key (ULID for sortability and uniqueness)
    id = Column(String(36), primary_key=True)

    ts = Column(
        DateTime(timezone=True),
        nullable=False,
        default=func.now(),
        index=True,
    )

    # Who performed the change; null for unattended changes
    actor_type = Column(String(255), nullable=True)
    actor_id = Column(String(64), nullable=True, index=True)

    action = Column(audit_action_enum, nullable=False, index=True)

    # Which resource was affected
    entity_kind = Column(String(255), nullable=False, index=True)
    entity_id = Column(String(64), nullable=False, index=True)

    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)

    note = Column(Text, nullable=True)

    # Id of the published event
    event_id = Column(String(36), nullable=True, index=True)

    __table_args__ = (
        Index("ix_ownership_audit_entity", "entity_kind", "entity_id"),
        Index("ix_ownership_audit_actor", "actor_type", "actor_id"),
        Index("ix_ownership_audit_entity_ts", "entity_kind", "entity_id", "ts"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "ts": self.ts.isoformat() if self.ts else None,
            "actor_type": self.actor_type,
            "actor_id": self.actor_id,
            "action": self.action,
            "entity_kind": self.entity_kind,
            "entity_id": self.entity_id,
            "before": self.before,
            "after": self.after,
            "note": self.note,
            "event_id": self.event_id,
        }
