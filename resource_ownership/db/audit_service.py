"""
Audit Log Service.

Records ownership events in the audit log and answers history queries.
``AuditEventSink`` plugs the service into the mutation protocol.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session
from ulid import ULID

from ..events import EventSink, OwnershipEvent, OwnershipEventTypes
from ..refs import EntityRef
from .audit_models import AuditLogModel

_ACTIONS = {
    OwnershipEventTypes.CREATED: "created",
    OwnershipEventTypes.UPDATED: "updated",
    OwnershipEventTypes.DELETED: "deleted",
    OwnershipEventTypes.TRANSFERRED: "transferred",
}


def generate_ulid() -> str:
    """Generate a ULID for audit log entries."""
    return str(ULID())


class AuditService:
    """Service for managing ownership audit entries.

    Usage:
        audit = AuditService(db_session)
        audit.log_event(event)
        audit.get_entity_history("Document", "42")
    """

    def __init__(self, db: Session):
        self.db = db

    def log_event(self, event: OwnershipEvent, note: Optional[str] = None) -> AuditLogModel:
        """Record one ownership event.

        Args:
            event: The published event
            note: Optional human-readable note

        Returns:
            The created AuditLogModel
        """
        before: Optional[Dict[str, Any]] = None
        after: Optional[Dict[str, Any]] = None

        if event.type == OwnershipEventTypes.CREATED:
            after = event.data.get("record")
        elif event.type == OwnershipEventTypes.UPDATED:
            after = event.data.get("delta")
        elif event.type == OwnershipEventTypes.DELETED:
            before = event.data.get("owner")
        elif event.type == OwnershipEventTypes.TRANSFERRED:
            before = event.data.get("from")
            after = event.data.get("to")

        entry = AuditLogModel(
            id=generate_ulid(),
            ts=datetime.now(timezone.utc),
            actor_type=event.actor.type if event.actor else None,
            actor_id=event.actor.id if event.actor else None,
            action=_ACTIONS[event.type],
            entity_kind=event.resource.type,
            entity_id=event.resource.id,
            before=before,
            after=after,
            note=note,
            event_id=event.id,
        )

        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def get_entity_history(
        self, entity_kind: str, entity_id: str, limit: int = 100
    ) -> List[AuditLogModel]:
        """Get audit history for a resource, newest first."""
        return list(
            self.db.scalars(
                select(AuditLogModel)
                .where(
                    AuditLogModel.entity_kind == entity_kind,
                    AuditLogModel.entity_id == str(entity_id),
                )
                .order_by(desc(AuditLogModel.ts), desc(AuditLogModel.id))
                .limit(limit)
            )
        )

    def get_by_actor(self, actor: EntityRef, limit: int = 100) -> List[AuditLogModel]:
        """Get entries recorded while ``actor`` was acting."""
        return list(
            self.db.scalars(
                select(AuditLogModel)
                .where(
                    AuditLogModel.actor_type == actor.type,
                    AuditLogModel.actor_id == actor.id,
                )
                .order_by(desc(AuditLogModel.ts), desc(AuditLogModel.id))
                .limit(limit)
            )
        )

    def get_by_action(self, action: str, limit: int = 100) -> List[AuditLogModel]:
        """Get entries with a given action."""
        return list(
            self.db.scalars(
                select(AuditLogModel)
                .where(AuditLogModel.action == action)
                .order_by(desc(AuditLogModel.ts), desc(AuditLogModel.id))
                .limit(limit)
            )
        )


class AuditEventSink(EventSink):
    """Event sink persisting every event to the audit log."""

    def __init__(self, db: Session):
        self.audit = AuditService(db)

    def publish(self, event: OwnershipEvent) -> None:
        self.audit.log_event(event)
