"""
Ownership events and the sinks they are published to.

The mutation protocol publishes one event per state change through an
injected ``EventSink``; hosts plug in their own dispatcher, tests use
``RecordingEventSink``.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import structlog

from .refs import EntityRef

logger = structlog.get_logger()


class OwnershipEventTypes:
    """Event types published on ownership changes."""

    CREATED = "ownership.created"
    UPDATED = "ownership.updated"
    DELETED = "ownership.deleted"
    TRANSFERRED = "ownership.transferred"

    ALL = (CREATED, UPDATED, DELETED, TRANSFERRED)


def ref_payload(ref: Optional[EntityRef]) -> Dict[str, Optional[str]]:
    """Owner reference as published in event payloads."""
    if ref is None:
        return {"owner_type": None, "owner_id": None}
    return {"owner_type": ref.type, "owner_id": ref.id}


class OwnershipEvent:
    """
    A change of ownership on a resource.

    ``data`` holds the type specific payload:
    - created: ``record`` (the new ownership record as a dict)
    - updated: ``delta`` (the changed owner attributes)
    - deleted: ``owner`` (snapshot of the removed owner reference)
    - transferred: ``from`` and ``to`` owner references
    """

    def __init__(
        self,
        event_type: str,
        resource: EntityRef,
        data: Dict[str, Any],
        actor: Optional[EntityRef] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type
        self.resource = resource
        self.data = data
        self.actor = actor
        self.created_at = datetime.now(timezone.utc)

    @classmethod
    def created(cls, resource: EntityRef, record: Dict[str, Any], **kwargs) -> "OwnershipEvent":
        return cls(OwnershipEventTypes.CREATED, resource, {"record": record}, **kwargs)

    @classmethod
    def updated(cls, resource: EntityRef, delta: Dict[str, Any], **kwargs) -> "OwnershipEvent":
        return cls(OwnershipEventTypes.UPDATED, resource, {"delta": delta}, **kwargs)

    @classmethod
    def deleted(
        cls, resource: EntityRef, owner: Optional[EntityRef], **kwargs
    ) -> "OwnershipEvent":
        return cls(OwnershipEventTypes.DELETED, resource, {"owner": ref_payload(owner)}, **kwargs)

    @classmethod
    def transferred(
        cls, resource: EntityRef, previous: EntityRef, new: EntityRef, **kwargs
    ) -> "OwnershipEvent":
        return cls(
            OwnershipEventTypes.TRANSFERRED,
            resource,
            {"from": ref_payload(previous), "to": ref_payload(new)},
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the event to a dictionary."""
        return {
            "id": self.id,
            "type": self.type,
            "resource": {"type": self.resource.type, "id": self.resource.id},
            "data": self.data,
            "actor": ref_payload(self.actor) if self.actor else None,
            "created_at": self.created_at.isoformat(),
        }

    def __str__(self) -> str:
        return f"OwnershipEvent(id={self.id[:8]}, type={self.type}, resource={self.resource})"

    def __repr__(self) -> str:
        return self.__str__()


class EventSink(ABC):
    """Destination of ownership events."""

    @abstractmethod
    def publish(self, event: OwnershipEvent) -> None:
        """Publish one event."""


class NullEventSink(EventSink):
    """Discards every event."""

    def publish(self, event: OwnershipEvent) -> None:
        return None


class RecordingEventSink(EventSink):
    """Keeps published events in memory."""

    def __init__(self):
        self.events: List[OwnershipEvent] = []

    def publish(self, event: OwnershipEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> List[OwnershipEvent]:
        return [event for event in self.events if event.type == event_type]

    @property
    def types(self) -> List[str]:
        return [event.type for event in self.events]

    def clear(self) -> None:
        self.events.clear()


class LoggingEventSink(EventSink):
    """Writes every event to the structured log."""

    def __init__(self, log_event: str = "ownership_event"):
        self.log_event = log_event
        self.logger = logger.bind(sink="logging")

    def publish(self, event: OwnershipEvent) -> None:
        self.logger.info(
            self.log_event,
            event_type=event.type,
            event_id=event.id,
            resource=str(event.resource),
            data=event.data,
        )


class FanoutEventSink(EventSink):
    """Publishes each event to several sinks in order."""

    def __init__(self, sinks: Iterable[EventSink]):
        self.sinks = list(sinks)

    def publish(self, event: OwnershipEvent) -> None:
        for sink in self.sinks:
            sink.publish(event)
