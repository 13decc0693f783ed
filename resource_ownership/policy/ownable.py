"""
Policy for ownable resources.

An actor may view, update or delete a resource if the bypass predicate lets
them through, or if they own it. The three actions share the same check; the
action name only appears in denials.

This module holds no state: it asks the manager for the bypass decision and
the ownership decision, in that order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Tuple

from ..errors import OwnershipDenied
from ..refs import try_ref

if TYPE_CHECKING:
    from ..manager import OwnershipManager

# Actions recognised by authorize()
ACTIONS: Tuple[str, ...] = ("view", "update", "delete")


class OwnablePolicy:
    """View/update/delete authorization for ownable resources."""

    def __init__(self, manager: "OwnershipManager"):
        self.manager = manager

    def passes(self, actor: Any, resource: Any) -> bool:
        """Bypass first, then ownership. A missing actor never passes."""
        if actor is None:
            return False
        if self.manager.bypass(actor):
            return True
        return self.manager.is_owned_by(resource, actor)

    def view(self, actor: Any, resource: Any) -> bool:
        return self.passes(actor, resource)

    def update(self, actor: Any, resource: Any) -> bool:
        return self.passes(actor, resource)

    def delete(self, actor: Any, resource: Any) -> bool:
        return self.passes(actor, resource)

    def authorize(self, action: str, actor: Any, resource: Any) -> None:
        """Raise ``OwnershipDenied`` unless ``actor`` may perform ``action``.

        Raises:
            ValueError: If ``action`` is not one of ``ACTIONS``
            OwnershipDenied: If the check fails
        """
        if action not in ACTIONS:
            raise ValueError(
                f"Unknown action '{action}'. Allowed actions: {', '.join(ACTIONS)}"
            )
        if getattr(self, action)(actor, resource):
            return
        ref = try_ref(resource)
        raise OwnershipDenied(
            action=action,
            resource_type=ref.type if ref else type(resource).__name__,
            resource_id=ref.id if ref else "?",
        )
