"""
Exceptions raised by the ownership package.

Every error carries a stable ``code`` for programmatic handling and can be
serialized with ``to_dict()``.
"""

from typing import Any, Dict


class OwnershipError(Exception):
    """Base class for ownership errors.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    default_code = "OWNERSHIP_ERROR"

    def __init__(self, message: str, code: str = ""):
        self.code = code or self.default_code
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
        }


class InvalidOwnerError(OwnershipError):
    """Raised for an invalid role, a mode mismatch, or a value that is not an owner."""

    default_code = "INVALID_OWNER"

    def __init__(self, message: str = "The given owner is not valid.", code: str = ""):
        super().__init__(message, code)


class OwnershipConfigError(OwnershipError):
    """Raised when the ownership configuration is unusable. Not recoverable."""

    default_code = "INVALID_CONFIGURATION"


class OwnershipDenied(OwnershipError):
    """Raised by the policy layer when an actor may not act on a resource."""

    default_code = "OWNERSHIP_DENIED"

    def __init__(self, action: str, resource_type: str, resource_id: str):
        self.action = action
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"Not allowed to {action} {resource_type} {resource_id}: "
            "you do not own this resource."
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "message": self.message,
        }
