"""Authorization policies built on the ownership decision engine."""

from ..errors import OwnershipDenied
from .ownable import ACTIONS, OwnablePolicy

__all__ = ["ACTIONS", "OwnablePolicy", "OwnershipDenied"]
