"""Role and permission registry."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional

from .config import WILDCARD, RoleDefinition


@dataclass(frozen=True)
class ResolvedPermissions:
    """Effective permissions of a role.

    ``grants_all`` is set when the role holds the wildcard; membership tests
    then succeed for every permission.
    """

    permissions: FrozenSet[str] = field(default_factory=frozenset)
    grants_all: bool = False

    def __contains__(self, permission: object) -> bool:
        return self.grants_all or permission in self.permissions

    def __bool__(self) -> bool:
        return self.grants_all or bool(self.permissions)


NO_PERMISSIONS = ResolvedPermissions()


class RoleRegistry:
    """Read-only view over the configured role table."""

    def __init__(self, roles: Mapping[str, RoleDefinition]):
        self._roles: Dict[str, RoleDefinition] = dict(roles)

    def is_valid_role(self, role: Optional[str]) -> bool:
        """True iff ``role`` is a key of the role table."""
        return role is not None and role in self._roles

    def get(self, role: str) -> Optional[RoleDefinition]:
        return self._roles.get(role)

    def resolve_permissions(self, role: Optional[str]) -> ResolvedPermissions:
        """Permission set granted by ``role``; unknown roles grant nothing."""
        definition = self._roles.get(role) if role is not None else None
        if definition is None:
            return NO_PERMISSIONS
        permissions = frozenset(definition.permissions)
        return ResolvedPermissions(
            permissions=permissions - {WILDCARD},
            grants_all=WILDCARD in permissions,
        )

    def roles(self) -> List[str]:
        return list(self._roles)

    def labels(self) -> Dict[str, str]:
        return {key: definition.name for key, definition in self._roles.items()}

    def __contains__(self, role: object) -> bool:
        return role in self._roles

    def __len__(self) -> int:
        return len(self._roles)
