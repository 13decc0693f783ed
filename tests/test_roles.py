"""Unit tests for the role registry."""

from resource_ownership.config import DEFAULT_ROLES, RoleDefinition
from resource_ownership.roles import NO_PERMISSIONS, RoleRegistry


def make_registry() -> RoleRegistry:
    return RoleRegistry(DEFAULT_ROLES)


class TestRoleValidity:
    def test_configured_roles_are_valid(self):
        registry = make_registry()
        for role in ("owner", "admin", "editor", "viewer"):
            assert registry.is_valid_role(role)

    def test_unknown_role_is_invalid(self):
        registry = make_registry()

        assert not registry.is_valid_role("superuser")
        assert not registry.is_valid_role(None)
        assert not registry.is_valid_role("")

    def test_membership_is_by_key_not_label(self):
        registry = make_registry()

        assert "editor" in registry
        assert "Editor" not in registry

    def test_roles_keep_configured_order(self):
        assert make_registry().roles() == ["owner", "admin", "editor", "viewer"]
        assert len(make_registry()) == 4


class TestResolvePermissions:
    def test_wildcard_grants_everything(self):
        resolved = make_registry().resolve_permissions("owner")

        assert resolved.grants_all
        assert "anything" in resolved
        assert "*" not in resolved.permissions

    def test_explicit_permissions(self):
        resolved = make_registry().resolve_permissions("editor")

        assert not resolved.grants_all
        assert resolved.permissions == frozenset({"view", "edit"})
        assert "edit" in resolved
        assert "delete" not in resolved

    def test_unknown_role_grants_nothing(self):
        resolved = make_registry().resolve_permissions("ghost")

        assert resolved is NO_PERMISSIONS
        assert not resolved
        assert "view" not in resolved

    def test_none_role_grants_nothing(self):
        assert not make_registry().resolve_permissions(None)

    def test_role_without_permissions(self):
        registry = RoleRegistry({"guest": RoleDefinition(name="Guest")})

        assert registry.is_valid_role("guest")
        assert not registry.resolve_permissions("guest")


def test_labels():
    assert make_registry().labels() == {
        "owner": "Owner",
        "admin": "Administrator",
        "editor": "Editor",
        "viewer": "Viewer",
    }
