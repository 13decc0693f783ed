"""Unit tests for ownership configuration."""

import pytest

from resource_ownership.config import (
    DEFAULT_ROLES,
    EventToggles,
    OwnershipConfig,
    RoleDefinition,
    Settings,
    build_config,
    default_bypass,
)
from resource_ownership.errors import OwnershipConfigError

from support import make_config


class Actor:
    def __init__(self, abilities=()):
        self.abilities = set(abilities)

    def can(self, ability):
        return ability in self.abilities


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OWNERSHIP_MODE", raising=False)
        settings = Settings(_env_file=None)

        assert settings.mode is None
        assert settings.morph_name == "owner"
        assert settings.apply_global_scope is True
        assert settings.guard == "web"
        assert settings.scope_in_background is False
        assert settings.cache_enabled is True
        assert settings.cache_ttl == 3600
        assert settings.cache_prefix == "ownership_"
        assert settings.table_name == "ownerships"
        assert settings.default_role == "owner"
        assert settings.auto_assign_creator is True
        assert settings.max_owners is None
        assert set(settings.roles) == {"owner", "admin", "editor", "viewer"}

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("OWNERSHIP_MODE", "multiple")
        monkeypatch.setenv("OWNERSHIP_MAX_OWNERS", "3")
        monkeypatch.setenv("OWNERSHIP_CACHE_ENABLED", "false")

        settings = Settings(_env_file=None)

        assert settings.mode == "multiple"
        assert settings.max_owners == 3
        assert settings.cache_enabled is False


class TestBuildConfig:
    """Tests for build_config()."""

    def test_missing_mode_is_rejected(self, monkeypatch):
        monkeypatch.delenv("OWNERSHIP_MODE", raising=False)
        with pytest.raises(OwnershipConfigError) as exc_info:
            build_config(Settings(_env_file=None))

        assert exc_info.value.code == "MODE_NOT_SET"

    def test_unsupported_mode_is_rejected(self):
        with pytest.raises(OwnershipConfigError) as exc_info:
            make_config("shared")

        assert exc_info.value.code == "MODE_NOT_SUPPORTED"
        assert "shared" in exc_info.value.message

    def test_mode_from_settings(self):
        config = build_config(Settings(_env_file=None, mode="single"))

        assert config.is_single
        assert not config.is_multiple

    def test_overrides_take_precedence(self):
        config = make_config("multiple", max_owners=5, default_role="editor")

        assert config.max_owners == 5
        assert config.default_role == "editor"

    def test_cache_and_events_are_grouped(self):
        settings = Settings(
            _env_file=None,
            mode="multiple",
            cache_ttl=60,
            event_ownership_deleted=False,
        )
        config = build_config(settings)

        assert config.cache.ttl == 60
        assert config.events.ownership_deleted is False
        assert config.events.enabled("ownership.created") is True
        assert config.events.enabled("ownership.deleted") is False

    def test_default_role_must_exist(self):
        with pytest.raises(OwnershipConfigError) as exc_info:
            make_config("multiple", default_role="superuser")

        assert exc_info.value.code == "INVALID_CONFIGURATION"
        assert "superuser" in exc_info.value.message

    def test_max_owners_must_be_positive(self):
        with pytest.raises(OwnershipConfigError):
            make_config("multiple", max_owners=0)

    def test_unique_owner_cannot_be_disabled(self):
        with pytest.raises(OwnershipConfigError) as exc_info:
            make_config("multiple", unique_owner=False)

        assert "unique_owner" in exc_info.value.message

    def test_morph_name_must_be_an_identifier(self):
        with pytest.raises(OwnershipConfigError):
            make_config("single", morph_name="owner-ref")

    def test_custom_roles(self):
        roles = {
            "owner": RoleDefinition(name="Owner", permissions=["*"]),
            "auditor": RoleDefinition(name="Auditor", permissions=["view", "export"]),
        }
        config = make_config("multiple", roles=roles)

        assert set(config.roles) == {"owner", "auditor"}

    def test_config_is_immutable(self):
        config = make_config("single")

        with pytest.raises(Exception):
            config.mode = "multiple"

    def test_owner_attribute_names_follow_morph_name(self):
        config = make_config("single", morph_name="holder")

        assert config.owner_type_attr == "holder_type"
        assert config.owner_id_attr == "holder_id"


class TestBypass:
    """Tests for the bypass predicate."""

    def test_default_bypass_uses_ability(self):
        assert default_bypass(Actor({"ownership.bypass"})) is True
        assert default_bypass(Actor({"something.else"})) is False

    def test_default_bypass_without_can(self):
        assert default_bypass(object()) is False
        assert default_bypass(None) is False

    def test_custom_bypass(self):
        config = make_config("single", bypass=lambda actor: actor == "root")

        assert config.is_bypassed("root") is True
        assert config.is_bypassed("alice") is False

    def test_build_config_bypass_argument(self):
        config = build_config(
            Settings(_env_file=None, mode="single"), bypass=lambda actor: True
        )

        assert config.is_bypassed(object()) is True


class TestEventToggles:
    def test_unknown_event_type_is_disabled(self):
        assert EventToggles().enabled("ownership.renamed") is False

    def test_all_enabled_by_default(self):
        toggles = EventToggles()
        for event_type in (
            "ownership.created",
            "ownership.updated",
            "ownership.deleted",
            "ownership.transferred",
        ):
            assert toggles.enabled(event_type)


def test_default_roles_shape():
    assert DEFAULT_ROLES["owner"].permissions == ["*"]
    assert DEFAULT_ROLES["viewer"].permissions == ["view"]
    assert isinstance(OwnershipConfig(mode="single").roles["admin"], RoleDefinition)
