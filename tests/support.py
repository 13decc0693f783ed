"""Helpers shared by the test modules."""

from resource_ownership.config import OwnershipConfig, Settings, build_config


def make_config(mode: str, **overrides) -> OwnershipConfig:
    """Build a configuration that ignores the process environment file."""
    return build_config(Settings(_env_file=None), mode=mode, **overrides)
