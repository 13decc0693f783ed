"""
Command Line Interface for resource ownership.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import build_config, get_settings
from ..db.base import create_ownership_engine, get_database_url, init_database
from ..errors import OwnershipConfigError
from ..roles import RoleRegistry

app = typer.Typer(help="Resource ownership - ownership tracking and authorization")
console = Console()


def _load_config(mode: Optional[str]):
    overrides = {"mode": mode} if mode else {}
    try:
        return build_config(get_settings(), **overrides)
    except OwnershipConfigError as e:
        console.print(f"[bold red]Invalid configuration[/bold red] ({e.code}): {e.message}")
        raise typer.Exit(code=1)


@app.command()
def roles():
    """List the configured roles and their permissions."""
    registry = RoleRegistry(get_settings().roles)

    table = Table(title="Ownership Roles", show_header=True, header_style="bold magenta")
    table.add_column("Role", style="cyan")
    table.add_column("Name")
    table.add_column("Permissions", style="green")
    table.add_column("Description")

    for role in registry.roles():
        definition = registry.get(role)
        resolved = registry.resolve_permissions(role)
        permissions = "* (all)" if resolved.grants_all else ", ".join(sorted(resolved.permissions))
        table.add_row(role, definition.name, permissions or "-", definition.description)

    console.print(table)


@app.command()
def config(
    mode: Optional[str] = typer.Option(None, help="Override OWNERSHIP_MODE"),
):
    """Validate and show the effective ownership configuration."""
    cfg = _load_config(mode)

    table = Table(title="Ownership Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Option", style="cyan")
    table.add_column("Value")

    table.add_row("mode", cfg.mode)
    table.add_row("morph_name", cfg.morph_name)
    table.add_row("apply_global_scope", str(cfg.apply_global_scope))
    table.add_row("guard", cfg.guard)
    table.add_row("scope_in_background", str(cfg.scope_in_background))
    table.add_row("cache", f"enabled={cfg.cache.enabled} ttl={cfg.cache.ttl} prefix={cfg.cache.prefix}")
    enabled_events = [name for name, on in cfg.events.model_dump().items() if on]
    table.add_row("events", ", ".join(enabled_events) or "-")
    table.add_row("table_name", cfg.table_name)
    table.add_row("default_role", cfg.default_role)
    table.add_row("auto_assign_creator", str(cfg.auto_assign_creator))
    table.add_row("max_owners", "unlimited" if cfg.max_owners is None else str(cfg.max_owners))

    console.print(table)


@app.command()
def check(
    role: str = typer.Argument(..., help="Role to evaluate"),
    permission: str = typer.Argument(..., help="Permission to look up"),
):
    """Show whether a role grants a permission."""
    registry = RoleRegistry(get_settings().roles)
    if not registry.is_valid_role(role):
        console.print(f"❌ Unknown role: {role}")
        raise typer.Exit(code=1)

    if permission in registry.resolve_permissions(role):
        console.print(f"✅ Role '{role}' grants '{permission}'")
    else:
        console.print(f"🚫 Role '{role}' does not grant '{permission}'")
        raise typer.Exit(code=2)


@app.command("init-db")
def init_db(
    database_url: Optional[str] = typer.Option(None, help="Database URL (default: from config)"),
):
    """Create the ownership tables."""
    url = get_database_url(database_url or get_settings().database_url)
    console.print(Panel.fit("🗄️ Creating ownership tables", style="bold blue"))
    init_database(create_ownership_engine(url))
    console.print("✅ Tables created")


if __name__ == "__main__":
    app()
