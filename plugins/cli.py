"""CLI for running build plugins against the store."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, cast

import typer

from store.config import load_config
from store.database import DatabaseManager
from store.models import Build
from store.registry import StoreRegistry
from store.stores import BuildErrorStore

from .base import PluginError
from .builder import Builder
from .php_cpd import PhpCpd

app = typer.Typer(help="Build plugin CLI")


def _open_registry(config_path: Path) -> StoreRegistry:
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    return StoreRegistry(DatabaseManager(config))


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("init-db")
def init_db(
    config_path: Path = typer.Argument(..., help="YAML database config"),
) -> None:
    """Create the database schema."""
    registry = _open_registry(config_path)
    registry.database_manager.close()
    typer.secho("✅ Database ready", fg=typer.colors.GREEN)


@app.command("php-cpd")
def php_cpd(
    config_path: Path = typer.Argument(..., help="YAML database config"),
    build_path: Path = typer.Argument(..., help="Build checkout to analyse"),
    build_id: Optional[int] = typer.Option(None, help="Existing build to report into"),
    project_id: Optional[int] = typer.Option(None, help="Project for a new build"),
    directory: str = typer.Option("", help="Directory inside the checkout"),
    ignore: list[str] = typer.Option([], "--ignore", help="Path to exclude (repeatable)"),
) -> None:
    """Run the copy/paste detector and store its findings."""
    registry = _open_registry(config_path)
    try:
        build_store = registry.get("Build")
        if build_id is not None:
            build = cast(Build | None, build_store.get_by_primary_key(build_id))
            if build is None:
                typer.secho(f"❌ Build not found: {build_id}", fg=typer.colors.RED, err=True)
                raise typer.Exit(1)
        elif project_id is not None:
            if registry.get("Project").get_by_primary_key(project_id) is None:
                typer.secho(f"❌ Project not found: {project_id}", fg=typer.colors.RED, err=True)
                raise typer.Exit(1)
            new_build = Build(registry)
            new_build.project_id = project_id
            new_build.status = Build.STATUS_RUNNING
            new_build.create_date = datetime.now().replace(microsecond=0)
            build = cast(Build | None, build_store.save(new_build))
            if build is None or build.get_id() is None:
                typer.secho("❌ Could not create build", fg=typer.colors.RED, err=True)
                raise typer.Exit(1)
        else:
            typer.secho("❌ Pass --build-id or --project-id", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)

        builder = Builder(build_path, store_registry=registry)
        try:
            plugin = PhpCpd(builder, build, {"directory": directory, "ignore": ignore})
            success = plugin.execute()
        except PluginError as e:
            typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)

        error_store = cast(BuildErrorStore, registry.get("BuildError"))
        total = error_store.get_error_total_for_build(cast(int, build.get_id()), PhpCpd.plugin_name())
        typer.echo(f"Build {build.get_id()}: {total} copy/paste errors recorded")
        if not success:
            raise typer.Exit(1)
    finally:
        registry.database_manager.close()
