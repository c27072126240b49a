"""kitbridge cleanup — kill script processes orphaned by a previous run."""

from __future__ import annotations

from pathlib import Path

import click

from kitbridge.config.parser import ConfigError, load_config
from kitbridge.executor.registry import ProcessRegistry


@click.command()
@click.option(
    "-f", "--file", "config_file", type=click.Path(), help="Config file path."
)
def cleanup(config_file: str | None) -> None:
    """Kill script process groups left behind by a crashed host."""
    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    registry = ProcessRegistry(config.state_dir)
    if not registry.path.exists():
        click.echo(f"No pid file at {registry.path}. Nothing to clean up.")
        return

    killed = registry.cleanup_orphans(config.session.term_grace)
    if killed:
        click.echo(f"Killed {killed} orphaned script process group(s).")
    else:
        click.echo("No orphaned script processes found.")
