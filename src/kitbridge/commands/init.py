"""kitbridge init — scaffold a kitbridge.yaml in the current directory."""

from __future__ import annotations

from pathlib import Path

import click

from kitbridge.config.parser import DEFAULT_CONFIG_NAME

TEMPLATE_YAML = """\
# Kitbridge configuration
version: "1"

# Interpreter used for each script suffix. Scripts with any other suffix
# are executed directly and must be executable.
runtimes:
  .py: [python3]
  .js: [node]
  .ts: [bun, run]

# Where the pid registry and transcripts live (relative to this directory)
# state_dir: .kitbridge

session:
  term_grace_ms: 250           # SIGTERM -> SIGKILL escalation delay
  poll_interval_ms: 50         # how often the UI drains script events
  report_protocol_errors: true # show unknown message types as warnings
  record: false                # write a JSONL transcript per session

# stderr:
#   max_lines: 500
#   max_bytes: 4096
"""


@click.command()
@click.option(
    "--force",
    is_flag=True,
    help=f"Overwrite existing {DEFAULT_CONFIG_NAME} if it exists.",
)
def init(force: bool) -> None:
    """Scaffold a kitbridge.yaml in the current directory."""
    config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    if config_path.exists() and not force:
        click.echo(
            f"{DEFAULT_CONFIG_NAME} already exists. Use --force to overwrite.",
            err=True,
        )
        raise SystemExit(1)

    config_path.write_text(TEMPLATE_YAML, encoding="utf-8")
    click.echo(f"Created {DEFAULT_CONFIG_NAME}")
