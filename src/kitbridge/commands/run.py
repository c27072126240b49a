"""kitbridge run — drive an interactive script from the terminal."""

from __future__ import annotations

import html
import logging
import re
import time
from pathlib import Path

import click

from kitbridge.config.models import KitbridgeConfig
from kitbridge.config.parser import ConfigError, load_config
from kitbridge.executor.launcher import LaunchError
from kitbridge.executor.registry import ProcessRegistry
from kitbridge.session.controller import SessionController
from kitbridge.session.events import (
    HideWindow,
    OpenBrowser,
    PromptMessage,
    ProtocolError,
    ScriptError,
    ScriptExit,
    ShowArg,
    ShowDiv,
)
from kitbridge.session.helpers import format_stderr_preview

_TAG_RE = re.compile(r"<[^>]+>")


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("script", type=click.Path(exists=True, dir_okay=False))
@click.argument("script_args", nargs=-1, type=click.UNPROCESSED)
@click.option(
    "-f", "--file", "config_file", type=click.Path(), help="Config file path."
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def run(
    script: str,
    script_args: tuple[str, ...],
    config_file: str | None,
    verbose: bool,
) -> None:
    """Run SCRIPT and answer its prompts in the terminal."""
    try:
        config = load_config(Path(config_file) if config_file else None)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    controller = SessionController(config, registry=ProcessRegistry(config.state_dir))
    try:
        controller.start(script, args=script_args)
    except LaunchError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    try:
        exit_code = _drive(controller, config)
    except (KeyboardInterrupt, click.Abort):
        click.echo("\nCancelled.", err=True)
        exit_code = 130
    finally:
        controller.shutdown()

    if exit_code:
        raise SystemExit(exit_code)


def _drive(controller: SessionController, config: KitbridgeConfig) -> int:
    """Poll until the script exits.  Returns the exit code to report."""
    exit_code = 0
    while controller.is_active:
        for event in controller.poll():
            match event:
                case ScriptError(exit_code=code):
                    exit_code = code if code and code > 0 else 1
                case ScriptExit(code=code) if code:
                    exit_code = code
            _render(controller, event)
        time.sleep(config.session.poll_interval)
    return exit_code


def _render(controller: SessionController, event: PromptMessage) -> None:
    match event:
        case ShowArg():
            _ask_arg(controller, event)
        case ShowDiv(id=prompt_id, html=body):
            click.echo(_strip_tags(body))
            click.prompt(
                "Press Enter to continue",
                default="",
                show_default=False,
                prompt_suffix="",
            )
            controller.submit(prompt_id, None)
        case HideWindow():
            click.echo(click.style("(window hidden)", dim=True))
        case OpenBrowser(url=url):
            click.echo(f"Opening {url}")
            click.launch(url)
        case ProtocolError(summary=summary):
            click.echo(click.style(f"Warning: {summary}", fg="yellow"), err=True)
        case ScriptError(error_message=message, stderr_output=stderr_output):
            click.echo(click.style(f"Error: {message}", fg="red"), err=True)
            preview = format_stderr_preview(stderr_output or "")
            if preview:
                click.echo(f"  {preview}", err=True)
        case ScriptExit(message=message) if message:
            click.echo(message)


def _ask_arg(controller: SessionController, event: ShowArg) -> None:
    click.echo(click.style(event.placeholder, bold=True))
    for number, choice in enumerate(event.choices, start=1):
        line = f"  {number}) {choice.name}"
        if choice.description:
            line += f" - {choice.description}"
        click.echo(line)

    answer = click.prompt(
        ">", default="", show_default=False, prompt_suffix=" "
    ).strip()
    if not answer:
        controller.submit(event.id, None)
        return

    if answer.isdigit() and 1 <= int(answer) <= len(event.choices):
        controller.submit(event.id, event.choices[int(answer) - 1].value)
    else:
        controller.submit(event.id, answer)


def _strip_tags(body: str) -> str:
    return html.unescape(_TAG_RE.sub("", body)).strip()
