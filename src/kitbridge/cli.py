"""Root CLI group and version flag."""

import signal

import click

# A script closing its stdin must surface as BrokenPipeError in the writer,
# not kill the host.  Python normally sets SIG_IGN at startup already.
if hasattr(signal, "SIGPIPE"):
    signal.signal(signal.SIGPIPE, signal.SIG_IGN)

from kitbridge import __version__
from kitbridge.commands.cleanup import cleanup
from kitbridge.commands.init import init
from kitbridge.commands.run import run


@click.group()
@click.version_option(version=__version__, prog_name="kitbridge")
def cli() -> None:
    """Kitbridge: run interactive scripts over a JSONL prompt protocol."""


cli.add_command(init)
cli.add_command(run)
cli.add_command(cleanup)
