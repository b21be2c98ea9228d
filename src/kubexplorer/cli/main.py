# src/kubexplorer/cli/main.py
"""
Entry point of the kubexplorer CLI: configures logging and mounts the
`historical` command next to `version`.
"""

import logging

import typer

from .. import __version__
from ..core.config import config
from . import historical

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)

app = typer.Typer(
    name="kubexplorer",
    help="Explore the historical CPU and memory usage of your Kubernetes containers.",
    add_completion=False,
    no_args_is_help=True,
)
app.add_typer(historical.app, name="historical")


@app.command()
def version():
    """Print the kubexplorer version."""
    typer.echo(f"kubexplorer version: {__version__}")
