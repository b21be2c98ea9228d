# src/kubexplorer/models/cli.py
"""
Data models for kubexplorer CLI command options using Typer.
This allows for clean dependency injection of parameters.
"""

from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .metrics import MetricKind


class MetricOptions:
    """Dependency-injectable model for the metric selection flags."""

    def __init__(
        self,
        cpu: Annotated[bool, typer.Option("--cpu", help="Report CPU usage (milli-cores).")] = False,
        mem: Annotated[bool, typer.Option("--mem", help="Report memory usage (bytes).")] = False,
    ):
        self.cpu = cpu
        self.mem = mem
        self._validate()

    def _validate(self):
        """Ensures exactly one metric flag is selected."""
        if self.cpu == self.mem:
            raise typer.BadParameter("Exactly one of --cpu or --mem must be given.")

    @property
    def kind(self) -> MetricKind:
        return MetricKind.CPU if self.cpu else MetricKind.MEMORY


class OutputOptions:
    """Dependency-injectable model for output/export options."""

    def __init__(
        self,
        csv: Annotated[
            bool, typer.Option("--csv", help="Write the report to a CSV file instead of the console.")
        ] = False,
        output_path: Annotated[
            Optional[Path],
            typer.Option(
                "--output-path",
                help="CSV file path. Default: './kube-resource-usage-<namespace|all>-<timestamp>.csv'",
                exists=False,
                dir_okay=False,
                writable=True,
            ),
        ] = None,
    ):
        self.csv = csv
        self.output_path = output_path

    @property
    def is_enabled(self) -> bool:
        """Checks if file output is enabled."""
        return self.csv or self.output_path is not None
