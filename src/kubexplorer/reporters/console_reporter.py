# src/kubexplorer/reporters/console_reporter.py
"""
A reporter that displays historical container metrics in a formatted table in the console.
"""

import logging
from datetime import timedelta
from typing import List

from rich.console import Console
from rich.table import Table

from ..models.metrics import ContainerMetrics, MetricKind
from ..utils.date_utils import format_duration
from .base_reporter import BaseReporter

logger = logging.getLogger(__name__)


class ConsoleReporter(BaseReporter):
    """
    Renders container metrics to the console using the 'rich' library.
    Rows are printed in the order they are given; sorting is the caller's job.
    """

    def __init__(self):
        self.console = Console()

    def report(self, data: List[ContainerMetrics], kind: MetricKind, duration: timedelta):
        kind = MetricKind(kind)
        if not data:
            self.console.print("No data to report.", style="yellow")
            return

        data_points = sum(item.data_points for item in data)
        if kind is MetricKind.CPU:
            legend = "m = milli-cores, otherwise cores"
        else:
            legend = "bytes; Ki, Mi, Gi, ... = powers of 1024"
        table = Table(
            title=f"{kind.value.upper()} usage over the last {format_duration(duration)} ({data_points} data points)",
            caption=legend,
            header_style="bold magenta",
            show_lines=True,
        )
        table.add_column("Pod Name", style="cyan")
        table.add_column("Container", style="cyan")
        table.add_column("Last", style="green", justify="right")
        table.add_column("Min", style="blue", justify="right")
        table.add_column("Max", style="red", justify="right")
        if kind is MetricKind.CPU:
            table.add_column("Average", style="yellow", justify="right")
        else:
            table.add_column("Samples", style="yellow", justify="right")

        for item in data:
            row = item.to_row()
            extra = row["average"] if kind is MetricKind.CPU else str(row["count"])
            table.add_row(row["pod_name"], row["container_name"], row["last"], row["min"], row["max"], extra)

        self.console.print(table)
        logger.debug("Rendered %d %s rows.", len(data), kind.value)
