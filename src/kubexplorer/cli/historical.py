# src/kubexplorer/cli/historical.py
"""
Implements the `historical` command: summarizes the CPU or memory usage of
every container over a past window, as recorded by the in-cluster Prometheus.
"""

import asyncio
import logging
import sys
import traceback
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from ..collectors.pod_collector import PodCollector
from ..collectors.prometheus_collector import PrometheusCollector
from ..core.config import config
from ..core.exceptions import ClusterConfigError, KubexplorerError
from ..core.k8s_client import ensure_k8s_config, find_prometheus_pod, get_core_v1_api, get_ws_core_v1_api
from ..core.pipeline import run_historical
from ..core.tunnel import open_tunnel
from ..exporters.csv_exporter import CSVExporter
from ..models.cli import MetricOptions, OutputOptions
from ..models.metrics import ContainerMetrics, MetricKind
from ..models.sorting import sort_metrics
from ..reporters.console_reporter import ConsoleReporter
from .utils import parse_duration_option, validate_sort_option

logger = logging.getLogger(__name__)

app = typer.Typer(help="Report historical container resource usage.", add_completion=False)


async def fetch_historical_metrics(
    kind: MetricKind,
    window: timedelta,
    namespace: Optional[str] = None,
    prometheus_namespace: Optional[str] = None,
    prometheus_pod: Optional[str] = None,
    workers: Optional[int] = None,
    kubeconfig: Optional[str] = None,
    context: Optional[str] = None,
) -> List[ContainerMetrics]:
    """
    Opens a tunnel to Prometheus, lists the active pods and runs the fetch
    pipeline over all of their containers. The tunnel and every client are
    released before returning, whatever the outcome.
    """
    kubeconfig = kubeconfig or config.KUBECONFIG
    context = context or config.KUBE_CONTEXT
    if not await ensure_k8s_config(kubeconfig=kubeconfig, context=context):
        raise ClusterConfigError("Could not load a Kubernetes configuration (in-cluster or kubeconfig).")

    core_api = await get_core_v1_api()
    ws_api = await get_ws_core_v1_api()
    if core_api is None or ws_api is None:
        raise ClusterConfigError("Kubernetes client not configured.")

    prometheus_namespace = prometheus_namespace or config.PROMETHEUS_NAMESPACE
    pod_collector = PodCollector(api=core_api)
    tunnel = None
    collector = None
    try:
        pod_name = prometheus_pod or config.PROMETHEUS_POD
        if not pod_name:
            pod_name = await find_prometheus_pod(core_api, prometheus_namespace, config.PROMETHEUS_CONTAINER)
        logger.info("Using Prometheus pod %s/%s", prometheus_namespace, pod_name)

        tunnel = await open_tunnel(pod_name, prometheus_namespace, api=ws_api)
        collector = PrometheusCollector(tunnel.local_address)

        workloads = await pod_collector.collect(namespace=namespace)
        if not workloads:
            logger.warning("No active pods found in %s.", f"namespace {namespace}" if namespace else "the cluster")
            return []

        return await run_historical(collector, workloads, window, kind, workers=workers)
    finally:
        if collector is not None:
            await collector.close()
        if tunnel is not None:
            await tunnel.stop()
        await pod_collector.close()
        await ws_api.api_client.close()


async def handle_export(data: List[ContainerMetrics], output: OutputOptions, namespace: Optional[str] = None):
    """Handles writing the report data to a CSV file."""
    exporter = CSVExporter()
    if output.output_path:
        output_path = Path(output.output_path)
    else:
        output_path = Path.cwd() / exporter.default_filename(namespace)

    rows = [item.to_row() for item in data]
    try:
        written_path = await exporter.export(rows, str(output_path))
    except Exception as e:
        logger.error(f"Failed to export report to {output_path}: {e}")
        logger.error(traceback.format_exc())
        raise typer.Exit(code=1)

    logger.info(f"Successfully exported report to {written_path}")
    print(f"Report exported to: {written_path}", file=sys.stderr)


@app.callback(invoke_without_command=True)
def historical(
    ctx: typer.Context,
    namespace: Annotated[
        Optional[str], typer.Option("--namespace", "-n", help="Only pods of this namespace. Default: all.")
    ] = None,
    cpu: Annotated[bool, typer.Option("--cpu", help="Report CPU usage (milli-cores).")] = False,
    mem: Annotated[bool, typer.Option("--mem", help="Report memory usage (bytes).")] = False,
    duration: Annotated[
        str,
        typer.Option("--duration", "-d", help="Window to look back over (e.g., '30min', '4h', '7d', '2w')."),
    ] = config.DEFAULT_DURATION,
    sort: Annotated[
        Optional[str], typer.Option("--sort", help="Sort rows by this field (e.g., 'max', 'pod_name').")
    ] = None,
    reverse: Annotated[bool, typer.Option("--reverse", help="Reverse the sort order.")] = False,
    csv: Annotated[bool, typer.Option("--csv", help="Write the report to a CSV file instead of the console.")] = False,
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
    prometheus_namespace: Annotated[
        Optional[str], typer.Option("--prometheus-namespace", help="Namespace of the Prometheus pod.")
    ] = None,
    prometheus_pod: Annotated[
        Optional[str], typer.Option("--prometheus-pod", help="Prometheus pod name. Default: looked up.")
    ] = None,
    workers: Annotated[
        Optional[int], typer.Option("--workers", min=1, help="Number of concurrent fetch workers.")
    ] = None,
    kubeconfig: Annotated[Optional[str], typer.Option("--kubeconfig", help="Path to a kubeconfig file.")] = None,
    context: Annotated[Optional[str], typer.Option("--context", help="Kubeconfig context to use.")] = None,
):
    """
    Summarize historical CPU or memory usage per container.

    Displays a table in the console by default.
    Use --csv to write the rows to a file.
    """
    if ctx.invoked_subcommand is not None:
        return

    # Build model objects from raw CLI params so we retain validation logic
    metric = MetricOptions(cpu=cpu, mem=mem)
    output = OutputOptions(csv=csv, output_path=output_path)
    window = parse_duration_option(duration)
    sort_field = validate_sort_option(sort) if sort else None

    async def _historical_async():
        try:
            metrics = await fetch_historical_metrics(
                metric.kind,
                window,
                namespace=namespace,
                prometheus_namespace=prometheus_namespace,
                prometheus_pod=prometheus_pod,
                workers=workers,
                kubeconfig=kubeconfig,
                context=context,
            )
        except KubexplorerError as e:
            logger.error(f"{e}")
            raise typer.Exit(code=1)
        except Exception as e:
            logger.error(f"An error occurred while fetching historical metrics: {e}")
            logger.error("Historical report failed: %s", traceback.format_exc())
            raise typer.Exit(code=1)

        if sort_field:
            metrics = sort_metrics(metrics, sort_field, reverse=reverse)

        if output.is_enabled:
            await handle_export(metrics, output, namespace=namespace)
        else:
            ConsoleReporter().report(metrics, metric.kind, window)

    try:
        asyncio.run(_historical_async())
    except typer.Exit:
        raise
    except Exception as e:
        logger.error(f"An unexpected error occurred: {e}")
        raise typer.Exit(code=1)
