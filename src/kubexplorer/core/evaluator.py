# src/kubexplorer/core/evaluator.py
"""
Turns raw Prometheus series into per-container summary statistics.

Memory is a gauge: statistics are taken over the sample values directly.
CPU usage is a cumulative counter of CPU-seconds: each pair of consecutive
samples in a series is turned into a rate in milli-cores, and statistics are
taken over the rates.

All functions are pure. Each series is put in timestamp order before any
value is read from it, so "last" always means "most recent".
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from ..models.metrics import ContainerMetrics, MetricKind, RawSeries
from ..models.resources import CpuResource, MemoryResource

logger = logging.getLogger(__name__)

MILLI = 1000


def truncated_mean(values: Sequence[int]) -> int:
    """Integer mean rounded toward zero, exact for arbitrarily large sums."""
    total = sum(values)
    quotient = abs(total) // len(values)
    return quotient if total >= 0 else -quotient


def _last_by_time(points: Sequence[Tuple[datetime, float]]) -> float:
    # Ties go to the point that comes later in the list.
    latest_ts, latest_value = points[0]
    for ts, value in points[1:]:
        if ts >= latest_ts:
            latest_ts, latest_value = ts, value
    return latest_value


def counter_rates(series: RawSeries) -> List[Tuple[datetime, int]]:
    """
    Milli-core rates between consecutive samples of one counter series.

    Each rate is stamped with the later sample's timestamp and truncated
    toward zero. Pairs whose time delta is zero or negative are skipped. A
    counter reset yields a negative rate, which is kept.
    """
    samples = series.sorted_samples()
    rates = []
    for prev, cur in zip(samples, samples[1:]):
        interval = (cur.timestamp - prev.timestamp).total_seconds()
        if interval <= 0:
            logger.debug("Skipping sample pair with non-positive interval at %s", cur.timestamp)
            continue
        delta = cur.value - prev.value
        rates.append((cur.timestamp, int(delta / interval * MILLI)))
    return rates


def evaluate_memory_metrics(
    series: Sequence[RawSeries], container_name: str, pod_name: str, log: Optional[logging.Logger] = None
) -> Optional[ContainerMetrics]:
    points = [(s.timestamp, s.value) for raw in series for s in raw.sorted_samples()]
    if not points:
        (log or logger).warning("Memory metrics data is empty for %s/%s, skipping.", pod_name, container_name)
        return None

    values = [int(value) for _, value in points]
    return ContainerMetrics(
        container_name=container_name,
        pod_name=pod_name,
        metric_kind=MetricKind.MEMORY,
        last=MemoryResource(int(_last_by_time(points))),
        min=MemoryResource(min(values)),
        max=MemoryResource(max(values)),
        count=len(values),
        data_points=len(values),
    )


def evaluate_cpu_metrics(
    series: Sequence[RawSeries], container_name: str, pod_name: str, log: Optional[logging.Logger] = None
) -> Optional[ContainerMetrics]:
    pool = [rate for raw in series for rate in counter_rates(raw)]
    if not pool:
        (log or logger).warning("CPU metrics data is empty for %s/%s, skipping.", pod_name, container_name)
        return None

    rates = [rate for _, rate in pool]
    return ContainerMetrics(
        container_name=container_name,
        pod_name=pod_name,
        metric_kind=MetricKind.CPU,
        last=CpuResource(int(_last_by_time(pool))),
        min=CpuResource(min(rates)),
        max=CpuResource(max(rates)),
        average=CpuResource(truncated_mean(rates)),
        data_points=len(rates),
    )


def evaluate(
    series: Sequence[RawSeries],
    kind: MetricKind,
    container_name: str,
    pod_name: str,
    log: Optional[logging.Logger] = None,
) -> Optional[ContainerMetrics]:
    """
    Summarizes the raw series of one container.

    Returns None when there is no usable data point, never a zero-valued record.
    """
    kind = MetricKind(kind)
    if kind is MetricKind.CPU:
        return evaluate_cpu_metrics(series or [], container_name, pod_name, log)
    return evaluate_memory_metrics(series or [], container_name, pod_name, log)
