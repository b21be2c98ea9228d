# tests/core/test_pipeline.py
"""
Tests for the producer / worker / collector fetch pipeline.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import pytest

from kubexplorer.collectors.base_collector import BaseCollector
from kubexplorer.core.pipeline import HistoricalPipeline, build_jobs, run_historical
from kubexplorer.models.metrics import FetchJob, MetricKind, RawSeries, Sample, Workload
from kubexplorer.models.resources import CpuResource

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
WINDOW = timedelta(hours=4)


def _counter_series():
    return [
        RawSeries(
            labels={"container": "app"},
            samples=[
                Sample(timestamp=T0 + timedelta(seconds=60 * i), value=v) for i, v in enumerate([1000, 1200, 1250])
            ],
        )
    ]


class FakeCollector(BaseCollector):
    """Returns a fixed counter series per job, optionally empty or failing for some pods."""

    def __init__(self, empty_pods=(), failing_pods=(), delay=0.0):
        self.empty_pods = set(empty_pods)
        self.failing_pods = set(failing_pods)
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def collect(self, job: FetchJob):
        self.calls.append(job)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if job.pod_name in self.failing_pods:
                raise RuntimeError("boom")
            if job.pod_name in self.empty_pods:
                return []
            return _counter_series()
        finally:
            self.in_flight -= 1

    async def close(self):
        pass


def _workloads(count, containers=("app", "sidecar")):
    return [
        Workload(name=f"pod-{i}", namespace="default", uid=f"uid-{i}", containers=list(containers))
        for i in range(count)
    ]


def test_build_jobs_one_per_container():
    jobs = build_jobs(_workloads(2), WINDOW, MetricKind.CPU)

    assert [(j.pod_name, j.container_name) for j in jobs] == [
        ("pod-0", "app"),
        ("pod-0", "sidecar"),
        ("pod-1", "app"),
        ("pod-1", "sidecar"),
    ]
    assert all(j.duration == WINDOW and j.metric_kind is MetricKind.CPU for j in jobs)
    assert jobs[0].pod_uid == "uid-0"


@pytest.mark.asyncio
@pytest.mark.parametrize("workers", [1, 4])
async def test_pipeline_collects_every_container(workers):
    collector = FakeCollector()
    pipeline = HistoricalPipeline(collector, workers=workers, queue_size=2)

    results = await pipeline.run(_workloads(3), WINDOW, MetricKind.CPU)

    assert len(results) == 6
    assert {(r.pod_name, r.container_name) for r in results} == {
        (f"pod-{i}", c) for i in range(3) for c in ("app", "sidecar")
    }
    assert all(r.max == CpuResource(3333) for r in results)
    assert len(collector.calls) == 6


@pytest.mark.asyncio
async def test_pipeline_drops_jobs_without_data():
    collector = FakeCollector(empty_pods={"pod-1"})
    results = await HistoricalPipeline(collector, workers=2).run(_workloads(3), WINDOW, MetricKind.CPU)

    assert len(results) == 4
    assert "pod-1" not in {r.pod_name for r in results}


@pytest.mark.asyncio
async def test_pipeline_absorbs_collector_errors(caplog):
    collector = FakeCollector(failing_pods={"pod-0"})
    with caplog.at_level(logging.ERROR):
        results = await HistoricalPipeline(collector, workers=3).run(_workloads(2), WINDOW, MetricKind.CPU)

    assert {r.pod_name for r in results} == {"pod-1"}
    assert "Failed to fetch cpu metrics for pod-0/app" in caplog.text


@pytest.mark.asyncio
async def test_pipeline_with_more_jobs_than_queue_capacity():
    collector = FakeCollector(delay=0.001)
    results = await HistoricalPipeline(collector, workers=3, queue_size=1).run(
        _workloads(10), WINDOW, MetricKind.CPU
    )
    assert len(results) == 20


@pytest.mark.asyncio
async def test_pipeline_bounds_concurrency_by_worker_count():
    collector = FakeCollector(delay=0.01)
    await HistoricalPipeline(collector, workers=2, queue_size=4).run(_workloads(4), WINDOW, MetricKind.CPU)

    assert collector.max_in_flight <= 2
    assert len(collector.calls) == 8


@pytest.mark.asyncio
async def test_pipeline_without_workloads_returns_empty():
    collector = FakeCollector()
    assert await HistoricalPipeline(collector, workers=2).run([], WINDOW, MetricKind.MEMORY) == []
    assert collector.calls == []


@pytest.mark.asyncio
async def test_pipeline_memory_kind():
    results = await run_historical(FakeCollector(), _workloads(1, containers=("app",)), WINDOW, "memory", workers=1)

    assert len(results) == 1
    assert results[0].metric_kind is MetricKind.MEMORY
    assert results[0].count == 3


@pytest.mark.parametrize("kwargs", [{"workers": 0}, {"workers": 1, "queue_size": 0}])
def test_pipeline_rejects_invalid_sizes(kwargs):
    with pytest.raises(ValueError):
        HistoricalPipeline(FakeCollector(), **kwargs)
