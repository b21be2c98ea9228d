# src/kubexplorer/core/pipeline.py
"""
Producer / worker pool / collector pipeline for historical metrics.

The producer puts one FetchJob per (pod, container) on a bounded job queue and
then one close marker per worker. Workers fetch and evaluate jobs until they
see their marker. A coordinator waits for every worker to finish before it
closes the result queue, so the collector can never stop while a worker still
holds a result.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Iterable, List, Optional

from ..collectors.base_collector import BaseCollector
from ..models.metrics import ContainerMetrics, FetchJob, MetricKind, Workload
from .config import config
from .evaluator import evaluate

logger = logging.getLogger(__name__)

# Marks a closed queue.
_CLOSED = object()


def build_jobs(workloads: Iterable[Workload], duration: timedelta, kind: MetricKind) -> List[FetchJob]:
    """One job per (pod, container) pair, in workload order."""
    return [
        FetchJob(
            container_name=container,
            pod_name=workload.name,
            pod_uid=workload.uid,
            duration=duration,
            metric_kind=kind,
        )
        for workload in workloads
        for container in workload.containers
    ]


class HistoricalPipeline:
    """
    Fetches and summarizes the history of every container of a set of
    workloads with a fixed-size pool of worker tasks.
    """

    def __init__(
        self,
        collector: BaseCollector,
        workers: Optional[int] = None,
        queue_size: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.collector = collector
        self.workers = workers if workers is not None else config.FETCH_WORKERS
        self.queue_size = queue_size if queue_size is not None else config.FETCH_QUEUE_SIZE
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.logger = logger or logging.getLogger(__name__)

    async def _produce(self, jobs: asyncio.Queue, pending: List[FetchJob]):
        for job in pending:
            await jobs.put(job)
        for _ in range(self.workers):
            await jobs.put(_CLOSED)

    async def _work(self, worker_id: int, jobs: asyncio.Queue, results: asyncio.Queue):
        while True:
            job = await jobs.get()
            if job is _CLOSED:
                self.logger.debug("Worker %d: job queue closed, exiting.", worker_id)
                return
            metrics = await self._process(job)
            if metrics is not None:
                await results.put(metrics)

    async def _process(self, job: FetchJob) -> Optional[ContainerMetrics]:
        try:
            series = await self.collector.collect(job)
            return evaluate(series, job.metric_kind, job.container_name, job.pod_name, self.logger)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(
                "Failed to fetch %s metrics for %s/%s: %s",
                job.metric_kind.value,
                job.pod_name,
                job.container_name,
                e,
                exc_info=True,
            )
            return None

    async def _coordinate(self, workers: List[asyncio.Task], results: asyncio.Queue):
        # Barrier: the result queue is closed only after every worker has exited.
        try:
            await asyncio.gather(*workers)
        finally:
            await results.put(_CLOSED)

    @staticmethod
    async def _drain(results: asyncio.Queue) -> List[ContainerMetrics]:
        collected: List[ContainerMetrics] = []
        while True:
            item = await results.get()
            if item is _CLOSED:
                return collected
            collected.append(item)

    async def run(self, workloads: Iterable[Workload], duration: timedelta, kind: MetricKind) -> List[ContainerMetrics]:
        """
        Runs every job to completion and returns the collected records.

        The order of the returned list is not related to the input order.
        Jobs without data are dropped, so the list can be shorter than the
        number of containers.
        """
        kind = MetricKind(kind)
        pending = build_jobs(workloads, duration, kind)
        self.logger.info(
            "Fetching %s history for %d container(s) with %d worker(s).", kind.value, len(pending), self.workers
        )
        jobs: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        results: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)

        workers = [asyncio.create_task(self._work(i, jobs, results)) for i in range(self.workers)]
        producer = asyncio.create_task(self._produce(jobs, pending))
        coordinator = asyncio.create_task(self._coordinate(workers, results))

        try:
            collected = await self._drain(results)
            await coordinator
            await producer
        except BaseException:
            for task in (producer, coordinator, *workers):
                task.cancel()
            await asyncio.gather(producer, coordinator, *workers, return_exceptions=True)
            raise

        self.logger.info("Collected %d %s metric record(s).", len(collected), kind.value)
        return collected


async def run_historical(
    collector: BaseCollector,
    workloads: Iterable[Workload],
    duration: timedelta,
    kind: MetricKind,
    workers: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> List[ContainerMetrics]:
    """Convenience wrapper around HistoricalPipeline.run."""
    pipeline = HistoricalPipeline(collector, workers=workers, logger=logger)
    return await pipeline.run(workloads, duration, kind)
