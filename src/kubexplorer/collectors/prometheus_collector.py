# src/kubexplorer/collectors/prometheus_collector.py

"""
PrometheusCollector runs per-container range queries against a Prometheus
server, usually reached through a port-forward tunnel, and returns the raw
series for the evaluator.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from kubexplorer.collectors.base_collector import BaseCollector
from kubexplorer.core.config import Config
from kubexplorer.core.config import config as global_config
from kubexplorer.models.metrics import FetchJob, RawSeries, Sample
from kubexplorer.utils.date_utils import ensure_utc, to_iso_z
from kubexplorer.utils.http_client import get_async_http_client

logger = logging.getLogger(__name__)

QUERY_RANGE_PATH = "/api/v1/query_range"


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_selector_query(metric_name: str, container: str, pod: str) -> str:
    """PromQL selector for one container of one pod."""
    return f'{metric_name}{{container="{_escape_label_value(container)}", pod="{_escape_label_value(pod)}"}}'


class PrometheusCollector(BaseCollector):
    """
    Issues range queries for a single container at a fixed resolution.

    Every failure (transport, HTTP status, Prometheus error status, malformed
    payload) is logged and reported as an empty result, which callers treat
    as "no data".
    """

    def __init__(
        self,
        address: str,
        settings: Optional[Config] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or global_config
        self.address = address.rstrip("/")
        self.step: timedelta = self.settings.query_step
        self.logger = logger or logging.getLogger(__name__)
        self._client = client
        self._owns_client = client is None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = get_async_http_client(
                base_url=self.address,
                verify=self.settings.PROMETHEUS_VERIFY_CERTS,
                bearer_token=getattr(self.settings, "PROMETHEUS_BEARER_TOKEN", None),
            )
        return self._client

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def collect(self, job: FetchJob) -> List[RawSeries]:
        """Fetches the series for the job's container, using the metric of its kind."""
        return await self.query_range(
            job.metric_kind.metric_name,
            job.container_name,
            job.pod_name,
            job.duration,
        )

    async def query_range(self, metric_name: str, container: str, pod: str, duration: timedelta) -> List[RawSeries]:
        """
        Queries `metric_name` for one container over `[now - duration, now]`.

        Returns the list of raw series, or [] on any failure.
        """
        end = self._now()
        start = end - duration
        query = build_selector_query(metric_name, container, pod)
        params = {
            "query": query,
            "start": to_iso_z(start),
            "end": to_iso_z(end),
            "step": f"{int(self.step.total_seconds())}s",
        }

        client = self._ensure_client()
        url = f"{self.address}{QUERY_RANGE_PATH}"
        try:
            self.logger.debug("Querying Prometheus range at %s: %s", url, query)
            response = await client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            self.logger.error(
                "Prometheus range query for %s/%s failed with HTTP %s", pod, container, e.response.status_code
            )
            return []
        except httpx.HTTPError as e:
            self.logger.error("querying Prometheus at %s failed: %s", url, e)
            return []
        except ValueError:
            self.logger.error("Failed to decode JSON from %s. Server sent non-JSON response.", url)
            return []

        if not isinstance(data, dict) or data.get("status") != "success":
            error = data.get("error", "Unknown") if isinstance(data, dict) else "Unknown"
            self.logger.warning("Prometheus returned non-success status for %s: %s", query, error)
            return []

        warnings = data.get("warnings") or []
        if warnings:
            self.logger.warning("Prometheus warnings for %s: %s", query, warnings)

        payload = data.get("data") or {}
        if not isinstance(payload, dict):
            self.logger.warning("Malformed Prometheus payload for %s: 'data' is not an object", query)
            return []

        result_type = payload.get("resultType")
        if result_type != "matrix":
            self.logger.warning("Unexpected Prometheus result type '%s' for range query %s", result_type, query)
            return []

        result = payload.get("result") or []
        if not isinstance(result, list):
            self.logger.warning("Malformed Prometheus payload for %s: 'result' is not a list", query)
            return []

        series = []
        for item in result:
            parsed = self._parse_series(item)
            if parsed is not None:
                series.append(parsed)

        self.logger.debug("Prometheus returned %d series for %s", len(series), query)
        return series

    def _parse_series(self, item: Dict[str, Any]) -> Optional[RawSeries]:
        """
        Parses one matrix entry: {"metric": {...}, "values": [[ts, "v"], ...]}.
        Points with a non-finite or unparsable value are skipped.
        """
        if not isinstance(item, dict):
            return None

        samples = []
        skipped = 0
        for point in item.get("values") or []:
            try:
                timestamp, raw_value = point
                value = float(raw_value)
                if not math.isfinite(value):
                    skipped += 1
                    continue
                samples.append(Sample(timestamp=ensure_utc(float(timestamp)), value=value))
            except (TypeError, ValueError, ValidationError):
                skipped += 1

        if skipped:
            self.logger.debug("Skipped %d unusable point(s) in series %s", skipped, item.get("metric"))

        try:
            return RawSeries(labels=item.get("metric") or {}, samples=samples)
        except ValidationError:
            self.logger.debug("Skipping series with malformed labels: %s", item.get("metric"))
            return None

    async def close(self):
        """Close the HTTP client if this collector created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
