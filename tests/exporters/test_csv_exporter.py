# tests/exporters/test_csv_exporter.py

import csv
from datetime import datetime, timezone

import pytest

from kubexplorer.exporters.csv_exporter import CSVExporter
from kubexplorer.models.metrics import ContainerMetrics, MetricKind
from kubexplorer.models.resources import MemoryResource


@pytest.mark.asyncio
async def test_csv_exporter_empty_data(tmp_path):
    exporter = CSVExporter()
    out = tmp_path / "kube-resource-usage.csv"
    written = await exporter.export([], str(out))

    assert written == str(out)
    assert out.exists()
    assert out.read_text(encoding="utf-8") == ""


@pytest.mark.asyncio
async def test_csv_exporter_writes_metric_rows(tmp_path):
    exporter = CSVExporter()
    out = tmp_path / "nested" / "memory.csv"
    metrics = ContainerMetrics(
        container_name="app",
        pod_name="api-7d9f",
        metric_kind=MetricKind.MEMORY,
        last=MemoryResource(256 * 1024**2),
        min=MemoryResource(128 * 1024**2),
        max=MemoryResource(512 * 1024**2),
        count=240,
        data_points=240,
    )

    await exporter.export([metrics.to_row()], str(out))

    with open(out, newline="", encoding="utf-8") as fh:
        rows = list(csv.DictReader(fh))
    assert rows == [
        {
            "container_name": "app",
            "pod_name": "api-7d9f",
            "last": "256Mi",
            "min": "128Mi",
            "max": "512Mi",
            "count": "240",
            "data_points": "240",
        }
    ]


@pytest.mark.asyncio
async def test_csv_exporter_injection(tmp_path):
    exporter = CSVExporter()
    out = tmp_path / "kube-resource-usage-injection.csv"
    data = [
        {"pod_name": "=cmd|' /C calc'!A0", "container_name": "app"},
        {"pod_name": "normal-pod", "container_name": "@sidecar"},
    ]
    await exporter.export(data, str(out))

    content = out.read_text(encoding="utf-8")
    assert "'=cmd|' /C calc'!A0" in content
    assert "'@sidecar" in content
    assert "normal-pod" in content


def test_default_filename():
    now = datetime(2024, 3, 15, 12, 30, 5, tzinfo=timezone.utc)
    assert CSVExporter.default_filename("prod", now) == "kube-resource-usage-prod-20240315-123005.csv"
    assert CSVExporter.default_filename(None, now) == "kube-resource-usage-all-20240315-123005.csv"
