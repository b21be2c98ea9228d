# tests/models/test_sorting.py

import pytest

from kubexplorer.core.exceptions import InvalidSortFieldError
from kubexplorer.models.metrics import ContainerMetrics, MetricKind
from kubexplorer.models.resources import CpuResource
from kubexplorer.models.sorting import resolve_sort_field, sort_metrics, sortable_fields


def _cpu(pod, last, low, high, avg=None):
    return ContainerMetrics(
        container_name="app",
        pod_name=pod,
        metric_kind=MetricKind.CPU,
        last=CpuResource(last),
        min=CpuResource(low),
        max=CpuResource(high),
        average=CpuResource(avg) if avg is not None else None,
        data_points=3,
    )


@pytest.fixture
def sample_metrics():
    return [
        _cpu("pod-b", 200, 100, 900, 300),
        _cpu("pod-a", 50, 10, 1500, None),
        _cpu("pod-c", 700, 500, 800, 650),
    ]


def test_sort_by_resource_field(sample_metrics):
    result = sort_metrics(sample_metrics, "max")
    assert [m.pod_name for m in result] == ["pod-c", "pod-b", "pod-a"]


def test_sort_reverse(sample_metrics):
    result = sort_metrics(sample_metrics, "last", reverse=True)
    assert [m.pod_name for m in result] == ["pod-c", "pod-b", "pod-a"]


def test_sort_by_name_field_accepts_dashes_and_case(sample_metrics):
    result = sort_metrics(sample_metrics, "Pod-Name")
    assert [m.pod_name for m in result] == ["pod-a", "pod-b", "pod-c"]


def test_missing_values_sort_first(sample_metrics):
    result = sort_metrics(sample_metrics, "average")
    assert [m.pod_name for m in result] == ["pod-a", "pod-b", "pod-c"]


def test_resolve_sort_field_without_separator():
    assert resolve_sort_field("datapoints") == "data_points"


def test_invalid_sort_field_lists_valid_fields(sample_metrics):
    with pytest.raises(InvalidSortFieldError) as excinfo:
        sort_metrics(sample_metrics, "bogus")

    message = str(excinfo.value)
    assert message.startswith('"bogus" is not a valid field. Possible values are: ')
    for field in sortable_fields():
        assert field in message
