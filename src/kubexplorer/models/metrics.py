# src/kubexplorer/models/metrics.py
"""
This module defines the Pydantic data models used by the historical metrics
pipeline: the workloads to measure, the jobs handed to the fetch workers, the
raw series returned by Prometheus and the per-container summaries derived
from them.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ..core.config import config
from .resources import CpuResource, MemoryResource, Quantity


class MetricKind(str, Enum):
    """The resource a historical query measures."""

    CPU = "cpu"
    MEMORY = "memory"

    @property
    def metric_name(self) -> str:
        """Prometheus metric queried for this kind."""
        if self is MetricKind.CPU:
            return config.PROMETHEUS_CPU_METRIC
        return config.PROMETHEUS_MEMORY_METRIC


class Workload(BaseModel):
    """
    An active pod and the names of its containers, as listed from the K8s API.
    """

    name: str = Field(..., description="The name of the Kubernetes pod.")
    namespace: str = Field("", description="The namespace the pod belongs to.")
    uid: str = Field("", description="The pod UID.")
    containers: List[str] = Field(default_factory=list)


class FetchJob(BaseModel):
    """One (pod, container) pair to be measured by a fetch worker."""

    model_config = ConfigDict(frozen=True)

    container_name: str
    pod_name: str
    pod_uid: str = ""
    duration: timedelta
    metric_kind: MetricKind


class Sample(BaseModel):
    """A single (timestamp, value) point of a Prometheus range result."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    value: float


class RawSeries(BaseModel):
    """One time series of a range query result, identified by its label set."""

    labels: Dict[str, str] = Field(default_factory=dict)
    samples: List[Sample] = Field(default_factory=list)

    def sorted_samples(self) -> List[Sample]:
        """The samples in ascending timestamp order."""
        return sorted(self.samples, key=lambda s: s.timestamp)


Resource = Union[CpuResource, MemoryResource]


class ContainerMetrics(BaseModel):
    """
    Summary statistics for one container over the requested window.

    CPU records carry last/min/max/average rates in milli-cores. Memory records
    carry last/min/max bytes and the raw sample count.
    """

    model_config = ConfigDict(frozen=True)

    container_name: str = Field(..., description="The name of the container within the pod.")
    pod_name: str = Field(..., description="The name of the Kubernetes pod.")
    metric_kind: MetricKind
    last: Resource
    min: Resource
    max: Resource
    average: Optional[Resource] = Field(None, description="Mean rate, CPU only.")
    count: Optional[int] = Field(None, ge=0, description="Number of raw samples, memory only.")
    data_points: int = Field(..., ge=0, description="Number of values the statistics were computed over.")

    @field_validator("last", "min", "max", "average", mode="before")
    @classmethod
    def _resource_for_kind(cls, v: Any, info: ValidationInfo) -> Any:
        """Builds last/min/max/average as the resource type of metric_kind."""
        kind = info.data.get("metric_kind")
        if kind is None or v is None:
            return v
        resource_cls = CpuResource if MetricKind(kind) is MetricKind.CPU else MemoryResource
        if isinstance(v, dict):
            return resource_cls(**v)
        if isinstance(v, Quantity):
            return v if isinstance(v, resource_cls) else resource_cls(v.value)
        if isinstance(v, int) and not isinstance(v, bool):
            return resource_cls(v)
        return v

    def to_row(self) -> Dict[str, Any]:
        """Flat, display-ready representation for tables and CSV files."""
        row: Dict[str, Any] = {
            "container_name": self.container_name,
            "pod_name": self.pod_name,
            "last": self.last.display(),
            "min": self.min.display(),
            "max": self.max.display(),
        }
        if self.metric_kind is MetricKind.CPU:
            row["average"] = self.average.display() if self.average is not None else ""
        else:
            row["count"] = self.count
        row["data_points"] = self.data_points
        return row
