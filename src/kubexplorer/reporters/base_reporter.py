# src/kubexplorer/reporters/base_reporter.py
"""
Defines the abstract base class for all reporters.
"""
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import List

from ..models.metrics import ContainerMetrics, MetricKind


class BaseReporter(ABC):
    """
    Abstract Base Class for all reporters.
    """

    @abstractmethod
    def report(self, data: List[ContainerMetrics], kind: MetricKind, duration: timedelta):
        """
        Takes the summarized container metrics and presents them in a specific format.
        """
        pass
