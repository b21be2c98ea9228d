# src/kubexplorer/collectors/base_collector.py
"""
This module defines the abstract base class for all data collectors.
Collectors fetch data from one source (the K8s API, Prometheus) and return
a list of Pydantic models.
"""

from abc import ABC, abstractmethod
from typing import Any, List


class BaseCollector(ABC):
    """
    Abstract Base Class for all collectors.
    """

    @abstractmethod
    async def collect(self, *args, **kwargs) -> List[Any]:
        """
        Fetch data from the collector's source, parse it, and return a list
        of Pydantic models. An empty list means "no data".
        """
        pass

    async def close(self):
        """
        Clean up resources (e.g., close HTTP sessions or API clients).
        """
        pass
