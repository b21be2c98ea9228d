# src/kubexplorer/collectors/pod_collector.py
"""
Lists the active pods, and their containers, that the historical pipeline
should measure.
"""

import logging
from typing import List, Optional

from kubernetes_asyncio.client.rest import ApiException

from kubexplorer.collectors.base_collector import BaseCollector
from kubexplorer.core.exceptions import ClusterConfigError
from kubexplorer.core.k8s_client import get_core_v1_api
from kubexplorer.models.metrics import Workload

logger = logging.getLogger(__name__)

# Pods that have terminated no longer produce samples.
ACTIVE_POD_SELECTOR = "status.phase!=Succeeded,status.phase!=Failed"


def build_field_selector(field_selector: Optional[str] = None) -> str:
    """Combines the active-pod selector with an optional caller selector."""
    if field_selector:
        return f"{ACTIVE_POD_SELECTOR},{field_selector}"
    return ACTIVE_POD_SELECTOR


class PodCollector(BaseCollector):
    """
    Connects to the K8s API to list active pods in a namespace (or in all
    namespaces) together with their container names.
    """

    def __init__(self, api=None):
        self._api = api

    async def _ensure_client(self):
        """Lazily initialize the Kubernetes Client."""
        if self._api:
            return self._api

        self._api = await get_core_v1_api()
        if self._api:
            logger.debug("PodCollector initialized with centralized config.")
        else:
            logger.warning("PodCollector could not initialize Kubernetes client.")

        return self._api

    async def collect(self, namespace: Optional[str] = None, field_selector: Optional[str] = None) -> List[Workload]:
        """
        Fetches the active pods, optionally restricted to a namespace and an
        extra field selector.

        Raises:
            ClusterConfigError: If no Kubernetes client could be configured.
        """
        api = await self._ensure_client()
        if not api:
            raise ClusterConfigError("Kubernetes client not configured; cannot list pods.")

        selector = build_field_selector(field_selector)
        try:
            if namespace:
                pod_list = await api.list_namespaced_pod(namespace, field_selector=selector)
            else:
                pod_list = await api.list_pod_for_all_namespaces(field_selector=selector)
        except ApiException as e:
            logger.error(f"Error listing pods from Kubernetes API: {e.status} {e.reason}")
            return []

        workloads: List[Workload] = []
        for pod in pod_list.items:
            if not pod.spec or not pod.spec.containers:
                continue

            workloads.append(
                Workload(
                    name=pod.metadata.name,
                    namespace=pod.metadata.namespace or namespace or "",
                    uid=pod.metadata.uid or "",
                    containers=[container.name for container in pod.spec.containers],
                )
            )

        logger.info(f"Found {len(workloads)} active pods")
        return workloads

    async def close(self):
        """Close the Kubernetes API client if it exists."""
        if self._api:
            await self._api.api_client.close()
            logger.debug("PodCollector Kubernetes client closed.")
            self._api = None
