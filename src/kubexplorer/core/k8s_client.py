import asyncio
import logging
import typing

from kubernetes_asyncio import client, config
from kubernetes_asyncio.stream import WsApiClient

from .exceptions import PrometheusPodNotFoundError

logger = logging.getLogger(__name__)

# Global lock to prevent race conditions during config loading
_CONFIG_LOCK = asyncio.Lock()
_CONFIG_LOADED = False


async def ensure_k8s_config(kubeconfig: typing.Optional[str] = None, context: typing.Optional[str] = None) -> bool:
    """
    Ensures that the Kubernetes configuration is loaded exactly once.

    In-cluster configuration is tried first unless an explicit kubeconfig or
    context is requested, then the local kubeconfig.

    Returns:
        bool: True if config was loaded successfully (or was already loaded), False otherwise.
    """
    global _CONFIG_LOADED

    if _CONFIG_LOADED:
        return True

    async with _CONFIG_LOCK:
        # Double-check locking pattern
        if _CONFIG_LOADED:
            return True

        if not kubeconfig and not context:
            try:
                logger.debug("Attempting to load in-cluster Kubernetes config...")
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes configuration.")
                _CONFIG_LOADED = True
                return True
            except config.ConfigException:
                logger.debug("In-cluster config not found.")
            except Exception as e:
                logger.warning(f"Unexpected error loading in-cluster config: {e}")

        try:
            logger.debug("Attempting to load kubeconfig %s (context=%s)...", kubeconfig or "<default>", context)
            await config.load_kube_config(config_file=kubeconfig, context=context)
            logger.info("Loaded Kubernetes configuration from kubeconfig file.")
            _CONFIG_LOADED = True
            return True
        except config.ConfigException as e:
            logger.warning(f"Could not load kubeconfig: {e}")
        except Exception as e:
            logger.warning(f"Unexpected error loading kubeconfig: {e}")

    logger.warning("Failed to load any Kubernetes configuration.")
    return False


async def get_core_v1_api() -> typing.Optional[client.CoreV1Api]:
    """
    Returns a configured CoreV1Api instance.
    Safe to call concurrently.
    """
    if await ensure_k8s_config():
        return client.CoreV1Api()
    return None


async def get_ws_core_v1_api() -> typing.Optional[client.CoreV1Api]:
    """
    Returns a CoreV1Api backed by a websocket client, needed for the
    streaming subresources (portforward, exec, attach).
    """
    if await ensure_k8s_config():
        return client.CoreV1Api(api_client=WsApiClient())
    return None


async def find_prometheus_pod(api: client.CoreV1Api, namespace: str, container_name: str = "prometheus") -> str:
    """
    Returns the name of the first running pod in `namespace` that has a
    container called `container_name`.

    Raises:
        PrometheusPodNotFoundError: If no such pod exists.
    """
    pods = await api.list_namespaced_pod(namespace)
    fallback = None
    for pod in pods.items:
        containers = (pod.spec.containers if pod.spec else None) or []
        if not any(c.name == container_name for c in containers):
            continue
        phase = pod.status.phase if pod.status else None
        if phase == "Running":
            return pod.metadata.name
        if fallback is None:
            fallback = pod.metadata.name

    if fallback:
        logger.warning("Prometheus pod %s found in namespace %s but it is not running.", fallback, namespace)
        return fallback

    raise PrometheusPodNotFoundError(container_name, namespace)
