# src/kubexplorer/core/config.py

import logging
import os
import re
from datetime import timedelta

from dotenv import load_dotenv

# Load environment variables from a .env file located in the project root
dotenv_path = os.path.join(os.path.dirname(__file__), "..", "..", "..", ".env")
load_dotenv(dotenv_path=dotenv_path)

_STEP_PATTERN = re.compile(r"^(\d+)([smh])$")
_STEP_UNITS = {"s": "seconds", "m": "minutes", "h": "hours"}


def _env_bool(key: str, default: str = "True") -> bool:
    return os.getenv(key, default).lower() in ("true", "1", "t", "y", "yes")


class Config:
    """
    Handles the application's configuration by loading values from environment variables.
    """

    def __init__(self):
        # -- Prometheus variables ---
        self.PROMETHEUS_BEARER_TOKEN = self._get_secret("PROMETHEUS_BEARER_TOKEN")

    @staticmethod
    def _get_secret(key: str, default: str = None) -> str:
        """
        Retrieves a secret from a file (mounted volume) or falls back to environment variable.

        Raises:
            PermissionError: If the secret file exists but cannot be read due to permissions.
            IOError: If the secret file exists but cannot be read due to I/O errors.
        """
        secret_file = f"/etc/kubexplorer/secrets/{key}"
        if os.path.exists(secret_file):
            try:
                with open(secret_file, "r") as f:
                    value = f.read().strip()
                    logging.getLogger(__name__).debug(f"Loaded secret '{key}' from {secret_file}")
                    return value
            except PermissionError as e:
                raise PermissionError(
                    f"Secret file '{secret_file}' exists but cannot be read due to permission denied. "
                    f"Please check file permissions or run with appropriate privileges."
                ) from e
            except (IOError, OSError) as e:
                raise IOError(
                    f"Secret file '{secret_file}' exists but cannot be read: {e}. "
                    f"Please check the file integrity and system resources."
                ) from e
        return os.getenv(key, default)

    # --- Logging variables ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # --- Kubernetes variables ---
    KUBECONFIG = os.getenv("KUBECONFIG")
    KUBE_CONTEXT = os.getenv("KUBE_CONTEXT")

    # -- Prometheus variables ---
    PROMETHEUS_NAMESPACE = os.getenv("PROMETHEUS_NAMESPACE", "monitoring")
    # Explicit pod name; when empty the pod is looked up by container name.
    PROMETHEUS_POD = os.getenv("PROMETHEUS_POD", "")
    PROMETHEUS_CONTAINER = os.getenv("PROMETHEUS_CONTAINER", "prometheus")
    PROMETHEUS_PORT = int(os.getenv("PROMETHEUS_PORT", "9090"))
    PROMETHEUS_QUERY_STEP = os.getenv("PROMETHEUS_QUERY_STEP", "1m")
    PROMETHEUS_CPU_METRIC = os.getenv("PROMETHEUS_CPU_METRIC", "container_cpu_usage_seconds_total")
    PROMETHEUS_MEMORY_METRIC = os.getenv("PROMETHEUS_MEMORY_METRIC", "container_memory_usage_bytes")
    PROMETHEUS_VERIFY_CERTS = _env_bool("PROMETHEUS_VERIFY_CERTS")

    # --- Tunnel variables ---
    TUNNEL_READY_TIMEOUT = float(os.getenv("TUNNEL_READY_TIMEOUT", "30"))

    # --- Fetch pipeline variables ---
    FETCH_WORKERS = int(os.getenv("FETCH_WORKERS", "4"))
    FETCH_QUEUE_SIZE = int(os.getenv("FETCH_QUEUE_SIZE", "16"))
    DEFAULT_DURATION = os.getenv("DEFAULT_DURATION", "4h")

    # --- HTTP client variables ---
    DEFAULT_TIMEOUT_CONNECT = float(os.getenv("DEFAULT_TIMEOUT_CONNECT", "5"))
    DEFAULT_TIMEOUT_READ = float(os.getenv("DEFAULT_TIMEOUT_READ", "30"))
    USER_AGENT = os.getenv("USER_AGENT", "kubexplorer")

    @property
    def query_step(self) -> timedelta:
        """The range query resolution as a timedelta."""
        match = _STEP_PATTERN.match(self.PROMETHEUS_QUERY_STEP.lower())
        if not match:
            raise ValueError(f"Unsupported PROMETHEUS_QUERY_STEP format: '{self.PROMETHEUS_QUERY_STEP}'.")
        value, unit = int(match.group(1)), match.group(2)
        return timedelta(**{_STEP_UNITS[unit]: value})

    def validate_instance(self):
        if not _STEP_PATTERN.match(self.PROMETHEUS_QUERY_STEP.lower()):
            raise ValueError("PROMETHEUS_QUERY_STEP format is invalid. Use 's', 'm', or 'h'.")
        if self.query_step.total_seconds() <= 0:
            raise ValueError("PROMETHEUS_QUERY_STEP must be greater than zero.")
        if self.FETCH_WORKERS < 1:
            raise ValueError("FETCH_WORKERS must be at least 1.")
        if self.FETCH_QUEUE_SIZE < 1:
            raise ValueError("FETCH_QUEUE_SIZE must be at least 1.")
        if not 0 < self.PROMETHEUS_PORT < 65536:
            raise ValueError("PROMETHEUS_PORT must be a valid TCP port.")
        if not self.PROMETHEUS_CONTAINER and not self.PROMETHEUS_POD:
            logging.warning("Neither PROMETHEUS_POD nor PROMETHEUS_CONTAINER is set; Prometheus lookup will fail.")


# Instantiate the config to be imported by other modules
config = Config()
config.validate_instance()
