"""kubexplorer: historical resource usage for Kubernetes containers."""

__version__ = "0.3.0"
