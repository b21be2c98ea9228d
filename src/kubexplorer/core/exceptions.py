class KubexplorerError(Exception):
    """Base exception for kubexplorer."""

    pass


class ClusterConfigError(KubexplorerError):
    """Raised when no Kubernetes configuration could be loaded."""

    pass


class TunnelError(KubexplorerError):
    """Raised when the port-forward tunnel cannot be established."""

    pass


class PrometheusPodNotFoundError(KubexplorerError):
    """Raised when no pod running the Prometheus container is found."""

    def __init__(self, container_name: str, namespace: str):
        self.container_name = container_name
        self.namespace = namespace
        super().__init__(f"no pod with container {container_name} found in namespace {namespace}")


class InvalidSortFieldError(KubexplorerError):
    """Raised when a sort key does not name a ContainerMetrics field."""

    def __init__(self, field: str, valid_fields):
        self.field = field
        self.valid_fields = list(valid_fields)
        super().__init__(f'"{field}" is not a valid field. Possible values are: {", ".join(self.valid_fields)}')
