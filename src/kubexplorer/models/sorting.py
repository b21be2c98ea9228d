"""Sort helpers for ContainerMetrics lists, keyed by model field name."""

from typing import List, Sequence

from ..core.exceptions import InvalidSortFieldError
from .metrics import ContainerMetrics


def sortable_fields() -> List[str]:
    return list(ContainerMetrics.model_fields.keys())


def resolve_sort_field(name: str) -> str:
    """Maps a user supplied sort key (case and separator insensitive) to a field name."""
    wanted = name.replace("-", "_").lower()
    for field in sortable_fields():
        if field.lower() == wanted or field.replace("_", "").lower() == wanted:
            return field
    raise InvalidSortFieldError(name, sortable_fields())


def sort_metrics(metrics: Sequence[ContainerMetrics], sort_by: str, reverse: bool = False) -> List[ContainerMetrics]:
    field = resolve_sort_field(sort_by)

    def key(item: ContainerMetrics):
        value = getattr(item, field)
        # Missing values sort first; resources compare by magnitude.
        if value is None:
            return (0, 0)
        return (1, getattr(value, "value", value))

    return sorted(metrics, key=key, reverse=reverse)
