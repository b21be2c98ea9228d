import logging
from datetime import timedelta

import typer

from ..core.exceptions import InvalidSortFieldError
from ..models.sorting import resolve_sort_field
from ..utils.date_utils import parse_duration

logger = logging.getLogger(__name__)


def parse_duration_option(value: str) -> timedelta:
    """Parses --duration (e.g. '30min', '4h', '7d') or fails with a usage error."""
    try:
        return parse_duration(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def validate_sort_option(value: str) -> str:
    """Resolves --sort to a ContainerMetrics field name or fails with a usage error."""
    try:
        return resolve_sort_field(value)
    except InvalidSortFieldError as e:
        raise typer.BadParameter(str(e))
