# src/kubexplorer/models/resources.py
"""
Value types for resource magnitudes.

MemoryResource holds bytes, CpuResource holds milli-cores. Both are immutable
pydantic models ordered by their canonical value. Negative magnitudes are
accepted: CPU rates derived across a counter reset are negative and are kept
as-is.
"""

from abc import ABC, abstractmethod
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field

_BINARY_UNITS: Tuple[Tuple[str, int], ...] = (
    ("Ei", 1024**6),
    ("Pi", 1024**5),
    ("Ti", 1024**4),
    ("Gi", 1024**3),
    ("Mi", 1024**2),
    ("Ki", 1024),
)

MILLI_PER_CORE = 1000


def _trim(number: str) -> str:
    return number.rstrip("0").rstrip(".") if "." in number else number


class Quantity(BaseModel, ABC):
    """Base class for an integer resource magnitude with a display form."""

    model_config = ConfigDict(frozen=True)

    value: int = Field(..., description="Canonical magnitude.")

    def __init__(self, value: int = 0, **data):
        super().__init__(value=value, **data)

    @abstractmethod
    def display(self) -> str:
        """Human-readable magnitude with a unit suffix."""

    def __str__(self) -> str:
        return self.display()

    def __int__(self) -> int:
        return self.value

    def _check_comparable(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return None

    def __lt__(self, other):
        if self._check_comparable(other) is NotImplemented:
            return NotImplemented
        return self.value < other.value

    def __le__(self, other):
        if self._check_comparable(other) is NotImplemented:
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other):
        if self._check_comparable(other) is NotImplemented:
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other):
        if self._check_comparable(other) is NotImplemented:
            return NotImplemented
        return self.value >= other.value


class MemoryResource(Quantity):
    """Memory in bytes, displayed with binary-SI suffixes."""

    def display(self) -> str:
        sign = "-" if self.value < 0 else ""
        magnitude = abs(self.value)
        for suffix, size in _BINARY_UNITS:
            if magnitude >= size:
                return f"{sign}{_trim(f'{magnitude / size:.1f}')}{suffix}"
        return f"{sign}{magnitude}"


class CpuResource(Quantity):
    """CPU in milli-cores, displayed as 'Nm' below one core and as cores above."""

    def display(self) -> str:
        sign = "-" if self.value < 0 else ""
        magnitude = abs(self.value)
        if magnitude < MILLI_PER_CORE:
            return f"{sign}{magnitude}m"
        return f"{sign}{_trim(f'{magnitude / MILLI_PER_CORE:.3f}')}"
