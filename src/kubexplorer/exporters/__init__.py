"""Exporters package for file-based report outputs."""

from .base_exporter import BaseExporter
from .csv_exporter import CSVExporter

__all__ = ["BaseExporter", "CSVExporter"]
