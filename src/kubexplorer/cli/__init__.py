# src/kubexplorer/cli/__init__.py
"""
kubexplorer CLI Package

This package exposes the top-level Typer `app` so tests and the console
entrypoint can import `kubexplorer.cli.app`.
"""

from .main import app

__all__ = ["app"]
