"""Command line interface for provider discovery."""

from .main import app

__all__ = ["app"]
