"""Command-line interface for aicore."""

from .app import app, main

__all__ = ["app", "main"]
