"""
CLI package for SheetSync.

Contains command-line interface components.
"""

from .cli import main

__all__ = ["main"]
