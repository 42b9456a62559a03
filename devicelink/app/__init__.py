"""Application entrypoints for devicelink."""

from .daemon import main, run

__all__ = ["main", "run"]
