"""Top-level package for the devicelink daemon."""

from __future__ import annotations

import asyncio
from importlib import metadata
from typing import Optional, Sequence

try:
    __version__ = metadata.version("devicelink")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"

from .app.daemon import main  # noqa: E402


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Convenience wrapper that runs the async daemon entry point."""
    return asyncio.run(main(list(argv) if argv is not None else None))


__all__ = ["__version__", "main", "run"]
