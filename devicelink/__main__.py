"""Allow ``python -m devicelink`` to launch the daemon or a one-shot command."""

from __future__ import annotations

import sys

from devicelink.app.daemon import run


if __name__ == "__main__":
    sys.exit(run(sys.argv[1:]))
