from __future__ import annotations

import logging
import os
import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Ensure the repository root (parent of this package) is on ``sys.path``.

    If this module is executed as a script (``python false_friend/__main__.py``),
    the package may not be discoverable by Python.
    """
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # Works when executed as a module: python -m false_friend
    from .app import run  # type: ignore[attr-defined]
    from .config import LOG_LEVEL_ENV  # type: ignore[attr-defined]
except ImportError:
    _ensure_repo_root_on_path()
    from false_friend.app import run  # type: ignore[attr-defined]
    from false_friend.config import LOG_LEVEL_ENV  # type: ignore[attr-defined]


def main() -> int:
    """Entry point for running the game from the command line."""
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "WARNING").upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
