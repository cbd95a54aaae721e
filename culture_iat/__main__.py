from __future__ import annotations

import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Ensure the repository root (parent of this package) is on ``sys.path``.

    Lets ``python culture_iat/__main__.py`` work as well as ``python -m culture_iat``.
    """
    repo_root_str = str(Path(__file__).resolve().parent.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # Works when executed as a module: python -m culture_iat
    from .app import run  # type: ignore[attr-defined]
except ImportError:
    # Works when executed as a script.
    _ensure_repo_root_on_path()
    from culture_iat.app import run  # type: ignore[attr-defined]


def main() -> int:
    """Entry point for running the test from the command line."""
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
