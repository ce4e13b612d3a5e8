from __future__ import annotations

import importlib.util
import sys


def _has_module(name: str) -> bool:
    return importlib.util.find_spec(name) is not None


def _check_dependencies() -> None:
    missing = [m for m in ("pydantic", "numpy", "soundfile") if not _has_module(m)]
    if not missing:
        return
    msg = f"""Missing dependencies ({", ".join(missing)}).

Install core deps:
  python -m venv .venv
  . .venv/bin/activate
  python -m pip install -U pip
  python -m pip install -e .
"""
    sys.stderr.write(msg)
    raise SystemExit(1)


if __name__ == "__main__":
    _check_dependencies()

    # Default: open on the chat tab with no extra arguments.
    if len(sys.argv) == 1:
        sys.argv.extend(["--mode", "chat"])

    from scripts.run_studio import main

    main()
