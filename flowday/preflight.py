"""Environment and dependency preflight checks.

Set FLOWDAY_SKIP_PREFLIGHT=1 to bypass (useful for development).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Optional

ENV_SKIP = "FLOWDAY_SKIP_PREFLIGHT"
MIN_PYTHON = (3, 9)


@dataclass(frozen=True)
class PreflightResult:
    ok: bool
    message: str


def _check_python_version() -> Optional[str]:
    if sys.version_info < MIN_PYTHON:
        found = ".".join(str(part) for part in sys.version_info[:3])
        wanted = ".".join(str(part) for part in MIN_PYTHON)
        return f"FlowDay needs Python {wanted} or newer, found {found}."
    return None


def _has_display() -> bool:
    return bool(os.environ.get("WAYLAND_DISPLAY") or os.environ.get("DISPLAY"))


def _check_python_deps() -> Optional[str]:
    """Return an error message if required deps are missing."""
    try:
        import cairo  # type: ignore[import-not-found]  # noqa: F401
    except ImportError as exc:
        return (
            "Missing Python dependency 'pycairo'. "
            "Install it with pip (pycairo) and ensure cairo is available. "
            f"Underlying error: {exc}"
        )

    try:
        import gi  # type: ignore[import-not-found]

        gi.require_version("Gtk", "4.0")
        gi.require_version("Adw", "1")
        gi.require_version("Gdk", "4.0")
        from gi.repository import Gtk, Adw, Gdk  # type: ignore[import-not-found]  # noqa: F401
    except (ImportError, ValueError) as exc:
        return (
            "Missing GTK 4/libadwaita bindings. Install PyGObject together with "
            "your distribution's gtk4 and libadwaita packages. "
            f"Underlying error: {exc}"
        )

    return None


def run_preflight(
    *,
    require_display: bool = True,
    check_deps: bool = True,
) -> PreflightResult:
    """Run checks and return a structured result.

    `require_display` depends on session env vars, so it's enforced at
    runtime (not during `pip install`).
    """
    if os.environ.get(ENV_SKIP) == "1":
        return PreflightResult(True, f"Preflight skipped via {ENV_SKIP}=1")

    version_error = _check_python_version()
    if version_error:
        return PreflightResult(False, version_error)

    if require_display and not _has_display():
        return PreflightResult(
            False,
            "No graphical session found (neither WAYLAND_DISPLAY nor DISPLAY is set). "
            f"Set {ENV_SKIP}=1 to bypass.",
        )

    if check_deps:
        dep_error = _check_python_deps()
        if dep_error:
            return PreflightResult(False, dep_error)

    return PreflightResult(True, "Preflight OK")


def run_preflight_or_die(
    *,
    require_display: bool = True,
    check_deps: bool = True,
) -> None:
    result = run_preflight(require_display=require_display, check_deps=check_deps)
    if result.ok:
        return

    sys.stderr.write("\nFlowDay preflight check failed:\n")
    sys.stderr.write(result.message)
    sys.stderr.write("\n\n")
    raise SystemExit(1)
