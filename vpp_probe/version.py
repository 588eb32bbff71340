"""Version info for the ``version`` command."""

from __future__ import annotations

import platform
from importlib import metadata

from . import __version__

_COMPONENTS = ("docker", "kubernetes", "requests", "PyYAML")


def short() -> str:
    return f"vpp-probe {__version__}"


def verbose() -> str:
    lines = [
        short(),
        f"  python:   {platform.python_version()} ({platform.python_implementation()})",
        f"  platform: {platform.system().lower()}/{platform.machine()}",
    ]
    for dist in _COMPONENTS:
        try:
            version = metadata.version(dist)
        except metadata.PackageNotFoundError:
            version = "not installed"
        lines.append(f"  {dist}: {version}")
    return "\n".join(lines)
