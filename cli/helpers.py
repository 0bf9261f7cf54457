"""Shared utilities for CLI modules."""
from __future__ import annotations

import os
import tomllib
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version

FALLBACK_VERSION = "0.1.0"


def get_version() -> str:
    """Installed distribution version, else pyproject.toml, else '0.1.0'."""
    try:
        return pkg_version("dashctl")
    except PackageNotFoundError:
        pass

    pyproject = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                             "pyproject.toml")
    if os.path.exists(pyproject):
        try:
            with open(pyproject, "rb") as f:
                data = tomllib.load(f)
            return data.get("project", {}).get("version", FALLBACK_VERSION)
        except (OSError, tomllib.TOMLDecodeError):
            pass
    return FALLBACK_VERSION
