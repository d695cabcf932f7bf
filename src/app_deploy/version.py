"""!
@brief Release identifiers for app-deploy.
@details ``--version`` output and the ``run_start`` log event both read
from here.
"""
from __future__ import annotations

from importlib import resources
from typing import Dict

__all__ = ["__version__", "__build__", "build_info"]

_UNKNOWN_VERSION = "0.0.0"


def _read_version_file() -> str:
    """!
    @brief Read the release number shipped beside the package as ``VERSION``.
    @details pyproject.toml points setuptools at the same file.
    """

    try:
        text = resources.files(__package__).joinpath("VERSION").read_text(encoding="utf-8")
    except FileNotFoundError:  # pragma: no cover - data file missing from the checkout
        return _UNKNOWN_VERSION
    return text.strip() or _UNKNOWN_VERSION


__version__ = _read_version_file()
__build__ = "dev"


def build_info() -> Dict[str, str]:
    """!
    @brief Release number and build tag as one mapping.
    """

    return {"version": __version__, "build": __build__}
