"""Loomkit package metadata.

Exports the package version resolved from build metadata or installed
distribution information.

Example:
    >>> from loomkit import __version__
    >>> isinstance(__version__, str)
    True
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__"]

try:
    __version__ = version("loomkit")
except PackageNotFoundError:
    __version__ = "0.0.0"
