"""Repair tracker: resilient dual-backend data access for repair orders."""

from .version import __version__, __version_info__

__all__ = ["__version__", "__version_info__"]
