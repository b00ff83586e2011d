"""
Version information for the repair tracker data-access layer.

This file is the single source of truth for version numbers.
setup.py and the health-check script both import from here.
"""

__version__ = "0.3.0"
__version_info__ = (0, 3, 0)
