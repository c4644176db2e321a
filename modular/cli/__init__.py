"""
Modular CLI

Commands:
- modular graph - Show the dependency order of a set of module definitions
- modular version - Show version information
"""

from .. import __version__

__all__ = ["__version__"]
