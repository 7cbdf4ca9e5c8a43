"""Ferron Forge: compiles a custom Ferron web server build into a ZIP archive."""

from ferron_forge.__version__ import __version__

__all__ = ["__version__"]
