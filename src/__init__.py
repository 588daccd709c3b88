# src/__init__.py - v1
"""texsvg: render embedded TeX snippets to SVG with a fingerprinted cache."""

from texsvg.version import __version__

__all__ = ["__version__"]
