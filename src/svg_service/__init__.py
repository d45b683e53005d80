"""
SVG Conversion Service package.

This module provides a FastAPI application that converts uploaded Adobe
Illustrator (.ai) and Encapsulated PostScript (.eps) files into SVG using
external command-line tools. The upload endpoint is `/convert`.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
