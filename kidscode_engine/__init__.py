"""
KidsCode block engine: a small Scratch-like interpreter for the visual
programming studio.
"""

__version__ = "0.1.0"
