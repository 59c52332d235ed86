"""Utility modules for firmscope."""

from . import formatting

__all__ = ['formatting']
