"""
Chain tail resolution.
"""

from .resolver import ChainResolver

__all__ = ["ChainResolver"]
