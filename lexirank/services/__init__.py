"""
Services package for LexiRank.

Stateless services over the shared database; each request handler composes them.
"""

from .base import BaseService

__all__ = ['BaseService']
