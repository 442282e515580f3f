"""
Debrid API Layer.

This package handles all communication with the debrid unrestrict service.
"""

from .client import DebridAPIClient, UnrestrictedLink

__all__ = ["DebridAPIClient", "UnrestrictedLink"]
