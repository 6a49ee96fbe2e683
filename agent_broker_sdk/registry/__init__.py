"""Registry module - directory of pluggable backend adapters.

This module provides:
- AdapterRegistry: maps adapter ids to search and chat adapters
- AdapterCapability: the capability an adapter is registered under
"""

from .registry import AdapterCapability, AdapterRegistry

__all__ = [
    "AdapterCapability",
    "AdapterRegistry",
]
