"""Providers — bindings for the package managers devboot drives.

Public re-exports for convenient access.
"""

from devboot.adapters.base import PackageProvider, Presence, Provider
from devboot.adapters.mock import MockProvider
from devboot.adapters.registry import ProviderDispatch, default_dispatch

__all__ = [
    "MockProvider",
    "PackageProvider",
    "Presence",
    "Provider",
    "ProviderDispatch",
    "default_dispatch",
]
