"""Installed-package registry, search path and load-order engine."""

from .records import InstalledRecord, sort_dependencies_first
from .store import RegistryStore, merge, is_loaded
from .load_order import compute_load_order, compute_unload_safety
from .search_path import SearchPath

__all__ = [
    "InstalledRecord",
    "sort_dependencies_first",
    "RegistryStore",
    "merge",
    "is_loaded",
    "compute_load_order",
    "compute_unload_safety",
    "SearchPath",
]
