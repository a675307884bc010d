"""Adapters that normalize remote package indices.

Each adapter exposes name -> versions -> dependencies lookups consumed by
the resolver.
"""

from .base import PackageIndexAdapter
from .packages import PackagesIndex
from .forge import ForgeIndex
from .cache import IndexCache, get_index_cache

__all__ = [
    "PackageIndexAdapter",
    "PackagesIndex",
    "ForgeIndex",
    "IndexCache",
    "get_index_cache",
]
