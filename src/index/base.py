"""Abstract base class for package index adapters."""

from __future__ import annotations

import difflib
from abc import ABC, abstractmethod
from typing import List, Optional

from versioning.models import IndexEntry, ResolutionItem
from versioning.parser import split_id


class PackageIndexAdapter(ABC):
    """Uniform name -> versions -> dependencies view over a remote index."""

    #: Whether entries carry dependency constraints the resolver can solve.
    has_dependency_graph: bool = True

    @abstractmethod
    def lookup_versions(self, name: str) -> List[IndexEntry]:
        """Return the entries for ``name`` newest-first; empty when unknown."""

    @abstractmethod
    def list_names(self) -> List[str]:
        """Return every package name known to the index."""

    @abstractmethod
    def find_matches(self, item: ResolutionItem) -> List[IndexEntry]:
        """Return every entry matching the item's checksum, url or id."""

    def newest(self, name: str) -> Optional[IndexEntry]:
        """Return the newest entry of ``name`` or None."""
        versions = self.lookup_versions(name)
        return versions[0] if versions else None

    def entry_for_id(self, package_id: str) -> Optional[IndexEntry]:
        """Return the entry with exactly ``package_id`` or None."""
        name, _ = split_id(package_id)
        for entry in self.lookup_versions(name):
            if entry.id == package_id:
                return entry
        return None

    def suggest(self, name: str) -> Optional[str]:
        """Return the closest known package name, if any is reasonably close."""
        hits = difflib.get_close_matches(name, self.list_names(), n=1)
        return hits[0] if hits else None
