"""Octave Packages style index: every version carries url, sha256 and depends.

Versions keep the document order, which lists the newest release first.

Document shape::

    {"io": {"versions": [{"id": "2.6.3", "url": "...", "sha256": "...",
                          "depends": [{"name": "octave (>= 4.2.0)"}]}]}}
"""

from __future__ import annotations

import html
import json
import logging
from typing import Any, Dict, List

from common.logging_utils import extra_context, is_debug_enabled
from errors import IndexLookupError
from versioning.models import IndexEntry, ResolutionItem
from versioning.parser import parse_dependency_list

from .base import PackageIndexAdapter

logger = logging.getLogger(__name__)


class PackagesIndex(PackageIndexAdapter):
    """In-memory, validated view of a packages index document."""

    has_dependency_graph = True

    def __init__(self, document: Dict[str, Any]):
        """Build lookups from a parsed document.

        Raises:
            IndexLookupError: on malformed entries or a checksum shared by two ids.
        """
        if not isinstance(document, dict):
            raise IndexLookupError("package index must be a mapping of package names")
        self._versions: Dict[str, List[IndexEntry]] = {}
        self._ordered: List[IndexEntry] = []
        by_checksum: Dict[str, str] = {}

        for raw_name, body in document.items():
            name = str(raw_name).lower()
            versions = body.get("versions", []) if isinstance(body, dict) else None
            if not isinstance(versions, list):
                raise IndexLookupError(f"package '{name}' has no version list")
            entries = []
            for ver in versions:
                entry = self._parse_version(name, ver)
                if entry.checksum:
                    known = by_checksum.get(entry.checksum)
                    if known is not None and known != entry.id:
                        raise IndexLookupError(
                            f"checksums corrupt: {entry.checksum} is claimed by {known} and {entry.id}"
                        )
                    by_checksum[entry.checksum] = entry.id
                entries.append(entry)
            self._versions[name] = entries
            self._ordered.extend(entries)

        if is_debug_enabled(logger):
            logger.debug(
                "Loaded package index",
                extra=extra_context(
                    event="index_load",
                    component="index",
                    action="parse",
                    count=len(self._versions),
                    versions=len(self._ordered)
                )
            )

    @staticmethod
    def _parse_version(name: str, ver: Any) -> IndexEntry:
        if not isinstance(ver, dict) or not ver.get("id"):
            raise IndexLookupError(f"package '{name}' has a version without id")
        vid = str(ver["id"])
        full_id = vid.lower() if "@" in vid else f"{name}@{vid}"
        try:
            deps = parse_dependency_list(ver.get("depends") or [])
        except ValueError as exc:
            raise IndexLookupError(f"{full_id}: {exc}") from exc
        return IndexEntry(
            id=full_id,
            url=str(ver.get("url") or ""),
            checksum=str(ver.get("sha256") or "").lower(),
            dependencies=deps,
        )

    @classmethod
    def from_text(cls, text: str) -> "PackagesIndex":
        """Parse a JSON document, tolerating HTML-escaped comparison operators."""
        try:
            document = json.loads(html.unescape(text))
        except json.JSONDecodeError as exc:
            raise IndexLookupError(f"package index is not valid JSON: {exc}") from exc
        return cls(document)

    def lookup_versions(self, name: str) -> List[IndexEntry]:
        return list(self._versions.get(name.lower(), []))

    def list_names(self) -> List[str]:
        return list(self._versions)

    def find_matches(self, item: ResolutionItem) -> List[IndexEntry]:
        checksum = item.checksum.lower()
        matches = []
        for entry in self._ordered:
            if ((checksum and entry.checksum == checksum)
                    or (item.url and entry.url == item.url)
                    or (item.id and entry.id == item.id)):
                matches.append(entry)
        return matches
