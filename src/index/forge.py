"""Octave Forge style index: a flat name list plus the newest version per name.

Forge publishes no dependency graph and only the latest release, so explicit
``name@version`` requests cannot be served.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional, Tuple

from common.http_client import robust_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import Constants
from errors import IndexUnavailableError, ResolutionError
from versioning.models import IndexEntry, ResolutionItem
from versioning.parser import split_id

from .base import PackageIndexAdapter

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r'<tdclass="package_table">PackageVersion:</td><td>([\d.]*)</td>')

Fetcher = Callable[[str], Tuple[int, Dict[str, str], str]]


class ForgeIndex(PackageIndexAdapter):
    """Index adapter scraping the Octave Forge web pages."""

    has_dependency_graph = False

    def __init__(
        self,
        list_url: str = Constants.FORGE_LIST_URL,
        package_url: str = Constants.FORGE_PACKAGE_URL,
        download_url: str = Constants.FORGE_DOWNLOAD_URL,
        fetcher: Optional[Fetcher] = None,
    ):
        self._list_url = list_url
        self._package_url = package_url
        self._download_url = download_url
        self._fetch = fetcher or robust_get
        self._names: Optional[List[str]] = None
        self._latest: Dict[str, IndexEntry] = {}

    def _get(self, url: str) -> str:
        status, _, text = self._fetch(url)
        if status != 200:
            raise IndexUnavailableError(
                f"could not read URL '{safe_url(url)}', please verify internet connection"
            )
        return text

    def list_names(self) -> List[str]:
        if self._names is None:
            self._names = [n.lower() for n in self._get(self._list_url).split()]
        return list(self._names)

    def lookup_versions(self, name: str) -> List[IndexEntry]:
        name = name.lower()
        if name not in self.list_names():
            return []
        if name not in self._latest:
            page = re.sub(r"\s", "", self._get(self._package_url.format(name=name)))
            m = _VERSION_RE.search(page)
            if not m or not m.group(1):
                raise ResolutionError(f"could not find latest version of package '{name}'")
            ver = m.group(1)
            self._latest[name] = IndexEntry(
                id=f"{name}@{ver}",
                url=self._download_url.format(name=name, version=ver),
            )
            if is_debug_enabled(logger):
                logger.debug(
                    "Resolved latest forge version",
                    extra=extra_context(
                        event="index_lookup",
                        component="forge",
                        action="scrape",
                        target=name,
                        outcome=ver
                    )
                )
        return [self._latest[name]]

    def find_matches(self, item: ResolutionItem) -> List[IndexEntry]:
        """Match by bare name only.

        Raises:
            ResolutionError: for versioned ids or names unknown to Forge.
        """
        if not item.id:
            return []
        name, ver = split_id(item.id)
        if ver:
            raise ResolutionError(
                "the forge index cannot resolve package versions, try without '@version' suffix"
            )
        versions = self.lookup_versions(name)
        if not versions:
            hint = self.suggest(name)
            msg = f"package '{name}' is not contained in the forge index"
            if hint:
                msg += f", did you mean '{hint}'?"
            raise ResolutionError(msg)
        return versions
