"""Process-wide cache of the packages index.

The index is fetched at most once per TTL window. Every successful fetch is
mirrored to a local copy that serves as fallback when the network is down.
"""

from __future__ import annotations

import atexit
import logging
import os
import time
from typing import Callable, Dict, List, Optional, Tuple

from common.fs_utils import atomic_write_text
from common.http_client import robust_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from constants import Constants
from errors import IndexLookupError, IndexUnavailableError, PersistenceError
from versioning.cache import TTLCache

from .packages import PackagesIndex

logger = logging.getLogger(__name__)

Fetcher = Callable[..., Tuple[int, Dict[str, str], str]]


class IndexCache:
    """Lazily fetched, TTL-bounded packages index with a local fallback copy."""

    def __init__(
        self,
        url: str,
        cache_dir: str,
        ttl: int = Constants.INDEX_CACHE_TTL_SEC,
        stale_after: int = Constants.INDEX_STALE_AFTER_SEC,
        fetcher: Optional[Fetcher] = None,
    ):
        self.url = url
        self.cache_dir = cache_dir
        self.stale_after = stale_after
        self._fetch = fetcher or robust_get
        self._memo: TTLCache[PackagesIndex] = TTLCache(default_ttl=ttl)
        self.warnings: List[str] = []

    @property
    def local_copy_path(self) -> str:
        return os.path.join(self.cache_dir, Constants.INDEX_CACHE_FILE)

    def get(self, refresh: bool = False) -> PackagesIndex:
        """Return the index, fetching it when missing, expired or ``refresh``.

        Args:
            refresh: Bypass both the in-memory object and the local copy.

        Raises:
            IndexUnavailableError: when neither the network nor a local copy works.
            IndexLookupError: when the fetched document is corrupt.
        """
        if not refresh:
            cached = self._memo.get(self.url)
            if cached is not None:
                return cached

        text = self._download(refresh)
        if text is not None:
            index = PackagesIndex.from_text(text)
            self._store_local_copy(text)
        elif refresh:
            raise IndexUnavailableError(
                f"could not fetch package index from {safe_url(self.url)}"
            )
        else:
            index = self._load_local_copy()

        self._memo.set(self.url, index)
        return index

    def invalidate(self) -> None:
        """Forget the in-memory index; the next ``get`` fetches again."""
        self._memo.invalidate()

    def _download(self, refresh: bool) -> Optional[str]:
        with Timer() as t:
            status, _, text = self._fetch(self.url, use_cache=not refresh)
        if is_debug_enabled(logger):
            logger.debug(
                "Fetched package index",
                extra=extra_context(
                    event="index_fetch",
                    component="index_cache",
                    action="GET",
                    status_code=status,
                    duration_ms=t.duration_ms(),
                    target=safe_url(self.url)
                )
            )
        if status == 200 and text:
            return text
        logger.warning("Could not fetch package index from %s: %s",
                       safe_url(self.url), text if status == 0 else f"HTTP {status}")
        return None

    def _store_local_copy(self, text: str) -> None:
        try:
            atomic_write_text(self.local_copy_path, text)
        except OSError as exc:
            # The fetched index is usable even when the mirror cannot be written
            logger.warning("Could not write index cache %s: %s", self.local_copy_path, exc)

    def _load_local_copy(self) -> PackagesIndex:
        path = self.local_copy_path
        try:
            with open(path, "r", encoding="utf-8") as fh:
                text = fh.read()
            mtime = os.path.getmtime(path)
        except FileNotFoundError as exc:
            raise IndexUnavailableError(
                f"could not fetch package index from {safe_url(self.url)} and no local copy exists"
            ) from exc
        except OSError as exc:
            raise PersistenceError(f"could not read index cache {path}: {exc}") from exc

        age = time.time() - mtime
        if age > self.stale_after:
            msg = (f"using cached package index from {path}, "
                   f"{int(age // 86400)} days old; it may be outdated")
            logger.warning(msg)
            self.warnings.append(msg)
        else:
            logger.info("Using cached package index from %s", path)
        try:
            return PackagesIndex.from_text(text)
        except IndexLookupError:
            logger.error("Local index copy %s is corrupt", path)
            raise


_INDEX_CACHE: Optional[IndexCache] = None


def get_index_cache(url: str, cache_dir: str, **kwargs) -> IndexCache:
    """Return the process-wide IndexCache, creating it on first use.

    A different ``url`` or ``cache_dir`` replaces the existing instance.
    """
    global _INDEX_CACHE  # pylint: disable=global-statement
    if (_INDEX_CACHE is None or _INDEX_CACHE.url != url
            or _INDEX_CACHE.cache_dir != cache_dir):
        _INDEX_CACHE = IndexCache(url, cache_dir, **kwargs)
    return _INDEX_CACHE


def reset_index_cache() -> None:
    """Drop the process-wide instance."""
    global _INDEX_CACHE  # pylint: disable=global-statement
    _INDEX_CACHE = None


atexit.register(reset_index_cache)
