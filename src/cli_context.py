"""Shared state of one command line invocation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from config import PkgConfig
from errors import PackageNotInstalledError
from index.base import PackageIndexAdapter
from index.cache import get_index_cache
from index.forge import ForgeIndex
from installed.records import InstalledRecord
from installed.search_path import SearchPath
from installed.store import RegistryStore, is_loaded
from options import Options

logger = logging.getLogger(__name__)


@dataclass
class CommandContext:
    """Configuration, options and lazily created collaborators for a command."""
    config: PkgConfig
    options: Options
    search_path: SearchPath = field(default_factory=SearchPath)
    store: Optional[RegistryStore] = None
    index_adapter: Optional[PackageIndexAdapter] = None
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.store is None:
            self.store = RegistryStore(self.config.local.list, self.config.global_.list)

    @classmethod
    def from_env(cls, config: PkgConfig, options: Options,
                 env: Optional[Mapping[str, str]] = None) -> "CommandContext":
        return cls(config=config, options=options, search_path=SearchPath.from_env(env))

    def index(self) -> PackageIndexAdapter:
        """Return the index selected by the options, created on first use."""
        if self.index_adapter is None:
            if self.options.forge:
                self.index_adapter = ForgeIndex(
                    self.config.forge_list_url,
                    self.config.forge_package_url,
                    self.config.forge_download_url,
                )
            else:
                cache = get_index_cache(
                    self.config.index_url,
                    self.config.cache_dir,
                    ttl=self.config.index_cache_ttl,
                    stale_after=self.config.index_stale_after,
                )
                self.index_adapter = cache.get(refresh=self.options.nocache)
                self.warnings.extend(cache.warnings)
        return self.index_adapter

    def records(self) -> List[InstalledRecord]:
        """Merged registry view with ``loaded`` derived from the search path."""
        records = self.store.merged()
        for rec in records:
            rec.loaded = is_loaded(rec, self.search_path)
        return records

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def select_records(records: Sequence[InstalledRecord], names: Sequence[str]) -> List[int]:
    """Map names (or ``name@version`` ids) to indices in ``records``; ``all`` selects everything.

    Raises:
        PackageNotInstalledError: for the first name that matches nothing.
    """
    if len(names) == 1 and names[0].lower() == "all":
        return list(range(len(records)))
    indices: List[int] = []
    for name in names:
        token = name.strip().lower()
        idx = next((i for i, r in enumerate(records) if token in (r.name, r.id)), None)
        if idx is None:
            raise PackageNotInstalledError(token)
        if idx not in indices:
            indices.append(idx)
    return indices
