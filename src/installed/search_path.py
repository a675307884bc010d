"""Interpreter search path modelled as an ordered directory list."""

from __future__ import annotations

import os
from typing import Iterable, Iterator, List, Mapping, Optional

from constants import Constants


class SearchPath:
    """Ordered, duplicate-free list of directories."""

    def __init__(self, entries: Optional[Iterable[str]] = None):
        self._entries: List[str] = []
        for entry in entries or []:
            if entry and not self._has(entry):
                self._entries.append(entry)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None,
                 var: str = Constants.ENV_SEARCH_PATH) -> "SearchPath":
        env = os.environ if env is None else env
        raw = env.get(var, "")
        return cls(p for p in raw.split(os.pathsep) if p)

    def _has(self, entry: str) -> bool:
        norm = os.path.normpath(entry)
        return any(os.path.normpath(e) == norm for e in self._entries)

    def __contains__(self, entry: object) -> bool:
        return isinstance(entry, str) and self._has(entry)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def prepend(self, *dirs: str) -> None:
        """Put ``dirs`` in front, in the given order, moving existing entries."""
        self.remove(*dirs)
        self._entries[0:0] = [d for d in dirs if d]

    def remove(self, *dirs: str) -> None:
        norms = {os.path.normpath(d) for d in dirs if d}
        self._entries = [e for e in self._entries if os.path.normpath(e) not in norms]

    def snapshot(self) -> List[str]:
        return list(self._entries)

    def restore(self, entries: Iterable[str]) -> None:
        self._entries = list(entries)

    def to_env_value(self) -> str:
        return os.pathsep.join(self._entries)
