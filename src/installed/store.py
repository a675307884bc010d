"""Persisted registry of installed packages, one file per scope.

Every write goes to a temporary file that is swapped in with ``os.replace``;
the in-memory view is only updated after the swap succeeded.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Callable, Dict, Iterable, List, Optional

from common.fs_utils import atomic_write_text
from common.logging_utils import extra_context, is_debug_enabled
from constants import Scope
from errors import PersistenceError

from .records import InstalledRecord, sort_dependencies_first

logger = logging.getLogger(__name__)

REGISTRY_SCHEMA = 1


def merge(local: Iterable[InstalledRecord], global_: Iterable[InstalledRecord]) -> List[InstalledRecord]:
    """Merge both scopes; a local record shadows a global one with the same name."""
    seen = set()
    merged = []
    for rec in list(local) + list(global_):
        if rec.name in seen:
            continue
        seen.add(rec.name)
        merged.append(rec)
    return merged


def is_loaded(record: InstalledRecord, search_path: Iterable[str]) -> bool:
    """True when the record's install directory is on ``search_path``."""
    target = os.path.normpath(record.dir)
    return any(os.path.normpath(entry) == target for entry in search_path)


class RegistryStore:
    """Load/save ordered InstalledRecord collections for the local and global scope."""

    def __init__(self, local_path: str, global_path: str):
        self._paths: Dict[Scope, str] = {Scope.LOCAL: local_path, Scope.GLOBAL: global_path}
        self._records: Dict[Scope, Optional[List[InstalledRecord]]] = {
            Scope.LOCAL: None,
            Scope.GLOBAL: None,
        }

    def path(self, scope: Scope) -> str:
        return self._paths[scope]

    def list(self, scope: Scope) -> List[InstalledRecord]:
        """Return the records of ``scope`` in persisted order."""
        if self._records[scope] is None:
            self._records[scope] = self._load(scope)
        return list(self._records[scope] or [])

    def merged(self) -> List[InstalledRecord]:
        """Return the merged local+global view."""
        return merge(self.list(Scope.LOCAL), self.list(Scope.GLOBAL))

    def find(self, name: str, scope: Optional[Scope] = None) -> Optional[InstalledRecord]:
        """Return the first record called ``name`` in ``scope`` or the merged view."""
        records = self.merged() if scope is None else self.list(scope)
        return next((r for r in records if r.name == name), None)

    def add(self, record: InstalledRecord, scope: Scope) -> None:
        """Register ``record``, replacing any record with the same name in ``scope``."""
        records = [r for r in self.list(scope) if r.name != record.name]
        records.append(record)
        self._commit(scope, records)

    def remove(self, predicate: Callable[[InstalledRecord], bool], scope: Scope) -> List[InstalledRecord]:
        """Remove every record matching ``predicate``; returns the removed records."""
        current = self.list(scope)
        removed = [r for r in current if predicate(r)]
        if removed:
            self._commit(scope, [r for r in current if not predicate(r)])
        return removed

    def replace_all(self, scope: Scope, records: Iterable[InstalledRecord]) -> None:
        """Persist ``records`` as the complete content of ``scope``."""
        self._commit(scope, list(records))

    def _commit(self, scope: Scope, records: List[InstalledRecord]) -> None:
        ordered = sort_dependencies_first(records)
        self._write(scope, ordered)
        self._records[scope] = ordered
        if is_debug_enabled(logger):
            logger.debug(
                "Registry updated",
                extra=extra_context(
                    event="registry_write",
                    component="registry",
                    action="commit",
                    target=scope.value,
                    count=len(ordered)
                )
            )

    def _load(self, scope: Scope) -> List[InstalledRecord]:
        path = self._paths[scope]
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"could not read package list {path}: {exc}") from exc
        try:
            return [InstalledRecord.from_dict(item) for item in data.get("packages", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"package list {path} is corrupt: {exc}") from exc

    def _write(self, scope: Scope, records: List[InstalledRecord]) -> None:
        path = self._paths[scope]
        try:
            if not records:
                if os.path.exists(path):
                    os.unlink(path)
                return
            payload = {"schema": REGISTRY_SCHEMA, "packages": [r.to_dict() for r in records]}
            atomic_write_text(path, json.dumps(payload, indent=2) + "\n")
        except OSError as exc:
            raise PersistenceError(f"could not write package list {path}: {exc}") from exc
