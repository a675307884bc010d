"""Iterative dependency resolver.

Turns request items into a dependency-ordered installation plan in two phases:

* normalization: every item is matched against the index by checksum, url or
  id, and missing fields are filled from the matching entry;
* fixed-point solving: outstanding constraints are satisfied by installed
  packages or by other items, and at most one new item is synthesized per
  round for a package nobody provides yet.

Solving is bounded by ``Constants.RESOLVE_MAX_ROUNDS``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from typing import Iterator, List, Optional, Sequence, Set, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants
from errors import (
    AmbiguousInputError,
    CircularDependencyError,
    InconsistentInputWarning,
    UnsatisfiedDependencyError,
)
from index.base import PackageIndexAdapter
from installed.records import InstalledRecord
from options import Options
from versioning.compare import compare_versions
from versioning.models import DependencyConstraint, PlanItem, ResolutionItem
from versioning.parser import id_from_archive_name

from .models import ResolutionResult

logger = logging.getLogger(__name__)


class Resolver:
    """Resolve request items against an index and a snapshot of installed packages."""

    def __init__(
        self,
        index: PackageIndexAdapter,
        installed: Sequence[InstalledRecord],
        host_version: str,
        max_rounds: int = Constants.RESOLVE_MAX_ROUNDS,
    ):
        """Initialize the resolver.

        Args:
            index: Index adapter used for matching and candidate lookup.
            installed: Merged registry view; the host runtime is added as a
                pseudo-package named ``Constants.HOST_PACKAGE_NAME``.
            host_version: Version of the host runtime.
            max_rounds: Upper bound on solving rounds.
        """
        self._index = index
        self._installed: List[Tuple[str, str]] = [(Constants.HOST_PACKAGE_NAME, host_version)]
        self._installed.extend((r.name, r.version) for r in installed)
        self._max_rounds = max_rounds

    def resolve(self, items: Sequence[ResolutionItem], options: Optional[Options] = None) -> ResolutionResult:
        """Resolve ``items`` into an installation plan.

        Args:
            items: Request items; they are copied, not mutated.
            options: ``force`` degrades cycles and unmet constraints to
                warnings, ``nodeps`` skips candidate synthesis.

        Returns:
            ResolutionResult: Plan, unresolved items and collected warnings.

        Raises:
            AmbiguousInputError: an item matches more than one index entry.
            CircularDependencyError: a dependency cycle exists (not ``force``).
            UnsatisfiedDependencyError: constraints stay unmet (not ``force``/``nodeps``).
        """
        options = options or Options()
        result = ResolutionResult()
        work = [replace(i, needed_by=list(i.needed_by), deps=list(i.deps)) for i in items]

        for item in work:
            self._normalize(item, result)

        unresolved = [i for i in work if not i.url]
        if unresolved:
            result.unresolved = unresolved
            result.complete = False
            logger.debug("Unresolved input: %s", ", ".join(i.describe() for i in unresolved))
            return result

        for item in work:
            if not item.id:
                item.id = id_from_archive_name(item.url) or os.path.basename(item.url)

        work = self._dedupe(work)
        if not options.force:
            installed_ids = {f"{name}@{ver}" for name, ver in self._installed}
            work = [i for i in work if i.id not in installed_ids]
        if not work:
            logger.info("All requested packages are already installed")
            return result

        if not self._index.has_dependency_graph:
            result.plan = self._to_plan(work)
            return result

        self._solve(work, options, result)
        return result

    def _normalize(self, item: ResolutionItem, result: ResolutionResult) -> None:
        item.id = item.id.lower()
        if item.id and "@" not in item.id and self._index.has_dependency_graph:
            newest = self._index.newest(item.id)
            if newest is not None:
                item.id = newest.id

        matches = self._index.find_matches(item)
        if not matches:
            return
        if len(matches) > 1:
            raise AmbiguousInputError(item.describe(), [m.id for m in matches])
        entry = matches[0]

        if not item.checksum:
            item.checksum = entry.checksum
        elif entry.checksum and item.checksum.lower() != entry.checksum:
            self._inconsistent(
                result,
                f"invalid checksum of '{entry.id}': actual '{item.checksum}', expected '{entry.checksum}'",
            )
            item.checksum = entry.checksum
        if not item.url:
            item.url = entry.url
        if "@" not in item.id:
            item.id = entry.id
        elif item.id != entry.id:
            self._inconsistent(
                result,
                f"invalid package name and version: expected '{entry.id}', but found '{item.id}'",
            )
            item.id = entry.id

    @staticmethod
    def _dedupe(items: List[ResolutionItem]) -> List[ResolutionItem]:
        seen: Set[str] = set()
        unique = []
        for item in items:
            if item.id in seen:
                continue
            seen.add(item.id)
            unique.append(item)
        return unique

    def _solve(self, items: List[ResolutionItem], options: Options, result: ResolutionResult) -> None:
        for item in items:
            item.deps = self._dependencies_of(item.id)
        exhausted: Set[str] = set()

        for round_no in range(1, self._max_rounds + 1):
            self._satisfy(items)

            cyclic = self._find_cycle(items)
            if cyclic is not None:
                err = CircularDependencyError(cyclic)
                if not options.force:
                    raise err
                self._warn(result, f"{err}; resolution aborted")
                result.plan = self._to_plan(items)
                result.complete = False
                return

            items = self._stabilize(items)

            if is_debug_enabled(logger):
                logger.debug(
                    "Resolution round",
                    extra=extra_context(
                        event="resolve_round",
                        component="resolver",
                        action="solve",
                        round=round_no,
                        items=",".join(i.id for i in items),
                        outstanding=sum(len(i.deps) for i in items)
                    )
                )

            if all(not i.deps for i in items):
                result.plan = self._to_plan(items)
                return

            if options.nodeps:
                break
            candidate = self._next_candidate(items, exhausted)
            if candidate is None:
                break
            items.insert(0, candidate)

        result.unmet = {i.id: list(i.deps) for i in items if i.deps}
        result.plan = self._to_plan(items)
        result.complete = False
        err = UnsatisfiedDependencyError(
            "could not resolve all dependencies", unmet=result.unmet_lines()
        )
        if options.force or options.nodeps:
            self._warn(result, str(err))
            return
        raise err

    def _dependencies_of(self, package_id: str) -> List[DependencyConstraint]:
        entry = self._index.entry_for_id(package_id)
        return list(entry.dependencies) if entry is not None else []

    def _installed_satisfies(self, dep: DependencyConstraint) -> bool:
        version = next((v for n, v in self._installed if n == dep.package), None)
        return version is not None and compare_versions(version, dep.version, dep.operator)

    def _satisfy(self, items: List[ResolutionItem]) -> None:
        """Drop constraints met by installed packages or by other items."""
        snapshot = [(i.name, i.id.partition("@")[2], i) for i in items]
        for item in items:
            remaining = []
            for dep in item.deps:
                if self._installed_satisfies(dep):
                    continue
                provider = next(
                    (other for name, ver, other in snapshot
                     if name == dep.package and compare_versions(ver, dep.version, dep.operator)),
                    None,
                )
                if provider is not None:
                    if item.id not in provider.needed_by:
                        provider.needed_by.append(item.id)
                    continue
                remaining.append(dep)
            item.deps = remaining

    @staticmethod
    def _find_cycle(items: List[ResolutionItem]) -> Optional[str]:
        """Return the id of an item whose needed_by chain loops back, or None."""
        pos = {}
        for k, item in enumerate(items):
            pos.setdefault(item.id, k)

        def edges(k: int) -> Iterator[int]:
            for nid in items[k].needed_by:
                j = pos.get(nid)
                if j is not None:
                    yield j

        cleared: Set[int] = set()
        for start in range(len(items)):
            if start in cleared:
                continue
            path = [start]
            on_path = {start}
            stack = [edges(start)]
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    stack.pop()
                    done = path.pop()
                    on_path.discard(done)
                    cleared.add(done)
                    continue
                if nxt in on_path:
                    return items[start].id
                if nxt in cleared:
                    continue
                path.append(nxt)
                on_path.add(nxt)
                stack.append(edges(nxt))
        return None

    @staticmethod
    def _stabilize(items: List[ResolutionItem]) -> List[ResolutionItem]:
        """Move every needed item in front of the earliest item needing it."""
        n = len(items)
        for _ in range(n):
            pos = {}
            for k, item in enumerate(items):
                pos.setdefault(item.id, k)
            swap = list(range(n))
            moved = False
            for k, item in enumerate(items):
                needers = [pos[nid] for nid in item.needed_by if nid in pos]
                if not needers:
                    continue
                first = min(needers)
                if first < k:
                    moved = True
                    swap.remove(k)
                    swap.insert(first, k)
            if not moved:
                break
            items = [items[i] for i in swap]
        return items

    def _next_candidate(self, items: List[ResolutionItem], exhausted: Set[str]) -> Optional[ResolutionItem]:
        """Synthesize an item for the first outstanding package nobody provides.

        The newest index version satisfying every outstanding constraint on
        that name wins. Names without any feasible version are exhausted.
        """
        present = {i.name for i in items}
        for item in items:
            for dep in item.deps:
                name = dep.package
                if name in exhausted or name in present:
                    continue
                versions = self._index.lookup_versions(name)
                if not versions:
                    logger.debug("Dependency %s is not in the index", name)
                    exhausted.add(name)
                    continue
                constraints = [d for i in items for d in i.deps if d.package == name]
                feasible = [
                    e for e in versions
                    if all(compare_versions(e.version, d.version, d.operator) for d in constraints)
                ]
                if not feasible:
                    logger.debug("No version of %s satisfies %s", name,
                                 ", ".join(str(d) for d in constraints))
                    exhausted.add(name)
                    continue
                entry = feasible[0]
                return ResolutionItem(
                    url=entry.url,
                    id=entry.id,
                    checksum=entry.checksum,
                    deps=self._dependencies_of(entry.id),
                )
        return None

    @staticmethod
    def _to_plan(items: Sequence[ResolutionItem]) -> List[PlanItem]:
        return [PlanItem(id=i.id, url=i.url, checksum=i.checksum) for i in items]

    @staticmethod
    def _warn(result: ResolutionResult, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)

    def _inconsistent(self, result: ResolutionResult, message: str) -> None:
        self._warn(result, message)
        result.inconsistencies.append(InconsistentInputWarning(message))
