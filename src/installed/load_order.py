"""Load and unload ordering over registry records.

Records are addressed by their index in the list handed in, so callers can
map results back to their own collection.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Sequence, Set, Tuple

from constants import Constants
from errors import UnsatisfiedDependencyError

from .records import InstalledRecord

logger = logging.getLogger(__name__)


def _first_index_by_name(records: Sequence[InstalledRecord]) -> Dict[str, int]:
    first: Dict[str, int] = {}
    for i, rec in enumerate(records):
        first.setdefault(rec.name, i)
    return first


def compute_load_order(
    records: Sequence[InstalledRecord],
    requested: Sequence[int],
    handle_deps: bool = True,
) -> List[int]:
    """Return record indices to add to the search path, dependencies first.

    Already loaded records are skipped together with the dependencies reached
    only through them. The host runtime dependency is ignored.

    Args:
        records: Merged registry view.
        requested: Indices of the records the user asked for.
        handle_deps: Also load the dependencies of requested records.

    Returns:
        List[int]: Indices in load order.
    """
    first = _first_index_by_name(records)

    def dep_indices(i: int) -> Iterator[int]:
        if not handle_deps:
            return
        for dep in records[i].dependencies:
            if dep.package == Constants.HOST_PACKAGE_NAME:
                continue
            j = first.get(dep.package)
            if j is None:
                logger.debug("%s depends on %s which is not installed", records[i].id, dep.package)
                continue
            yield j

    order: List[int] = []
    placed: Set[int] = set()
    for root in requested:
        if root in placed or records[root].loaded:
            continue
        stack: List[Tuple[int, Iterator[int]]] = [(root, dep_indices(root))]
        expanding = {root}
        while stack:
            node, pending = stack[-1]
            nxt = next(pending, None)
            if nxt is None:
                stack.pop()
                expanding.discard(node)
                if node not in placed:
                    placed.add(node)
                    order.append(node)
                continue
            if nxt in placed or nxt in expanding or records[nxt].loaded:
                continue
            expanding.add(nxt)
            stack.append((nxt, dep_indices(nxt)))
    return order


def compute_unload_safety(
    records: Sequence[InstalledRecord],
    targets: Sequence[int],
    nodeps: bool = False,
) -> List[int]:
    """Return loaded, non-target records that still depend on ``targets``.

    Dependents are collected transitively through the inverse dependency
    edges among loaded records.

    Raises:
        UnsatisfiedDependencyError: when blockers exist and ``nodeps`` is False.
    """
    target_set = set(targets)
    inverse: Dict[str, List[int]] = {}
    for i, rec in enumerate(records):
        if not rec.loaded or i in target_set:
            continue
        for dep in rec.dependencies:
            inverse.setdefault(dep.package, []).append(i)

    blockers: List[int] = []
    seen: Set[int] = set()
    work = [records[t].name for t in targets]
    while work:
        name = work.pop()
        for dependent in inverse.get(name, []):
            if dependent in seen:
                continue
            seen.add(dependent)
            blockers.append(dependent)
            work.append(records[dependent].name)

    if blockers and not nodeps:
        raise UnsatisfiedDependencyError(
            "the following loaded package(s) depend on the one(s) you want to unload; "
            "either unload any depender package(s), or use the '-nodeps' flag:",
            unmet=[records[b].id for b in blockers],
        )
    return blockers
