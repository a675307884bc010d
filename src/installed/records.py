"""Installed package records and dependency-first ordering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from constants import Constants
from versioning.compare import normalize_operator
from versioning.models import DependencyConstraint


@dataclass
class InstalledRecord:
    """One installed package version.

    ``loaded`` reflects search-path membership and is never persisted.
    """
    name: str
    version: str
    dir: str
    archdir: str = ""
    archprefix: str = ""
    dependencies: List[DependencyConstraint] = field(default_factory=list)
    title: str = ""
    loaded: bool = field(default=False, compare=False)

    @property
    def id(self) -> str:
        return f"{self.name}@{self.version}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "dir": self.dir,
            "archdir": self.archdir,
            "archprefix": self.archprefix,
            "title": self.title,
            "dependencies": [
                {"package": d.package, "operator": d.operator, "version": d.version}
                for d in self.dependencies
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstalledRecord":
        """Build a record from its persisted form; raises KeyError/ValueError when malformed."""
        deps = [
            DependencyConstraint(
                package=str(d["package"]).lower(),
                operator=normalize_operator(str(d.get("operator") or "")),
                version=str(d.get("version") or ""),
            )
            for d in data.get("dependencies", [])
        ]
        return cls(
            name=str(data["name"]).lower(),
            version=str(data["version"]),
            dir=str(data["dir"]),
            archdir=str(data.get("archdir") or ""),
            archprefix=str(data.get("archprefix") or ""),
            title=str(data.get("title") or ""),
            dependencies=deps,
        )


def sort_dependencies_first(records: Sequence[InstalledRecord]) -> List[InstalledRecord]:
    """Order ``records`` so that every dependency precedes its dependents.

    Relative order is otherwise kept, duplicate ``name@version`` pairs are
    dropped (first wins) and dependency cycles are broken at the back-edge.
    """
    by_name: Dict[str, InstalledRecord] = {}
    for rec in records:
        by_name.setdefault(rec.name, rec)

    def deps_of(rec: InstalledRecord) -> Iterator[InstalledRecord]:
        for dep in rec.dependencies:
            if dep.package == Constants.HOST_PACKAGE_NAME:
                continue
            target = by_name.get(dep.package)
            if target is not None:
                yield target

    ordered: List[InstalledRecord] = []
    emitted = set()
    for root in records:
        if root.id in emitted:
            continue
        stack: List[Tuple[InstalledRecord, Iterator[InstalledRecord]]] = [(root, deps_of(root))]
        on_path = {root.id}
        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                on_path.discard(node.id)
                if node.id not in emitted:
                    emitted.add(node.id)
                    ordered.append(node)
                continue
            if child.id in emitted or child.id in on_path:
                continue
            on_path.add(child.id)
            stack.append((child, deps_of(child)))
    return ordered
