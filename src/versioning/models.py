"""Data models for package ids, dependency constraints and resolution items."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class PackageID:
    """A package name paired with one exact version; textual form ``name@version``."""
    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"

    @classmethod
    def parse(cls, text: str) -> "PackageID":
        """Parse ``name@version``; raises ValueError when either part is missing."""
        name, sep, ver = text.strip().partition("@")
        if not sep or not name or not ver:
            raise ValueError(f"invalid package id '{text}', expected name@version")
        return cls(name=name.lower(), version=ver)


@dataclass(frozen=True)
class DependencyConstraint:
    """Single comparator/version pair on a package; empty operator means any version."""
    package: str
    operator: str = ""
    version: str = ""

    def is_any(self) -> bool:
        """True when every version of ``package`` is acceptable."""
        return not self.operator

    def __str__(self) -> str:
        if self.is_any():
            return self.package
        return f"{self.package} ({self.operator} {self.version})"


@dataclass
class IndexEntry:
    """One published version of a package as described by an index."""
    id: str
    url: str
    checksum: str = ""
    dependencies: List[DependencyConstraint] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.id.partition("@")[0]

    @property
    def version(self) -> str:
        return self.id.partition("@")[2]


@dataclass
class ResolutionItem:
    """Mutable working state for one request during a resolve call."""
    url: str = ""
    id: str = ""
    checksum: str = ""
    needed_by: List[str] = field(default_factory=list)
    deps: List[DependencyConstraint] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.id.partition("@")[0]

    def describe(self) -> str:
        """Most specific user-facing label for log and error messages."""
        return self.id or self.url or self.checksum


@dataclass(frozen=True)
class PlanItem:
    """A finished, dependency-ordered entry of an installation plan."""
    id: str
    url: str
    checksum: str = ""

    @property
    def name(self) -> str:
        return self.id.partition("@")[0]

    @property
    def version(self) -> str:
        return self.id.partition("@")[2]

    def package_id(self) -> Optional[PackageID]:
        """Return the parsed id, or None for ids without a version."""
        try:
            return PackageID.parse(self.id)
        except ValueError:
            return None
