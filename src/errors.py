"""Exception hierarchy for octpkg.

Library code raises these; only the command line entrypoint turns them into
exit codes.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class OctpkgError(Exception):
    """Base class for all octpkg failures."""


class ConfigError(OctpkgError):
    """Invalid configuration file, environment override or option."""


class UsageError(OctpkgError):
    """Invalid combination of command line flags or arguments."""


class ResolutionError(OctpkgError):
    """A request could not be turned into an installation plan."""


class AmbiguousInputError(ResolutionError):
    """A single request item matched more than one index entry."""

    def __init__(self, item: str, matches: Sequence[str]):
        self.item = item
        self.matches = list(matches)
        super().__init__(
            f"ambiguous package input '{item}', matches: {', '.join(self.matches)}"
        )


class CircularDependencyError(ResolutionError):
    """The needed_by graph of a resolution set contains a cycle."""

    def __init__(self, package_id: str):
        self.package_id = package_id
        super().__init__(f"circular dependency detected for package '{package_id}'")


class UnsatisfiedDependencyError(OctpkgError):
    """One or more dependency constraints cannot be met.

    Attributes:
        unmet: Human readable lines, one per unmet constraint.
    """

    def __init__(self, message: str, unmet: Optional[List[str]] = None):
        self.unmet = list(unmet or [])
        if self.unmet:
            message = message + "\n" + "\n".join(f"  {line}" for line in self.unmet)
        super().__init__(message)


class IndexLookupError(OctpkgError, LookupError):
    """The package index is corrupt (e.g. colliding checksums)."""


class IndexUnavailableError(OctpkgError):
    """The package index could neither be fetched nor read from cache."""


class DownloadError(OctpkgError):
    """A package archive could not be downloaded."""


class PackageNotInstalledError(OctpkgError):
    """The named package is not present in any registry scope."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"package {name} is not installed")


class PersistenceError(OctpkgError):
    """A registry file could not be read or written."""


class TransactionStepError(OctpkgError):
    """A step of an install or uninstall transaction failed.

    Attributes:
        step: Name of the failing step (e.g. "extract", "build").
        package: Package id or archive being processed.
        cause: Original exception.
    """

    def __init__(self, step: str, package: str, cause: BaseException):
        self.step = step
        self.package = package
        self.cause = cause
        super().__init__(f"{package}: step '{step}' failed: {cause}")


class InconsistentInputWarning(UserWarning):
    """User input disagrees with the authoritative index entry."""


class DescriptionError(OctpkgError):
    """A package DESCRIPTION file is missing fields or malformed."""
