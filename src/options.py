"""Typed command options shared by the resolver, transactions and the CLI."""

from __future__ import annotations

from dataclasses import dataclass

from constants import Scope
from errors import UsageError


@dataclass(frozen=True)
class Options:
    """Flags recognized by every action; unused flags are simply ignored."""

    nodeps: bool = False
    force: bool = False
    global_scope: bool = False
    local_scope: bool = False
    verbose: bool = False
    nocache: bool = False
    resolve_only: bool = False
    forge: bool = False

    def __post_init__(self) -> None:
        if self.global_scope and self.local_scope:
            raise UsageError("contradicting flags -local and -global")

    def scope(self, elevated: bool) -> Scope:
        """Return the target scope; without an explicit flag, elevated users install globally."""
        if self.global_scope:
            return Scope.GLOBAL
        if self.local_scope:
            return Scope.LOCAL
        return Scope.GLOBAL if elevated else Scope.LOCAL

