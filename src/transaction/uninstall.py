"""Uninstall transaction."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from config import PkgConfig
from constants import Scope
from errors import UnsatisfiedDependencyError
from installed.records import InstalledRecord
from installed.search_path import SearchPath
from installed.store import RegistryStore, is_loaded
from options import Options

from .collaborators import HookRunner
from .install import step, unmet_dependencies
from .layout import PACKINFO
from .rollback import RollbackStack

logger = logging.getLogger(__name__)

Target = Tuple[Scope, InstalledRecord]


@dataclass
class UninstallReport:
    """Outcome of an uninstall call."""
    removed: List[InstalledRecord] = field(default_factory=list)
    not_installed: List[str] = field(default_factory=list)
    lost: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class Uninstaller:
    """Remove installed packages and their registry records."""

    def __init__(
        self,
        store: RegistryStore,
        config: PkgConfig,
        hook_runner: Optional[HookRunner] = None,
        search_path: Optional[SearchPath] = None,
    ):
        self.store = store
        self.config = config
        self.hook_runner = hook_runner or HookRunner(config.octave_executable)
        self.search_path = search_path

    def _warn(self, report: UninstallReport, message: str) -> None:
        logger.warning(message)
        report.warnings.append(message)

    def _candidates(self, options: Options) -> List[Target]:
        scopes = [Scope.LOCAL]
        if options.scope(self.config.has_elevated_rights) is Scope.GLOBAL:
            scopes.append(Scope.GLOBAL)
        return [(scope, rec) for scope in scopes for rec in self.store.list(scope)]

    def select(self, names: Sequence[str], options: Options, report: UninstallReport) -> List[Target]:
        """Map each requested name or ``name@version`` to the first matching record."""
        candidates = self._candidates(options)
        targets: List[Target] = []
        for token in names:
            token = token.strip().lower()
            match = next(
                (c for c in candidates if token in (c[1].id, c[1].name)),
                None,
            )
            if match is None:
                report.not_installed.append(token)
            elif match not in targets:
                targets.append(match)
        return targets

    def uninstall(self, names: Sequence[str], options: Optional[Options] = None) -> UninstallReport:
        """Uninstall ``names``.

        Raises:
            UnsatisfiedDependencyError: a remaining package depends on a removed one.
            PersistenceError: the registry could not be written.
            TransactionStepError: a hook or filesystem step failed.
        """
        options = options or Options()
        report = UninstallReport()
        targets = self.select(names, options, report)
        if report.not_installed:
            self._warn(report, "some of the packages you want to uninstall are not installed")
        if not targets:
            self._warn(report, "no packages will be uninstalled")
            return report

        if not options.nodeps:
            self._check_remaining(targets)

        with RollbackStack() as rb:
            for _, rec in targets:
                self._run_hook(rec)
                lost = not os.path.isdir(rec.dir)
                if lost:
                    self._warn(report, f"directory {rec.dir} previously lost")
                    report.lost.append(rec.id)
                with step("remove", rec.id):
                    if not lost:
                        rb.move_aside(rec.dir)
                    if rec.archprefix and os.path.isdir(rec.archprefix):
                        rb.move_aside(rec.archprefix)
            for scope in (Scope.LOCAL, Scope.GLOBAL):
                ids = {rec.id for s, rec in targets if s is scope}
                if ids:
                    self.store.remove(lambda r, ids=ids: r.id in ids, scope)
            rb.commit()

        for _, rec in targets:
            if self.search_path is not None and is_loaded(rec, self.search_path):
                self.search_path.remove(rec.dir, rec.archdir)
            report.removed.append(rec)
            logger.info("Uninstalled %s", rec.id)
            if is_debug_enabled(logger):
                logger.debug(
                    "Package uninstalled",
                    extra=extra_context(
                        event="uninstall",
                        component="transaction",
                        action="uninstall",
                        outcome="success",
                        target=rec.id
                    )
                )
        return report

    def _check_remaining(self, targets: Sequence[Target]) -> None:
        removed = {(s, rec.id) for s, rec in targets}
        removed_names = {rec.name for _, rec in targets}
        remaining = [
            rec
            for scope in (Scope.LOCAL, Scope.GLOBAL)
            for rec in self.store.list(scope)
            if (scope, rec.id) not in removed
        ]
        lines: List[str] = []
        for rec in remaining:
            affected = [d for d in rec.dependencies if d.package in removed_names]
            lines.extend(unmet_dependencies(rec.id, affected, remaining, self.config.host_version))
        if lines:
            raise UnsatisfiedDependencyError("the following dependencies were unsatisfied:", lines)

    def _run_hook(self, rec: InstalledRecord) -> None:
        script = os.path.join(rec.dir, PACKINFO, "on_uninstall.m")
        if not os.path.isfile(script):
            return
        desc = {"name": rec.name, "version": rec.version, "title": rec.title, "dir": rec.dir}
        with step("on_uninstall", rec.id):
            self.hook_runner.run(script, desc)
