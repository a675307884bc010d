"""Install transaction: turn a resolved plan into registered, on-disk packages.

Each plan item is processed inside its own ``RollbackStack``; a failure
removes everything created for that item and propagates, while items
installed earlier in the same plan stay installed.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tarfile
import tempfile
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Sequence

from common.fs_utils import sha256_file
from common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from config import PkgConfig, ScopeConfig
from constants import Constants, Scope
from errors import (
    DescriptionError,
    OctpkgError,
    TransactionStepError,
    UnsatisfiedDependencyError,
)
from installed.records import InstalledRecord
from installed.store import RegistryStore
from options import Options
from versioning.compare import compare_versions
from versioning.models import DependencyConstraint, PlanItem

from .collaborators import ArchiveExtractor, Downloader, HookRunner, NativeBuilder
from .description import PackageDescription, parse_description
from .hooks import HOOK_NAMES, create_pkgadddel
from .layout import copy_built_files, copy_files, is_empty_install, remove_installation
from .rollback import RollbackStack

logger = logging.getLogger(__name__)

STEP_ERRORS = (
    OSError,
    ValueError,
    subprocess.SubprocessError,
    tarfile.TarError,
    zipfile.BadZipFile,
)


@contextmanager
def step(name: str, package: str) -> Iterator[None]:
    """Wrap collaborator failures of one transaction step in TransactionStepError.

    Domain errors (``OctpkgError``) pass through unchanged.
    """
    try:
        yield
    except OctpkgError:
        raise
    except STEP_ERRORS as exc:
        raise TransactionStepError(name, package, exc) from exc


def unmet_dependencies(
    owner: str,
    dependencies: Iterable[DependencyConstraint],
    pool: Sequence[InstalledRecord],
    host_version: str,
) -> List[str]:
    """Return ``"<owner> needs <dep>"`` lines for every constraint ``pool`` cannot meet."""
    lines = []
    for dep in dependencies:
        if dep.package == Constants.HOST_PACKAGE_NAME:
            ok = compare_versions(host_version, dep.version, dep.operator)
        else:
            ok = any(
                r.name == dep.package and compare_versions(r.version, dep.version, dep.operator)
                for r in pool
            )
        if not ok:
            lines.append(f"{owner} needs {dep}")
    return lines


@dataclass
class InstallReport:
    """Outcome of an install call."""
    scope: Scope
    installed: List[InstalledRecord] = field(default_factory=list)
    skipped_empty: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class Installer:
    """Sequence the install steps of a plan against one registry scope."""

    def __init__(
        self,
        store: RegistryStore,
        config: PkgConfig,
        downloader: Optional[Downloader] = None,
        extractor: Optional[ArchiveExtractor] = None,
        builder: Optional[NativeBuilder] = None,
        hook_runner: Optional[HookRunner] = None,
    ):
        self.store = store
        self.config = config
        self.downloader = downloader or Downloader()
        self.extractor = extractor or ArchiveExtractor()
        self.builder = builder or NativeBuilder(
            octave=config.octave_executable, jobs=config.make_jobs
        )
        self.hook_runner = hook_runner or HookRunner(config.octave_executable)

    def install(self, plan: Sequence[PlanItem], options: Optional[Options] = None) -> InstallReport:
        """Install every plan item in order.

        Raises:
            UnsatisfiedDependencyError: a package's DESCRIPTION needs something not installed.
            DescriptionError: missing package files or a malformed DESCRIPTION.
            PersistenceError: the registry could not be written.
            TransactionStepError: any other step failure (download, extract, build, copy, hook).
        """
        options = options or Options()
        scope = options.scope(self.config.has_elevated_rights)
        scope_cfg = self.config.scope(scope)
        report = InstallReport(scope=scope)

        if not os.path.isdir(scope_cfg.prefix):
            self._warn(report, f"creating installation directory {scope_cfg.prefix}")
            with step("prepare", scope_cfg.prefix):
                os.makedirs(scope_cfg.prefix, exist_ok=True)

        for item in plan:
            record = self._install_one(item, scope, scope_cfg, options, report)
            if record is not None:
                report.installed.append(record)
        return report

    def _warn(self, report: InstallReport, message: str) -> None:
        logger.warning(message)
        report.warnings.append(message)

    def _install_one(  # pylint: disable=too-many-locals
        self,
        item: PlanItem,
        scope: Scope,
        scope_cfg: ScopeConfig,
        options: Options,
        report: InstallReport,
    ) -> Optional[InstalledRecord]:
        label = item.id or item.url
        logger.info("Installing %s", label)
        with Timer() as timer, tempfile.TemporaryDirectory(prefix="octpkg-") as scratch, RollbackStack() as rb:
            with step("download", label):
                archive = self.downloader.fetch(item.url, scratch)
            self._verify_checksum(item, archive, report)

            with step("extract", label):
                packdir = self.extractor.extract(archive, os.path.join(scratch, "extract"))
            self._verify_files(packdir, label)
            desc = parse_description(os.path.join(packdir, Constants.DESCRIPTION_FILE))
            if item.package_id() is not None and desc.id != item.id:
                self._warn(report, f"{label}: archive contains {desc.id}")

            if not options.nodeps:
                self._check_dependencies(desc, scope)

            self._run_hook(packdir, "pre_install.m", desc)
            with step("build", desc.id):
                self.builder.build(packdir)
                copy_built_files(packdir, self.config.arch)

            dirname = f"{desc.name}-{desc.version}"
            install_dir = os.path.join(scope_cfg.prefix, dirname)
            arch_base = os.path.join(scope_cfg.archprefix, dirname)
            archdir = os.path.join(arch_base, self.config.arch)
            with step("copy", desc.id):
                for path in self._distinct(install_dir, arch_base):
                    if os.path.lexists(path):
                        rb.move_aside(path)
                    rb.track_dir(path)
                copy_files(desc, packdir, install_dir, archdir, self.config.arch)
                for hook in HOOK_NAMES:
                    create_pkgadddel(packdir, install_dir, archdir, hook)
            self._run_hook(packdir, "post_install.m", desc)

            if is_empty_install(install_dir, archdir):
                self._warn(report, f"package {desc.name} is empty")
                report.skipped_empty.append(desc.id)
                rb.rollback()
                return None

            record = InstalledRecord(
                name=desc.name,
                version=desc.version,
                dir=install_dir,
                archdir=archdir,
                archprefix=arch_base,
                dependencies=list(desc.depends),
                title=desc.title,
            )
            previous = self.store.find(desc.name, scope)
            self.store.add(record, scope)
            rb.commit()

        if previous is not None and os.path.normpath(previous.dir) != os.path.normpath(install_dir):
            try:
                remove_installation(previous.dir, previous.archdir, previous.archprefix)
            except OSError as exc:
                self._warn(report, f"could not remove replaced {previous.id}: {exc}")
        if is_debug_enabled(logger):
            logger.debug(
                "Package installed",
                extra=extra_context(
                    event="install",
                    component="transaction",
                    action="install",
                    outcome="success",
                    target=record.id,
                    scope=scope.value,
                    duration_ms=timer.duration_ms()
                )
            )
        logger.info("Installed %s in %s", record.id, install_dir)
        return record

    @staticmethod
    def _distinct(install_dir: str, arch_base: str) -> List[str]:
        if os.path.normpath(arch_base) == os.path.normpath(install_dir):
            return [install_dir]
        return [install_dir, arch_base]

    def _verify_checksum(self, item: PlanItem, archive: str, report: InstallReport) -> None:
        if not item.checksum or not os.path.isfile(archive):
            return
        with step("checksum", item.id or item.url):
            actual = sha256_file(archive)
        if actual.lower() != item.checksum.lower():
            self._warn(
                report,
                f"checksum mismatch for {item.id or safe_url(item.url)}: "
                f"expected {item.checksum}, got {actual}",
            )

    @staticmethod
    def _verify_files(packdir: str, label: str) -> None:
        missing = [
            name for name in Constants.MANDATORY_PACKAGE_FILES
            if not os.path.isfile(os.path.join(packdir, name))
        ]
        if missing:
            raise DescriptionError(f"{label}: package is missing file(s): {', '.join(missing)}")

    def _check_dependencies(self, desc: PackageDescription, scope: Scope) -> None:
        pool = [r for r in self.store.list(scope) if r.name != desc.name]
        if scope is Scope.LOCAL:
            pool.extend(self.store.list(Scope.GLOBAL))
        lines = unmet_dependencies(desc.id, desc.depends, pool, self.config.host_version)
        if lines:
            raise UnsatisfiedDependencyError("the following dependencies were unsatisfied:", lines)

    def _run_hook(self, packdir: str, script_name: str, desc: PackageDescription) -> None:
        script = os.path.join(packdir, script_name)
        if not os.path.isfile(script):
            return
        with step(os.path.splitext(script_name)[0], desc.id):
            self.hook_runner.run(script, desc.fields)
