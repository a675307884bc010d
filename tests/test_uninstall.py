"""Tests for the uninstall transaction."""

import os
import shutil

import pytest

from conftest import FakeBuilder, FakeHookRunner, make_archive
from constants import Scope
from errors import TransactionStepError, UnsatisfiedDependencyError
from installed.search_path import SearchPath
from options import Options
from transaction.install import Installer
from transaction.uninstall import Uninstaller
from versioning.models import PlanItem


@pytest.fixture
def install(store, pkg_config, archives):
    """Install archives built from (name, version, depends, files) tuples."""
    def _install(*packages, options=None):
        installer = Installer(store, pkg_config, builder=FakeBuilder(), hook_runner=FakeHookRunner())
        plan = []
        for name, version, depends, files in packages:
            path = make_archive(archives, name, version, depends=depends, files=files)
            plan.append(PlanItem(id=f"{name}@{version}", url=path))
        return installer.install(plan, options).installed
    return _install


class TestUninstall:
    """Tests for Uninstaller.uninstall."""

    def test_removes_directory_and_record(self, install, store, pkg_config):
        """Uninstalling deletes the install dir and the registry entry."""
        (record,) = install(("io", "1.0", "", None))
        report = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner()).uninstall(["io"])
        assert [r.id for r in report.removed] == ["io@1.0"]
        assert not os.path.exists(record.dir)
        assert not os.path.exists(record.dir + ".octpkg-old")
        assert store.list(Scope.LOCAL) == []

    def test_select_by_exact_id(self, install, store, pkg_config):
        """name@version selects only that version."""
        install(("io", "1.0", "", None))
        uninstaller = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner())
        report = uninstaller.uninstall(["io@2.0"])
        assert report.not_installed == ["io@2.0"]
        assert "no packages will be uninstalled" in report.warnings
        assert [r.id for r in uninstaller.uninstall(["IO@1.0"]).removed] == ["io@1.0"]

    def test_unknown_names_are_reported(self, install, store, pkg_config):
        """Names that are not installed produce a warning but do not abort."""
        install(("io", "1.0", "", None))
        report = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner()).uninstall(["io", "nosuch"])
        assert report.not_installed == ["nosuch"]
        assert "some of the packages you want to uninstall are not installed" in report.warnings
        assert [r.id for r in report.removed] == ["io@1.0"]

    def test_remaining_dependent_blocks_removal(self, install, store, pkg_config):
        """A package still needed by another one is kept."""
        control, _ = install(("control", "2.1.0", "", None), ("signal", "1.0.0", "control (>= 2.0.0)", None))
        uninstaller = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner())
        with pytest.raises(UnsatisfiedDependencyError) as exc:
            uninstaller.uninstall(["control"])
        assert exc.value.unmet == ["signal@1.0.0 needs control (>= 2.0.0)"]
        assert os.path.isdir(control.dir)
        assert len(store.list(Scope.LOCAL)) == 2

    def test_removing_dependent_together_is_allowed(self, install, store, pkg_config):
        """Removing a package with its dependents succeeds."""
        install(("control", "2.1.0", "", None), ("signal", "1.0.0", "control (>= 2.0.0)", None))
        report = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner()).uninstall(["control", "signal"])
        assert sorted(r.id for r in report.removed) == ["control@2.1.0", "signal@1.0.0"]
        assert store.list(Scope.LOCAL) == []

    def test_nodeps_ignores_dependents(self, install, store, pkg_config):
        """-nodeps removes a package others depend on."""
        install(("control", "2.1.0", "", None), ("signal", "1.0.0", "control (>= 2.0.0)", None))
        report = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner()).uninstall(
            ["control"], Options(nodeps=True)
        )
        assert [r.id for r in report.removed] == ["control@2.1.0"]
        assert [r.id for r in store.list(Scope.LOCAL)] == ["signal@1.0.0"]

    def test_lost_directory(self, install, store, pkg_config):
        """A record whose directory vanished is still unregistered."""
        (record,) = install(("io", "1.0", "", None))
        shutil.rmtree(record.dir)
        report = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner()).uninstall(["io"])
        assert report.lost == ["io@1.0"]
        assert any("previously lost" in w for w in report.warnings)
        assert store.list(Scope.LOCAL) == []

    def test_lost_directory_still_removes_arch_prefix(self, install, store, pkg_config):
        """The arch directory of a lost package is cleaned up too."""
        (record,) = install(("io", "1.0", "", None), options=Options(global_scope=True))
        assert record.archprefix != record.dir
        os.makedirs(record.archdir, exist_ok=True)
        shutil.rmtree(record.dir)
        report = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner()).uninstall(
            ["io"], Options(global_scope=True)
        )
        assert report.lost == ["io@1.0"]
        assert not os.path.exists(record.archprefix)
        assert not os.path.exists(record.archprefix + ".octpkg-old")
        assert store.list(Scope.GLOBAL) == []

    def test_global_records_need_global_scope(self, install, store, pkg_config):
        """Global packages are only candidates when the scope is global."""
        install(("io", "1.0", "", None), options=Options(global_scope=True))
        uninstaller = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner())
        assert uninstaller.uninstall(["io"]).not_installed == ["io"]
        report = uninstaller.uninstall(["io"], Options(global_scope=True))
        assert [r.id for r in report.removed] == ["io@1.0"]
        assert store.list(Scope.GLOBAL) == []

    def test_loaded_package_leaves_search_path(self, install, store, pkg_config):
        """A loaded package is dropped from the search path."""
        (record,) = install(("io", "1.0", "", None))
        path = SearchPath([record.dir, "/other"])
        Uninstaller(store, pkg_config, hook_runner=FakeHookRunner(), search_path=path).uninstall(["io"])
        assert list(path) == ["/other"]

    def test_on_uninstall_hook_runs(self, install, store, pkg_config):
        """packinfo/on_uninstall.m is called with the record's fields."""
        install(("io", "1.0", "", {"on_uninstall.m": "function on_uninstall (desc)\nend\n"}))
        hooks = FakeHookRunner()
        Uninstaller(store, pkg_config, hook_runner=hooks).uninstall(["io"])
        assert hooks.calls[0][0] == "on_uninstall.m"
        assert hooks.calls[0][1]["name"] == "io"
        assert hooks.calls[0][1]["version"] == "1.0"

    def test_failing_hook_restores_everything(self, install, store, pkg_config):
        """A failure during removal puts earlier packages back."""
        first, second = install(
            ("alpha", "1.0", "", None),
            ("beta", "1.0", "", {"on_uninstall.m": "function on_uninstall (desc)\nend\n"}),
        )
        uninstaller = Uninstaller(store, pkg_config, hook_runner=FakeHookRunner(fail_on="on_uninstall.m"))
        with pytest.raises(TransactionStepError) as exc:
            uninstaller.uninstall(["alpha", "beta"])
        assert exc.value.step == "on_uninstall"
        assert os.path.isdir(first.dir)
        assert os.path.isdir(second.dir)
        assert len(store.list(Scope.LOCAL)) == 2
