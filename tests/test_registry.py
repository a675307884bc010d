"""Tests for installed records, the registry store and the search path."""

import json
import os
from unittest.mock import patch

import pytest

from constants import Scope
from errors import PersistenceError
from installed.records import InstalledRecord, sort_dependencies_first
from installed.search_path import SearchPath
from installed.store import RegistryStore, is_loaded, merge
from versioning.models import DependencyConstraint


def rec(name, version="1.0", deps=(), dir_=None):
    return InstalledRecord(
        name=name,
        version=version,
        dir=dir_ or f"/pkgs/{name}-{version}",
        dependencies=[DependencyConstraint(d) for d in deps],
    )


class TestMerge:
    """Tests for merge()."""

    def test_local_shadows_global(self):
        """A name present in both scopes resolves to the local record."""
        merged = merge([rec("io", "2.6.3")], [rec("io", "2.6.0"), rec("control")])
        assert [r.id for r in merged] == ["io@2.6.3", "control@1.0"]

    def test_no_duplicate_names(self):
        """Duplicates inside one scope collapse to the first record."""
        merged = merge([rec("io", "1"), rec("io", "2")], [])
        assert [r.id for r in merged] == ["io@1"]


class TestSortDependenciesFirst:
    """Tests for sort_dependencies_first()."""

    def test_dependencies_precede_dependents(self):
        """Every dependency comes before the record needing it."""
        records = [rec("signal", deps=["control"]), rec("control", deps=["octave"]), rec("io")]
        ordered = [r.name for r in sort_dependencies_first(records)]
        assert ordered.index("control") < ordered.index("signal")
        assert ordered == ["control", "signal", "io"]

    def test_cycle_terminates(self):
        """Cycles are broken instead of looping."""
        ordered = sort_dependencies_first([rec("a", deps=["b"]), rec("b", deps=["a"])])
        assert sorted(r.name for r in ordered) == ["a", "b"]

    def test_duplicate_ids_dropped(self):
        """Identical ids appear once."""
        assert len(sort_dependencies_first([rec("io"), rec("io")])) == 1


class TestRecordSerialization:
    """Tests for InstalledRecord persistence form."""

    def test_loaded_flag_is_not_persisted(self):
        """to_dict omits the derived loaded flag."""
        record = rec("io", deps=["control"])
        record.loaded = True
        data = record.to_dict()
        assert "loaded" not in data
        restored = InstalledRecord.from_dict(data)
        assert restored == record
        assert restored.loaded is False


class TestRegistryStore:
    """Tests for RegistryStore."""

    def test_missing_files_mean_empty(self, store):
        """Absent registry files load as empty lists."""
        assert store.list(Scope.LOCAL) == []
        assert store.merged() == []

    def test_add_persists_dependency_first(self, store, pkg_config):
        """Records are written in dependency-first order and reload identically."""
        store.add(rec("signal", deps=["control"]), Scope.LOCAL)
        store.add(rec("control"), Scope.LOCAL)
        with open(pkg_config.local.list, encoding="utf-8") as fh:
            data = json.load(fh)
        assert data["schema"] == 1
        assert [p["name"] for p in data["packages"]] == ["control", "signal"]
        fresh = RegistryStore(pkg_config.local.list, pkg_config.global_.list)
        assert [r.id for r in fresh.list(Scope.LOCAL)] == ["control@1.0", "signal@1.0"]

    def test_add_replaces_same_name_in_scope_only(self, store):
        """Adding a new version replaces the old one in the same scope."""
        store.add(rec("io", "2.6.0"), Scope.GLOBAL)
        store.add(rec("io", "2.6.0"), Scope.LOCAL)
        store.add(rec("io", "2.6.3"), Scope.LOCAL)
        assert [r.id for r in store.list(Scope.LOCAL)] == ["io@2.6.3"]
        assert [r.id for r in store.list(Scope.GLOBAL)] == ["io@2.6.0"]
        assert store.find("io").version == "2.6.3"
        assert store.find("io", Scope.GLOBAL).version == "2.6.0"

    def test_remove_last_record_deletes_file(self, store, pkg_config):
        """An empty scope has no registry file."""
        store.add(rec("io"), Scope.LOCAL)
        removed = store.remove(lambda r: r.name == "io", Scope.LOCAL)
        assert [r.id for r in removed] == ["io@1.0"]
        assert not os.path.exists(pkg_config.local.list)

    def test_failed_write_keeps_memory_and_file(self, store, pkg_config):
        """A failing swap raises PersistenceError and changes nothing."""
        store.add(rec("io"), Scope.LOCAL)
        with open(pkg_config.local.list, encoding="utf-8") as fh:
            before = fh.read()
        with patch("common.fs_utils.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError):
                store.add(rec("control"), Scope.LOCAL)
        assert [r.id for r in store.list(Scope.LOCAL)] == ["io@1.0"]
        with open(pkg_config.local.list, encoding="utf-8") as fh:
            assert fh.read() == before
        leftovers = [n for n in os.listdir(os.path.dirname(pkg_config.local.list)) if n.endswith(".tmp")]
        assert leftovers == []

    def test_corrupt_file_raises(self, pkg_config):
        """Unparseable registry files raise PersistenceError."""
        os.makedirs(os.path.dirname(pkg_config.local.list), exist_ok=True)
        with open(pkg_config.local.list, "w", encoding="utf-8") as fh:
            fh.write("{broken")
        store = RegistryStore(pkg_config.local.list, pkg_config.global_.list)
        with pytest.raises(PersistenceError):
            store.list(Scope.LOCAL)


class TestSearchPath:
    """Tests for SearchPath and is_loaded()."""

    def test_from_env_and_membership(self):
        """OCTAVE_PATH entries populate the path; membership ignores trailing slashes."""
        path = SearchPath.from_env({"OCTAVE_PATH": os.pathsep.join(["/a", "/b/"])})
        assert "/b" in path
        assert is_loaded(rec("x", dir_="/a"), path)
        assert not is_loaded(rec("x", dir_="/c"), path)

    def test_prepend_moves_existing_entries(self):
        """prepend puts directories in front without duplicates."""
        path = SearchPath(["/a", "/b"])
        path.prepend("/b", "/c")
        assert list(path) == ["/b", "/c", "/a"]
        path.remove("/c")
        assert path.to_env_value() == os.pathsep.join(["/b", "/a"])

    def test_snapshot_restore(self):
        """restore returns to a snapshot."""
        path = SearchPath(["/a"])
        saved = path.snapshot()
        path.prepend("/x")
        path.restore(saved)
        assert list(path) == ["/a"]
