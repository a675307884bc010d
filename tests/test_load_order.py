"""Tests for load and unload ordering."""

import pytest

from errors import UnsatisfiedDependencyError
from installed.load_order import compute_load_order, compute_unload_safety
from installed.records import InstalledRecord
from versioning.models import DependencyConstraint


def rec(name, deps=(), loaded=False):
    record = InstalledRecord(
        name=name,
        version="1.0",
        dir=f"/pkgs/{name}",
        dependencies=[DependencyConstraint(d) for d in deps],
    )
    record.loaded = loaded
    return record


def names(records, indices):
    return [records[i].name for i in indices]


class TestLoadOrder:
    """Tests for compute_load_order()."""

    def test_transitive_dependencies_first(self):
        """Dependencies are loaded before every dependent."""
        records = [rec("signal", ["control", "octave"]), rec("control", ["linalg"]), rec("linalg")]
        order = compute_load_order(records, [0])
        assert names(records, order) == ["linalg", "control", "signal"]

    def test_shared_dependency_loaded_once(self):
        """A dependency shared by two requests appears once."""
        records = [rec("a", ["c"]), rec("b", ["c"]), rec("c")]
        assert names(records, compute_load_order(records, [0, 1])) == ["c", "a", "b"]

    def test_already_loaded_are_skipped(self):
        """Loaded records are not loaded again."""
        records = [rec("signal", ["control"]), rec("control", loaded=True)]
        assert names(records, compute_load_order(records, [0])) == ["signal"]

    def test_without_dependency_handling(self):
        """handle_deps=False loads only the requested records."""
        records = [rec("signal", ["control"]), rec("control")]
        assert names(records, compute_load_order(records, [0], handle_deps=False)) == ["signal"]

    def test_cycle_terminates(self):
        """A dependency cycle still yields each record once."""
        records = [rec("a", ["b"]), rec("b", ["a"])]
        assert sorted(names(records, compute_load_order(records, [0]))) == ["a", "b"]

    def test_missing_dependency_is_ignored(self):
        """Dependencies that are not installed do not block loading."""
        records = [rec("signal", ["control"])]
        assert names(records, compute_load_order(records, [0])) == ["signal"]


class TestUnloadSafety:
    """Tests for compute_unload_safety()."""

    def test_loaded_dependent_blocks_unload(self):
        """Unloading a dependency of a loaded package fails naming the blocker."""
        records = [rec("control", loaded=True), rec("signal", ["control"], loaded=True)]
        with pytest.raises(UnsatisfiedDependencyError) as exc:
            compute_unload_safety(records, [0])
        assert exc.value.unmet == ["signal@1.0"]

    def test_nodeps_returns_blockers(self):
        """With nodeps the blockers are returned instead of raised."""
        records = [
            rec("control", loaded=True),
            rec("signal", ["control"], loaded=True),
            rec("comm", ["signal"], loaded=True),
        ]
        blockers = compute_unload_safety(records, [0], nodeps=True)
        assert sorted(names(records, blockers)) == ["comm", "signal"]

    def test_unloaded_dependents_do_not_block(self):
        """Dependents that are not loaded are irrelevant."""
        records = [rec("control", loaded=True), rec("signal", ["control"])]
        assert compute_unload_safety(records, [0]) == []

    def test_unloading_dependent_together_is_fine(self):
        """Targets never block each other."""
        records = [rec("control", loaded=True), rec("signal", ["control"], loaded=True)]
        assert compute_unload_safety(records, [0, 1]) == []
