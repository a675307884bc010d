"""Tests for version comparison, dependency parsing and request item parsing."""

import hashlib

import pytest

from versioning.compare import compare_versions, normalize_operator, version_key
from versioning.models import DependencyConstraint, PackageID, PlanItem
from versioning.parser import (
    id_from_archive_name,
    item_from_input,
    parse_dependency,
    parse_dependency_entry,
    parse_depends_field,
    split_id,
)


class TestCompareVersions:
    """Tests for compare_versions."""

    @pytest.mark.parametrize("left,op,right,expected", [
        ("2.6.3", ">=", "2.6.0", True),
        ("2.6.3", "<", "2.6.0", False),
        ("1.0", "==", "1.0.0", True),
        ("1.0", "=", "1.0.0", True),
        ("1.10.0", ">", "1.9.9", True),
        ("3.0.0", "!=", "3.0.0", False),
    ])
    def test_operators(self, left, op, right, expected):
        """Each supported operator compares numerically."""
        assert compare_versions(left, right, op) is expected

    def test_empty_operator_accepts_anything(self):
        """An empty operator means any version."""
        assert compare_versions("0.1", "", "")

    def test_non_pep440_versions_fall_back_to_dotted(self):
        """Versions packaging cannot parse still compare component-wise."""
        assert compare_versions("1.2.3-octave", "1.2.2", ">")

    def test_unknown_operator_raises(self):
        """Unsupported operators are rejected."""
        with pytest.raises(ValueError):
            compare_versions("1.0", "1.0", "~=")

    def test_normalize_operator(self):
        """'=' is an alias of '=='."""
        assert normalize_operator("=") == "=="
        assert normalize_operator(" >= ") == ">="
        assert normalize_operator("") == ""

    def test_version_key_orders_numerically(self):
        """version_key sorts 1.10 after 1.9."""
        assert sorted(["1.10", "1.9", "1.2"], key=version_key) == ["1.2", "1.9", "1.10"]

    def test_version_key_ranks_prerelease_below_release(self):
        """version_key agrees with compare_versions on pre-releases."""
        assert version_key("1.0.0rc1") < version_key("1.0.0")
        assert compare_versions("1.0.0", "1.0.0rc1", ">")
        assert max(["1.0.0rc1", "1.0.0", "0.9"], key=version_key) == "1.0.0"


class TestDependencyParsing:
    """Tests for the dependency grammar."""

    def test_bare_name(self):
        """A bare name accepts any version."""
        dep = parse_dependency("Control")
        assert dep == DependencyConstraint(package="control")
        assert dep.is_any()

    def test_name_with_constraint(self):
        """'name (op version)' yields a constraint."""
        dep = parse_dependency("octave (>= 4.2.0)")
        assert dep == DependencyConstraint("octave", ">=", "4.2.0")
        assert str(dep) == "octave (>= 4.2.0)"

    def test_version_without_operator_means_exact(self):
        """'name (1.0)' pins the version."""
        assert parse_dependency("io (1.0)").operator == "=="

    def test_invalid_dependency(self):
        """Malformed strings raise ValueError."""
        with pytest.raises(ValueError):
            parse_dependency("io (>= )")

    def test_structured_entry(self):
        """Mappings with explicit operator and version are accepted."""
        dep = parse_dependency_entry({"name": "signal", "operator": "=", "version": "1.4.0"})
        assert dep == DependencyConstraint("signal", "==", "1.4.0")

    def test_structured_entry_with_inline_constraint(self):
        """A mapping whose name holds the constraint is parsed like a string."""
        dep = parse_dependency_entry({"name": "control (>= 3.1.0)"})
        assert dep == DependencyConstraint("control", ">=", "3.1.0")

    def test_bootstrap_pkg_dependency_is_dropped(self):
        """The 'pkg' pseudo dependency disappears."""
        assert parse_dependency_entry("pkg") is None
        assert parse_depends_field("octave (>= 6.1.0), pkg, control") == [
            DependencyConstraint("octave", ">=", "6.1.0"),
            DependencyConstraint("control"),
        ]


class TestIds:
    """Tests for id helpers and raw input parsing."""

    def test_split_id(self):
        """split_id lowercases the name and keeps the version."""
        assert split_id("IO@2.6.3") == ("io", "2.6.3")
        assert split_id("io") == ("io", "")

    def test_package_id_parse(self):
        """PackageID round trips its textual form."""
        pid = PackageID.parse("Signal@1.4.5")
        assert pid == PackageID("signal", "1.4.5")
        assert str(pid) == "signal@1.4.5"
        with pytest.raises(ValueError):
            PackageID.parse("signal")

    def test_plan_item_accessors(self):
        """PlanItem exposes name and version of its id."""
        item = PlanItem(id="io@2.6.3", url="https://example.org/io-2.6.3.tar.gz")
        assert (item.name, item.version) == ("io", "2.6.3")
        assert PlanItem(id="io", url="x").package_id() is None

    @pytest.mark.parametrize("url,expected", [
        ("https://example.org/dl/io-2.6.3.tar.gz", "io@2.6.3"),
        ("/tmp/control-3.4.0.tgz", "control@3.4.0"),
        ("https://example.org/image-acquisition-0.2.2.zip?x=1", "image-acquisition@0.2.2"),
        ("https://example.org/archive.tar.gz", ""),
    ])
    def test_id_from_archive_name(self, url, expected):
        """Archive names map to name@version."""
        assert id_from_archive_name(url) == expected

    def test_item_from_local_file(self, tmp_path):
        """Existing files become url plus checksum."""
        archive = tmp_path / "io-2.6.3.tar.gz"
        archive.write_bytes(b"payload")
        item = item_from_input(str(archive))
        assert item.url == str(archive)
        assert item.checksum == hashlib.sha256(b"payload").hexdigest()
        assert item.id == ""

    def test_item_from_url_and_name(self):
        """URLs keep only the url, everything else is a lowercased id."""
        assert item_from_input("https://example.org/io-2.6.3.tar.gz").url.startswith("https://")
        assert item_from_input("Statistics").id == "statistics"
