"""Tests for configuration loading and precedence."""

import subprocess
from unittest.mock import patch

import pytest

from config import detect_host_version, load_config
from constants import Scope
from errors import ConfigError


def write_yaml(tmp_path, text):
    path = tmp_path / "octpkg.yml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestLoadConfig:
    """Tests for load_config()."""

    def test_file_values(self, tmp_path):
        """Nested YAML sections map to dotted keys."""
        path = write_yaml(tmp_path, (
            "octave:\n"
            "  version: 8.4.0\n"
            "  arch: x86_64-linux-api-v58\n"
            "  make_jobs: 4\n"
            "local:\n"
            f"  prefix: {tmp_path}/pkgs\n"
            "index:\n"
            "  url: https://mirror.example.org/packages/\n"
        ))
        cfg = load_config(path, env={})
        assert cfg.host_version == "8.4.0"
        assert cfg.arch == "x86_64-linux-api-v58"
        assert cfg.make_jobs == 4
        assert cfg.local.prefix == f"{tmp_path}/pkgs"
        assert cfg.local.archprefix == cfg.local.prefix
        assert cfg.index_url == "https://mirror.example.org/packages/"
        assert cfg.scope(Scope.LOCAL) is cfg.local

    def test_precedence(self, tmp_path):
        """Environment beats the file and command line beats the environment."""
        path = write_yaml(tmp_path, "octave:\n  version: 7.0.0\n  make_jobs: 2\nindex:\n  url: https://file/\n")
        env = {"OCTPKG_INDEX_URL": "https://env/", "OCTPKG_OCTAVE_MAKE_JOBS": "3"}
        cfg = load_config(path, env=env, overrides={"octave.make_jobs": "8"})
        assert cfg.index_url == "https://env/"
        assert cfg.make_jobs == 8
        assert cfg.host_version == "7.0.0"

    def test_global_paths_follow_octave_home(self, tmp_path):
        """Global defaults are derived from octave.home."""
        cfg = load_config(
            write_yaml(tmp_path, "octave:\n  version: 9.2.0\n  home: /opt/octave\n"), env={}
        )
        assert cfg.global_.list == "/opt/octave/share/octave/octave_packages"
        assert cfg.global_.prefix == "/opt/octave/share/octave/packages"
        assert cfg.global_.archprefix == "/opt/octave/lib/octave/packages"

    def test_unknown_key(self, tmp_path):
        """Keys outside the known set are rejected."""
        with pytest.raises(ConfigError, match="unknown configuration key 'octave.colour'"):
            load_config(write_yaml(tmp_path, "octave:\n  colour: blue\n"), env={})

    def test_integer_keys_are_validated(self, tmp_path):
        """Integer keys reject non-numeric values."""
        with pytest.raises(ConfigError, match="must be an integer"):
            load_config(write_yaml(tmp_path, "octave:\n  version: 9.2.0\n"), env={},
                        overrides={"octave.make_jobs": "many"})

    def test_invalid_yaml(self, tmp_path):
        """Malformed YAML is a ConfigError."""
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_config(write_yaml(tmp_path, "octave: [unclosed\n"), env={})

    def test_non_mapping_root(self, tmp_path):
        """The YAML document must be a mapping."""
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_config(write_yaml(tmp_path, "- a\n- b\n"), env={})

    def test_missing_explicit_file(self, tmp_path):
        """An explicit path that does not exist is an error."""
        with pytest.raises(ConfigError, match="does not exist"):
            load_config(str(tmp_path / "absent.yml"), env={})

    def test_host_version_detected_when_not_configured(self, tmp_path):
        """Without octave.version the interpreter is asked."""
        with patch("config.detect_host_version", return_value="6.4.0") as detect:
            cfg = load_config(write_yaml(tmp_path, "octave:\n  executable: /opt/bin/octave\n"), env={})
        detect.assert_called_once_with("/opt/bin/octave")
        assert cfg.host_version == "6.4.0"
        assert cfg.octave_executable == "/opt/bin/octave"

    def test_default_host_version(self, tmp_path):
        """An interpreter that cannot be run falls back to the default version."""
        with patch("config.detect_host_version", return_value=None):
            cfg = load_config(write_yaml(tmp_path, "{}\n"), env={})
        assert cfg.host_version == "9.2.0"


class TestDetectHostVersion:
    """Tests for detect_host_version()."""

    def test_parses_version_banner(self):
        """The version is taken from the --version banner."""
        banner = "GNU Octave, version 9.2.0\nCopyright (C) 1993-2024 The Octave Project Developers.\n"
        done = subprocess.CompletedProcess(["octave-cli", "--version"], 0, stdout=banner, stderr="")
        with patch("config.subprocess.run", return_value=done):
            assert detect_host_version("octave-cli") == "9.2.0"

    def test_missing_executable(self):
        """An executable that cannot be started yields None."""
        with patch("config.subprocess.run", side_effect=FileNotFoundError("octave-cli")):
            assert detect_host_version("octave-cli") is None
