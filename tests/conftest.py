"""Shared fixtures: an isolated configuration and package archive builders."""

import io
import os
import tarfile
from typing import Dict, List, Optional, Tuple

import pytest

from config import PkgConfig, ScopeConfig
from installed.store import RegistryStore

ARCH = "x86_64-linux-api-v59"


def description_text(name: str, version: str, depends: str = "", categories: str = "Utilities") -> str:
    lines = [
        f"Name: {name}",
        f"Version: {version}",
        "Date: 2024-01-01",
        "Author: Jane Doe",
        "Maintainer: Jane Doe",
        f"Title: The {name} package",
        f"Description: Functions provided by {name}.",
        "  Continued description line.",
    ]
    if depends:
        lines.append(f"Depends: {depends}")
    if categories:
        lines.append(f"Categories: {categories}")
    return "\n".join(lines) + "\n"


def make_archive(
    directory,
    name: str,
    version: str,
    depends: str = "",
    files: Optional[Dict[str, Optional[str]]] = None,
    with_copying: bool = True,
    top: Optional[str] = None,
) -> str:
    """Write ``<name>-<version>.tar.gz`` into ``directory`` and return its path.

    ``files`` adds or overrides members; a None value drops the member.
    """
    top = top or f"{name}-{version}"
    content: Dict[str, str] = {
        "DESCRIPTION": description_text(name, version, depends),
        f"inst/{name}_hello.m": f"## PKG_ADD: disp ('{name} loaded')\nfunction {name}_hello ()\nend\n",
    }
    if with_copying:
        content["COPYING"] = "GPL-3.0-or-later\n"
    content.update(files or {})
    content = {rel: text for rel, text in content.items() if text is not None}
    path = os.path.join(str(directory), f"{name}-{version}.tar.gz")
    with tarfile.open(path, "w:gz") as tf:
        for rel, text in content.items():
            data = text.encode("utf-8")
            info = tarfile.TarInfo(f"{top}/{rel}")
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return path


class FakeBuilder:
    """Native builder stand-in recording calls."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[str] = []

    def build(self, packdir: str) -> bool:
        self.calls.append(packdir)
        if self.fail:
            raise OSError("make: *** [all] Error 2")
        return False


class FakeHookRunner:
    """Hook runner stand-in recording (script name, fields) pairs."""

    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.calls: List[Tuple[str, Dict[str, str]]] = []

    def run(self, script: str, desc: Dict[str, str]) -> None:
        self.calls.append((os.path.basename(script), dict(desc)))
        if self.fail_on and os.path.basename(script) == self.fail_on:
            raise OSError(f"{self.fail_on} failed")


def build_config(root, elevated: bool = False, host_version: str = "9.2.0") -> PkgConfig:
    root = str(root)
    local_prefix = os.path.join(root, "home", "octave")
    return PkgConfig(
        local=ScopeConfig(
            list=os.path.join(root, "home", ".octave_packages"),
            prefix=local_prefix,
            archprefix=local_prefix,
        ),
        global_=ScopeConfig(
            list=os.path.join(root, "usr", "share", "octave", "octave_packages"),
            prefix=os.path.join(root, "usr", "share", "octave", "packages"),
            archprefix=os.path.join(root, "usr", "lib", "octave", "packages"),
        ),
        arch=ARCH,
        cache_dir=os.path.join(local_prefix, ".cache"),
        host_version=host_version,
        has_elevated_rights=elevated,
        index_url="https://example.org/packages/",
        index_cache_ttl=3600,
        index_stale_after=7 * 24 * 3600,
        forge_list_url="https://forge.example.org/list",
        forge_package_url="https://forge.example.org/{name}/index.html",
        forge_download_url="https://forge.example.org/{name}-{version}.tar.gz",
        octave_executable="octave-cli",
        make_jobs=1,
    )


@pytest.fixture
def pkg_config(tmp_path):
    """Configuration whose every path lives below ``tmp_path``."""
    return build_config(tmp_path)


@pytest.fixture
def store(pkg_config):
    """Empty registry store for ``pkg_config``."""
    return RegistryStore(pkg_config.local.list, pkg_config.global_.list)


@pytest.fixture
def archives(tmp_path):
    """Directory for generated package archives."""
    path = tmp_path / "archives"
    path.mkdir()
    return path
