"""External collaborators of the transaction engine.

Archive extraction, native builds, interpreter hooks and downloads live here
so tests can replace them with fakes.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import tarfile
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from common.fs_utils import is_relative_to
from common.http_client import download_file
from common.logging_utils import Timer
from constants import Constants
from versioning.parser import is_url

logger = logging.getLogger(__name__)


class UnsafeArchiveError(ValueError):
    """Archive member escapes the extraction directory."""


class Downloader:
    """Resolve a plan url to a local archive path."""

    def fetch(self, url: str, dest_dir: str) -> str:
        if is_url(url) and not url.startswith("file://"):
            return download_file(url, dest_dir)
        path = url[len("file://"):] if url.startswith("file://") else url
        if not os.path.exists(path):
            raise FileNotFoundError(f"package archive {path} does not exist")
        return path


class ArchiveExtractor:
    """Extract tar/zip archives, refusing members that escape the target."""

    def extract(self, archive: str, dest: str) -> str:
        """Extract ``archive`` below ``dest`` and return the package directory.

        A directory is accepted as an already extracted package.

        Raises:
            UnsafeArchiveError: on path traversal or escaping links.
            ValueError: when the archive holds more than one top-level entry.
        """
        if os.path.isdir(archive):
            return os.path.abspath(archive)
        os.makedirs(dest, exist_ok=True)
        if archive.lower().endswith(".zip"):
            self._extract_zip(archive, Path(dest))
        else:
            self._extract_tar(archive, Path(dest))
        entries = [e for e in os.listdir(dest) if e not in (".", "..")]
        if len(entries) != 1:
            raise ValueError("bundles of packages are not allowed")
        return os.path.join(dest, entries[0])

    @staticmethod
    def _check_member(name: str, dest: Path) -> None:
        base = dest.resolve()
        if ".." in Path(name).parts:
            raise UnsafeArchiveError(f"unsafe archive member (..): {name}")
        target = (dest / name.lstrip("/")).resolve()
        if not is_relative_to(target, base):
            raise UnsafeArchiveError(f"unsafe archive member (path traversal): {name}")

    def _extract_tar(self, archive: str, dest: Path) -> None:
        with tarfile.open(archive, "r:*") as tf:
            base = dest.resolve()
            for member in tf.getmembers():
                self._check_member(member.name, dest)
                if member.islnk() or member.issym():
                    link = member.linkname or ""
                    if link.startswith("/") or ".." in Path(link).parts:
                        raise UnsafeArchiveError(f"unsafe archive link: {member.name} -> {link}")
                    resolved = ((dest / member.name).parent / link).resolve()
                    if not is_relative_to(resolved, base):
                        raise UnsafeArchiveError(f"unsafe archive link: {member.name} -> {link}")
            if hasattr(tarfile, "data_filter"):
                tf.extractall(dest, filter="data")
            else:
                tf.extractall(dest)

    def _extract_zip(self, archive: str, dest: Path) -> None:
        with zipfile.ZipFile(archive) as zf:
            for name in zf.namelist():
                self._check_member(name, dest)
            zf.extractall(dest)


class NativeBuilder:
    """Run ``configure`` and ``make`` in a package's ``src`` directory."""

    def __init__(
        self,
        octave: str = Constants.OCTAVE_EXECUTABLE,
        mkoctfile: str = Constants.MKOCTFILE_EXECUTABLE,
        octave_config: str = Constants.OCTAVE_CONFIG_EXECUTABLE,
        jobs: int = Constants.MAKE_JOBS,
        verbose: bool = False,
    ):
        self.octave = octave
        self.mkoctfile = mkoctfile
        self.octave_config = octave_config
        self.jobs = jobs
        self.verbose = verbose

    def environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        mkoctfile = f"{self.mkoctfile} --verbose" if self.verbose else self.mkoctfile
        env.update({
            "MKOCTFILE": mkoctfile,
            "OCTAVE_CONFIG": self.octave_config,
            "OCTAVE": self.octave,
        })
        if self.verbose:
            env["V"] = "1"
        return env

    def _run(self, cmd: List[str], cwd: str, env: Dict[str, str]) -> None:
        logger.info("Running %s", " ".join(shlex.quote(c) for c in cmd))
        with Timer() as t:
            subprocess.run(
                cmd,
                cwd=cwd,
                env=env,
                check=True,
                stdout=None if self.verbose else subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        logger.debug("%s finished in %d ms", cmd[0], t.duration_ms())

    def build(self, packdir: str) -> bool:
        """Build native sources; returns False when the package has none.

        Raises:
            subprocess.CalledProcessError: when configure or make fails.
        """
        src = os.path.join(packdir, "src")
        if not os.path.isdir(src):
            return False
        env = self.environment()
        if os.path.isfile(os.path.join(src, "configure")):
            self._run(["sh", "./configure"], src, env)
        if os.path.isfile(os.path.join(src, "Makefile")):
            self._run(["make", "--jobs", str(self.jobs), "--directory", src], src, env)
        return True


class HookRunner:
    """Run package scripts (pre_install.m, post_install.m, on_uninstall.m) in the interpreter."""

    def __init__(self, octave: str = Constants.OCTAVE_EXECUTABLE):
        self.octave = octave

    def run(self, script: str, desc: Dict[str, str]) -> None:
        """Call the function defined by ``script`` with a struct built from ``desc``.

        Raises:
            subprocess.CalledProcessError: when the script fails.
        """
        func = os.path.splitext(os.path.basename(script))[0]
        fields = ", ".join(f"'{k}', '{v.replace(chr(39), chr(39) * 2)}'" for k, v in desc.items())
        code = f"{func} (struct ({fields}));"
        logger.info("Running %s", script)
        subprocess.run(
            [self.octave, "--no-gui", "--no-init-file", "--quiet", "--eval", code],
            cwd=os.path.dirname(script),
            check=True,
        )


class TestRunner:
    """Run the interpreter's test suite over package directories."""

    __test__ = False

    def __init__(self, octave: str = Constants.OCTAVE_EXECUTABLE):
        self.octave = octave

    def run(self, dirs: Sequence[str], search_path: Optional[str] = None) -> int:
        """Return the interpreter's exit status (0 when every test passed)."""
        quoted = ", ".join(f"'{d}'" for d in dirs)
        code = f"__run_test_suite__ ({{{quoted}}}, {{}});"
        env = dict(os.environ)
        if search_path is not None:
            env[Constants.ENV_SEARCH_PATH] = search_path
        proc = subprocess.run(
            [self.octave, "--no-gui", "--no-init-file", "--quiet", "--eval", code],
            env=env,
            check=False,
        )
        return proc.returncode
