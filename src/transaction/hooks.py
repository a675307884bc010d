"""Generation of the PKG_ADD / PKG_DEL files run when a package is (un)loaded."""

from __future__ import annotations

import glob
import os
import re
from typing import List, Tuple

HOOK_NAMES = ("PKG_ADD", "PKG_DEL")


def _extract(path: str, pattern: "re.Pattern[str]") -> List[str]:
    commands = []
    with open(path, "r", encoding="utf-8", errors="replace") as fh:
        for line in fh:
            m = pattern.match(line.rstrip("\r\n"))
            if m:
                commands.append(m.group(1))
    return commands


def collect_directives(packdir: str, hook: str) -> Tuple[List[str], List[str]]:
    """Return (m-file commands, native commands) for ``hook``.

    m-file commands come from ``## PKG_ADD: cmd`` / ``% PKG_ADD: cmd`` lines
    in ``inst/*.m``. Native commands come from ``// PKG_ADD: cmd`` and
    ``/* PKG_ADD: cmd */`` lines in ``src/*.cc|cpp|cxx`` plus the package's
    top-level hook file.
    """
    m_pattern = re.compile(rf"^[#%][#%]* *{hook}: *(.*)$")
    line_pattern = re.compile(rf"^//* *{hook}: *(.*)$")
    block_pattern = re.compile(rf"^/\** *{hook}: *(.*?) *\*/$")

    m_commands: List[str] = []
    for path in sorted(glob.glob(os.path.join(packdir, "inst", "*.m"))):
        m_commands.extend(_extract(path, m_pattern))

    native: List[str] = []
    sources = []
    for ext in ("cc", "cpp", "cxx"):
        sources.extend(sorted(glob.glob(os.path.join(packdir, "src", f"*.{ext}"))))
    for path in sources:
        native.extend(_extract(path, line_pattern))
        native.extend(_extract(path, block_pattern))

    top_level = os.path.join(packdir, hook)
    if os.path.isfile(top_level):
        with open(top_level, "r", encoding="utf-8", errors="replace") as fh:
            native.extend(line.rstrip("\r\n") for line in fh)
    return m_commands, native


def _append(path: str, commands: List[str]) -> None:
    if not commands:
        return
    with open(path, "a", encoding="utf-8") as fh:
        for cmd in commands:
            fh.write(cmd + "\n")


def create_pkgadddel(packdir: str, install_dir: str, archdir: str, hook: str) -> None:
    """Write ``hook`` files into the install and arch directories.

    Native directives go to the arch directory when it exists, otherwise
    everything lands in the install directory. Empty files are removed.
    """
    m_commands, native = collect_directives(packdir, hook)
    inst_file = os.path.join(install_dir, hook)
    arch_file = os.path.join(archdir, hook) if archdir and os.path.isdir(archdir) else inst_file
    _append(inst_file, m_commands)
    _append(arch_file, native)
    for path in {inst_file, arch_file}:
        if os.path.isfile(path) and os.path.getsize(path) == 0:
            os.unlink(path)
