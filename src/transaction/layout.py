"""Filesystem layout of an installed package.

An extracted package ``packdir`` is turned into an install directory
``<prefix>/<name>-<version>`` for architecture independent files and an arch
directory ``<archprefix>/<name>-<version>/<arch>`` for compiled artifacts.
"""

from __future__ import annotations

import glob
import logging
import os
import shutil
from typing import List

from common.fs_utils import dir_is_empty
from constants import Constants
from errors import DescriptionError

from .description import PackageDescription

logger = logging.getLogger(__name__)

PACKINFO = "packinfo"


def is_architecture_dependent(filename: str) -> bool:
    """True for compiled artifacts (.oct, .mex, shared libraries, extracted tests)."""
    if ".so." in filename:
        return True
    return filename.endswith(Constants.ARCH_DEPENDENT_SUFFIXES)


def copy_built_files(packdir: str, arch: str) -> List[str]:
    """Copy build products from ``src/`` into ``inst/`` or ``inst/<arch>/``.

    The file list comes from ``src/FILES`` when present, otherwise every
    ``*.m``, ``*.oct``, ``*.mex`` and ``*tst`` file in ``src/``.

    Returns:
        List[str]: Destination paths of copied files.
    """
    src = os.path.join(packdir, "src")
    if not os.path.isdir(src):
        return []
    listing = os.path.join(src, "FILES")
    if os.path.isfile(listing):
        with open(listing, "r", encoding="utf-8") as fh:
            filenames = [os.path.join(src, line.strip()) for line in fh if line.strip()]
    else:
        filenames = []
        for pattern in ("*.m", "*.oct", "*.mex", "*tst"):
            filenames.extend(sorted(glob.glob(os.path.join(src, pattern))))

    instdir = os.path.join(packdir, "inst")
    archdir = os.path.join(instdir, arch)
    copied = []
    for path in filenames:
        target_dir = archdir if is_architecture_dependent(os.path.basename(path)) else instdir
        os.makedirs(target_dir, exist_ok=True)
        copied.append(shutil.copy2(path, target_dir))
    return copied


def _copy_entry(src: str, dest_dir: str) -> None:
    target = os.path.join(dest_dir, os.path.basename(src))
    if os.path.isdir(src):
        shutil.copytree(src, target, dirs_exist_ok=True)
    else:
        shutil.copy2(src, target)


def copy_files(desc: PackageDescription, packdir: str, install_dir: str, archdir: str, arch: str) -> None:
    """Populate ``install_dir`` and ``archdir`` from an extracted, built package.

    Raises:
        DescriptionError: when neither an INDEX file nor a Categories field exists.
        OSError: on any copy failure.
    """
    os.makedirs(install_dir, exist_ok=True)
    instdir = os.path.join(packdir, "inst")
    if not dir_is_empty(instdir):
        for entry in sorted(os.listdir(instdir)):
            _copy_entry(os.path.join(instdir, entry), install_dir)
        staged_arch = os.path.join(install_dir, arch)
        if os.path.isdir(staged_arch) and os.path.normpath(staged_arch) != os.path.normpath(archdir):
            os.makedirs(archdir, exist_ok=True)
            for entry in os.listdir(staged_arch):
                shutil.move(os.path.join(staged_arch, entry), os.path.join(archdir, entry))
            shutil.rmtree(staged_arch)

    packinfo = os.path.join(install_dir, PACKINFO)
    os.makedirs(packinfo, exist_ok=True)
    for name in Constants.MANDATORY_PACKAGE_FILES:
        shutil.copy2(os.path.join(packdir, name), packinfo)
    for name in Constants.OPTIONAL_PACKINFO_FILES:
        path = os.path.join(packdir, name)
        if os.path.isfile(path):
            shutil.copy2(path, packinfo)

    index_file = os.path.join(packdir, "INDEX")
    if os.path.isfile(index_file):
        shutil.copy2(index_file, packinfo)
    else:
        write_index(desc, instdir, archdir, os.path.join(packinfo, "INDEX"))

    for extra in ("doc", "bin"):
        path = os.path.join(packdir, extra)
        if os.path.isdir(path) and not dir_is_empty(path):
            shutil.copytree(path, os.path.join(install_dir, extra), dirs_exist_ok=True)


def _function_names(directory: str) -> List[str]:
    if not os.path.isdir(directory):
        return []
    files = sorted(os.listdir(directory))
    for entry in list(files):
        class_dir = os.path.join(directory, entry)
        if entry.startswith("@") and os.path.isdir(class_dir):
            files.extend(f"{entry}/{f}" for f in sorted(os.listdir(class_dir)))
    names = []
    for entry in files:
        for ext in (".m", ".oct"):
            if entry.endswith(ext) and len(entry) > len(ext):
                names.append(entry[: -len(ext)])
    return names


def write_index(desc: PackageDescription, instdir: str, archdir: str, index_file: str) -> None:
    """Generate an INDEX file from the Categories field and the function files."""
    categories = desc.categories
    if not categories:
        raise DescriptionError(
            "the DESCRIPTION file must have a Categories field, when no INDEX file is given"
        )
    functions = _function_names(instdir) + _function_names(archdir)
    with open(index_file, "w", encoding="utf-8") as fh:
        fh.write(f"{desc.name} >> {desc.title}\n")
        fh.write(f"{categories[0]}\n")
        for func in functions:
            fh.write(f"  {func}\n")


def is_empty_install(install_dir: str, archdir: str) -> bool:
    """True when nothing but packinfo/doc was installed."""
    if os.path.isdir(install_dir):
        content = [e for e in os.listdir(install_dir) if e not in (PACKINFO, "doc")]
        if content:
            return False
    return dir_is_empty(archdir)


def remove_installation(install_dir: str, archdir: str, archprefix: str) -> bool:
    """Delete an installed package's directories.

    Returns:
        bool: False when ``install_dir`` was already gone.
    """
    if not os.path.isdir(install_dir):
        return False
    shutil.rmtree(install_dir)
    if archdir and os.path.isdir(archdir):
        shutil.rmtree(archdir)
    if archprefix and os.path.isdir(archprefix) and dir_is_empty(archprefix):
        os.rmdir(archprefix)
    return True
