"""Rebuild a scope's registry from the packages found on disk."""

from __future__ import annotations

import glob
import logging
import os
from typing import Dict, List, Optional, Sequence

from config import ScopeConfig
from constants import Constants
from errors import DescriptionError
from installed.records import InstalledRecord
from versioning.compare import version_key

from .description import parse_description
from .layout import PACKINFO

logger = logging.getLogger(__name__)


def scan_prefix(scope_cfg: ScopeConfig, arch: str) -> List[InstalledRecord]:
    """Build records for every ``<prefix>/*/packinfo/DESCRIPTION``.

    Unreadable descriptions are logged and skipped. When a name occurs more
    than once the highest version wins.
    """
    pattern = os.path.join(scope_cfg.prefix, "*", PACKINFO, Constants.DESCRIPTION_FILE)
    found: Dict[str, InstalledRecord] = {}
    for path in sorted(glob.glob(pattern)):
        try:
            desc = parse_description(path)
        except DescriptionError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            continue
        install_dir = os.path.dirname(os.path.dirname(path))
        arch_base = os.path.join(scope_cfg.archprefix, os.path.basename(install_dir))
        record = InstalledRecord(
            name=desc.name,
            version=desc.version,
            dir=install_dir,
            archdir=os.path.join(arch_base, arch),
            archprefix=arch_base,
            dependencies=list(desc.depends),
            title=desc.title,
        )
        current = found.get(record.name)
        if current is not None and version_key(current.version) >= version_key(record.version):
            logger.warning("Ignoring %s, %s is also installed", record.id, current.id)
            continue
        found[record.name] = record
    return list(found.values())


def rebuild_records(
    scope_cfg: ScopeConfig,
    arch: str,
    existing: Sequence[InstalledRecord],
    names: Optional[Sequence[str]] = None,
) -> List[InstalledRecord]:
    """Return the rebuilt record list of one scope.

    Without ``names`` the scan result replaces everything. With ``names``,
    only those packages are taken from the scan and every other existing
    record is kept.
    """
    scanned = scan_prefix(scope_cfg, arch)
    if not names:
        return scanned
    wanted = {n.lower() for n in names}
    kept = [r for r in existing if r.name not in wanted]
    fresh = [r for r in scanned if r.name in wanted]
    missing = wanted - {r.name for r in fresh}
    for name in sorted(missing):
        logger.warning("package %s was not found below %s", name, scope_cfg.prefix)
    return kept + fresh
