"""Token parsing utilities for package ids, dependency strings and raw input."""

import os
import re
from typing import Any, Iterable, List, Optional, Tuple

from common.fs_utils import sha256_file
from constants import Constants

from .compare import normalize_operator
from .models import DependencyConstraint, ResolutionItem

_DEPENDENCY_RE = re.compile(
    r"^\s*(?P<name>[A-Za-z0-9_.+\-]+)\s*"
    r"(?:\(\s*(?P<op><=|>=|==|!=|<|>|=)?\s*(?P<version>[^\s)]*)\s*\))?\s*$"
)
_ARCHIVE_RE = re.compile(r"^(?P<name>[A-Za-z0-9_.+\-]+?)-(?P<version>\d[A-Za-z0-9_.+\-]*?)\.(?:tar\.gz|tgz|zip)$")
_URL_RE = re.compile(r"^\w+://")


def split_id(text: str) -> Tuple[str, str]:
    """Return (name, version) of ``name@version``; version is "" when absent."""
    name, _, ver = text.strip().partition("@")
    return name.lower(), ver


def parse_dependency(text: str) -> DependencyConstraint:
    """Parse ``name`` or ``name (op version)``.

    Raises:
        ValueError: when the string does not follow the grammar.
    """
    m = _DEPENDENCY_RE.match(text or "")
    if not m:
        raise ValueError(f"invalid dependency '{text}'")
    op = normalize_operator(m.group("op") or "")
    ver = m.group("version") or ""
    if op and not ver:
        raise ValueError(f"dependency '{text}' has an operator but no version")
    if ver and not op:
        # "name (1.0)" means exactly that version
        op = "=="
    return DependencyConstraint(package=m.group("name").lower(), operator=op, version=ver)


def parse_dependency_entry(entry: Any) -> Optional[DependencyConstraint]:
    """Parse a string or ``{name, operator, version}`` mapping.

    Returns None for the bootstrap ``pkg`` pseudo-dependency.
    """
    if isinstance(entry, dict):
        raw_name = str(entry.get("name", "")).strip()
        if entry.get("operator") or entry.get("version") or "(" not in raw_name:
            dep = DependencyConstraint(
                package=raw_name.lower(),
                operator=normalize_operator(str(entry.get("operator") or "")),
                version=str(entry.get("version") or ""),
            )
            if not dep.package:
                raise ValueError(f"dependency entry without a name: {entry!r}")
        else:
            dep = parse_dependency(raw_name)
    else:
        dep = parse_dependency(str(entry))
    if dep.package == Constants.BOOTSTRAP_PACKAGE_NAME:
        return None
    return dep


def parse_dependency_list(entries: Iterable[Any]) -> List[DependencyConstraint]:
    """Parse every entry, dropping the bootstrap pseudo-dependency."""
    deps = []
    for entry in entries or []:
        dep = parse_dependency_entry(entry)
        if dep is not None:
            deps.append(dep)
    return deps


def parse_depends_field(value: str) -> List[DependencyConstraint]:
    """Parse a comma separated ``Depends:`` descriptor field."""
    parts = [p.strip() for p in (value or "").split(",")]
    return parse_dependency_list(p for p in parts if p)


def id_from_archive_name(url: str) -> str:
    """Derive ``name@version`` from an archive name such as ``io-2.6.3.tar.gz``."""
    base = os.path.basename(url.split("?", 1)[0])
    m = _ARCHIVE_RE.match(base)
    if not m:
        return ""
    return f"{m.group('name').lower()}@{m.group('version')}"


def is_url(text: str) -> bool:
    """True for ``scheme://`` strings."""
    return bool(_URL_RE.match(text))


def item_from_input(text: str) -> ResolutionItem:
    """Turn one command line token into a ResolutionItem.

    Existing files carry their checksum, URLs carry only the url, anything
    else is treated as a package id.
    """
    text = text.strip()
    if os.path.isfile(text):
        return ResolutionItem(url=os.path.abspath(text), checksum=sha256_file(text))
    if is_url(text):
        return ResolutionItem(url=text)
    return ResolutionItem(id=text.lower())
