"""Parser for package DESCRIPTION files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from constants import Constants
from errors import DescriptionError
from versioning.models import DependencyConstraint
from versioning.parser import parse_depends_field


@dataclass
class PackageDescription:
    """Parsed DESCRIPTION; ``fields`` keeps every key, lowercased."""
    name: str
    version: str
    title: str
    depends: List[DependencyConstraint] = field(default_factory=list)
    fields: Dict[str, str] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return f"{self.name}@{self.version}"

    @property
    def categories(self) -> List[str]:
        raw = self.fields.get("categories", "")
        return [c.strip() for c in raw.split(",") if c.strip()]


def parse_description_text(text: str, source: str = "DESCRIPTION") -> PackageDescription:
    """Parse ``Key: value`` lines with indented continuation lines.

    Raises:
        DescriptionError: on malformed lines or missing required fields.
    """
    fields: Dict[str, str] = {}
    last_key = None
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        if line[0].isspace():
            if last_key is None:
                raise DescriptionError(f"{source}:{lineno}: continuation line without a field")
            fields[last_key] = f"{fields[last_key]} {line.strip()}".strip()
            continue
        key, sep, value = line.partition(":")
        if not sep or not key.strip():
            raise DescriptionError(f"{source}:{lineno}: expected 'Key: value'")
        last_key = key.strip().lower()
        fields[last_key] = value.strip()

    missing = [f for f in Constants.REQUIRED_DESCRIPTION_FIELDS if not fields.get(f)]
    if missing:
        raise DescriptionError(f"{source} is missing required field(s): {', '.join(missing)}")

    try:
        depends = parse_depends_field(fields.get("depends", ""))
    except ValueError as exc:
        raise DescriptionError(f"{source}: invalid Depends field: {exc}") from exc

    fields["name"] = fields["name"].lower()
    return PackageDescription(
        name=fields["name"],
        version=fields["version"],
        title=fields["title"],
        depends=depends,
        fields=fields,
    )


def parse_description(path: str) -> PackageDescription:
    """Read and parse a DESCRIPTION file."""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            text = fh.read()
    except OSError as exc:
        raise DescriptionError(f"could not read {path}: {exc}") from exc
    return parse_description_text(text, source=path)
