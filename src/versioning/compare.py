"""Version comparison built on ``packaging.version``.

Octave package versions are mostly PEP 440 compatible ("2.6.3"); anything
else falls back to a dotted-integer comparison.
"""

from __future__ import annotations

import operator
import re
from typing import Any, Callable, Dict, Tuple, Union

from packaging import version

_OPERATORS: Dict[str, Callable[[object, object], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "=": operator.eq,
    ">=": operator.ge,
    ">": operator.gt,
    "!=": operator.ne,
}

def normalize_operator(op: str) -> str:
    """Return the canonical spelling of ``op`` ("=" becomes "==")."""
    op = (op or "").strip()
    if op == "=":
        return "=="
    if op and op not in _OPERATORS:
        raise ValueError(f"unsupported version operator '{op}'")
    return op


def _dotted(ver: str) -> Tuple[int, ...]:
    parts = [int(p) for p in re.findall(r"\d+", ver)]
    while parts and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def _parse(ver: str) -> Union[version.Version, Tuple[int, ...]]:
    try:
        return version.Version(ver)
    except version.InvalidVersion:
        return _dotted(ver)


def version_key(ver: str) -> Tuple[int, Any]:
    """Sort key usable for mixed valid/invalid version strings.

    PEP 440 versions order among themselves ("1.0.0rc1" < "1.0.0") and rank
    above unparseable ones, which fall back to dotted integers.
    """
    parsed = _parse(ver)
    if isinstance(parsed, version.Version):
        return (1, parsed)
    return (0, parsed)


def compare_versions(left: str, right: str, op: str) -> bool:
    """Evaluate ``left <op> right``.

    Args:
        left: Version under test.
        right: Version from the constraint.
        op: One of ``<, <=, ==, =, >=, >, !=``; empty means "any version".

    Returns:
        bool: Result of the comparison.
    """
    if not op:
        return True
    op = normalize_operator(op)
    fn = _OPERATORS[op]
    a, b = _parse(left), _parse(right)
    if isinstance(a, version.Version) and isinstance(b, version.Version):
        return fn(a, b)
    return fn(_dotted(left), _dotted(right))
