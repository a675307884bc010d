"""Result types returned by the resolver."""

from dataclasses import dataclass, field
from typing import Dict, List

from errors import InconsistentInputWarning
from versioning.models import DependencyConstraint, PlanItem, ResolutionItem


@dataclass
class ResolutionResult:
    """Outcome of one resolve call.

    ``plan`` is dependency ordered. ``complete`` is False when resolution was
    cut short (unresolved input, forced cycle, unmet constraints tolerated).
    """
    plan: List[PlanItem] = field(default_factory=list)
    unresolved: List[ResolutionItem] = field(default_factory=list)
    unmet: Dict[str, List[DependencyConstraint]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    inconsistencies: List[InconsistentInputWarning] = field(default_factory=list)
    complete: bool = True

    @property
    def ids(self) -> List[str]:
        return [item.id for item in self.plan]

    def unmet_lines(self) -> List[str]:
        """One ``"<id> needs <constraint>"`` line per unmet constraint."""
        return [f"{pid} needs {dep}" for pid, deps in self.unmet.items() for dep in deps]
