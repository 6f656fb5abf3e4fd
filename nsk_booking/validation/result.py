"""Validation outcome types."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Violation:
    """A single failed rule."""

    field: str
    rule: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "rule": self.rule, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating one payload against a ruleset.

    ``valid`` is True exactly when ``violations`` is empty.
    """

    violations: List[Violation] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.violations

    def first(self) -> Optional[Violation]:
        """Return the first violation, for callers that want fail-fast semantics."""
        return self.violations[0] if self.violations else None

    def for_field(self, name: str) -> List[Violation]:
        return [v for v in self.violations if v.field == name]

    def to_dict(self) -> Dict[str, Any]:
        if self.valid:
            return {"valid": True}
        return {"valid": False, "violations": [v.to_dict() for v in self.violations]}

    def __bool__(self) -> bool:
        return self.valid

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls()
