"""Validation module - declarative, collect-all payload checks."""

from .checks import CHECKS, FORMATS, MISSING, register_check
from .result import ValidationResult, Violation
from .rules import (
    DEFAULT_COMMIT_RULESET,
    RULESET_SCHEMA,
    Rule,
    Ruleset,
    load_ruleset,
    ruleset_from_dict,
)
from .validator import resolve_field, validate

__all__ = [
    "CHECKS",
    "FORMATS",
    "MISSING",
    "register_check",
    "ValidationResult",
    "Violation",
    "DEFAULT_COMMIT_RULESET",
    "RULESET_SCHEMA",
    "Rule",
    "Ruleset",
    "load_ruleset",
    "ruleset_from_dict",
    "resolve_field",
    "validate",
]
