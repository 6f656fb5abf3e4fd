"""
Field validator.

Evaluates every rule of a ruleset against a payload and collects all
violations in one pass. Validation is pure: no I/O, and the payload is
only read, never modified.

Field path resolution:
    - ``a.b`` looks up nested mapping keys
    - ``items[*].code`` applies the rule to each element of ``items``
    - ``items[0].code`` addresses a single element
    - ``""`` addresses the payload itself (used by cross-field checks)

When an intermediate container is absent the rule does not apply, so
``hold.holdDateTime`` is only required once ``hold`` is present. Only the
last path segment can resolve to ``MISSING``.
"""

import re
from collections.abc import Mapping
from typing import Any, Iterator, List, Tuple

from nsk_booking.validation.checks import MISSING, get_check
from nsk_booking.validation.result import ValidationResult, Violation
from nsk_booking.validation.rules import Rule, Ruleset

_SEGMENT_RE = re.compile(r"([^.\[\]]+)|\[(\*|\d+)\]")


def _segments(path: str) -> List[Tuple[str, str]]:
    return _SEGMENT_RE.findall(path)


def resolve_field(payload: Any, path: str) -> Iterator[Tuple[str, Any]]:
    """
    Yield ``(concrete_path, value)`` pairs for a field path.

    ``value`` is ``MISSING`` when the final segment is absent.
    """
    matches: List[Tuple[str, Any]] = [("", payload)]
    segments = _segments(path)

    for position, (key, index) in enumerate(segments):
        is_last = position == len(segments) - 1
        next_matches: List[Tuple[str, Any]] = []

        for prefix, value in matches:
            if value is MISSING:
                continue

            if key:
                concrete = f"{prefix}.{key}" if prefix else key
                if isinstance(value, Mapping) and key in value:
                    next_matches.append((concrete, value[key]))
                elif is_last:
                    next_matches.append((concrete, MISSING))
            elif index == "*":
                if isinstance(value, (list, tuple)):
                    for i, item in enumerate(value):
                        next_matches.append((f"{prefix}[{i}]", item))
            else:
                i = int(index)
                concrete = f"{prefix}[{i}]"
                if isinstance(value, (list, tuple)) and i < len(value):
                    next_matches.append((concrete, value[i]))
                elif is_last:
                    next_matches.append((concrete, MISSING))

        matches = next_matches

    return iter(matches)


def _apply_rule(payload: Any, rule: Rule) -> List[Violation]:
    spec = get_check(rule.check)
    violations: List[Violation] = []

    for concrete_path, value in resolve_field(payload, rule.field):
        if value is MISSING and not spec.checks_absent:
            continue
        message = spec.func(value, **rule.params)
        if message is not None:
            violations.append(
                Violation(
                    field=concrete_path or rule.field,
                    rule=rule.check,
                    message=rule.message or message,
                )
            )

    return violations


def validate(payload: Any, ruleset: Ruleset) -> ValidationResult:
    """
    Validate ``payload`` against every rule in ``ruleset``.

    Args:
        payload: Request body (mapping) to check
        ruleset: Declarative rules to apply

    Returns:
        ValidationResult with one violation per failed rule application,
        in ruleset order
    """
    if not isinstance(payload, Mapping):
        return ValidationResult(
            [Violation(field="", rule="type", message="Payload must be an object.")]
        )

    violations: List[Violation] = []
    for rule in ruleset.rules:
        violations.extend(_apply_rule(payload, rule))

    return ValidationResult(violations)
