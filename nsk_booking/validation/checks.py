"""
Check functions for the field validator.

Each check is a pure function ``check(value, **params) -> Optional[str]``
returning a failure message, or None when the value passes. Checks never
raise on bad input and never mutate their arguments.

Field checks receive the value found at the rule's field path and are
skipped when that value is absent; only ``required`` (registered with
``checks_absent=True``) sees the ``MISSING`` sentinel. Cross-field checks
(``date_order``, ``exactly_one_of``, ``at_least_one_of``) receive the
mapping found at the rule's path and look up sibling keys themselves.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, Optional


class _Missing:
    """Sentinel for a field path that resolves to nothing."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

CheckFunc = Callable[..., Optional[str]]


@dataclass(frozen=True)
class CheckSpec:
    name: str
    func: CheckFunc
    checks_absent: bool = False


CHECKS: Dict[str, CheckSpec] = {}


def register_check(name: str, func: CheckFunc, checks_absent: bool = False) -> None:
    """
    Register a check under ``name`` so rulesets can reference it.

    Args:
        name: Check name used in rules
        func: Check function
        checks_absent: When True the check also runs for absent values
    """
    CHECKS[name] = CheckSpec(name=name, func=func, checks_absent=checks_absent)


def get_check(name: str) -> CheckSpec:
    try:
        return CHECKS[name]
    except KeyError:
        raise ValueError(f"Unknown validation check: '{name}'") from None


def is_empty(value: Any) -> bool:
    if value is MISSING or value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _parse_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    # Compare naive and aware values on the wall clock
    return parsed.replace(tzinfo=None)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _valid_date(value: Any) -> bool:
    return isinstance(value, str) and bool(_DATE_RE.match(value)) and _parse_date(value) is not None


def _valid_datetime(value: Any) -> bool:
    return isinstance(value, (str, datetime)) and _parse_date(value) is not None


def _regex_format(pattern: str) -> Callable[[Any], bool]:
    compiled = re.compile(pattern)
    return lambda value: isinstance(value, str) and compiled.fullmatch(value) is not None


# Named formats and their failure messages, matching the upstream catalog
FORMATS: Dict[str, tuple] = {
    "date": (_valid_date, "Invalid date format. Expected YYYY-MM-DD."),
    "datetime": (_valid_datetime, "Invalid datetime format. Expected ISO 8601."),
    "email": (
        lambda value: isinstance(value, str) and _EMAIL_RE.match(value) is not None,
        "Invalid email format.",
    ),
    "airport_code": (_regex_format(r"[A-Z]{3}"), "Invalid airport code. Expected 3-letter IATA code."),
    "country_code": (_regex_format(r"[A-Z]{2}"), "Invalid country code. Expected 2-letter ISO code."),
    "currency_code": (
        _regex_format(r"[A-Z]{3}"),
        "Invalid currency code. Expected 3-letter ISO code.",
    ),
    "passenger_type": (
        _regex_format(r"[A-Z]{3,4}"),
        "Invalid passenger type. Expected 3-4 character code.",
    ),
    "phone": (_regex_format(r"\+?[\d\s\-\(\)]+"), "Invalid phone number format."),
    "record_locator": (
        _regex_format(r"[A-Z0-9]{6}"),
        "Invalid record locator. Expected 6-character alphanumeric.",
    ),
    "positive_number": (lambda value: _is_number(value) and value > 0, "Must be a positive number."),
    "non_negative_number": (
        lambda value: _is_number(value) and value >= 0,
        "Must be a non-negative number.",
    ),
}

_TYPES: Dict[str, Callable[[Any], bool]] = {
    "string": lambda value: isinstance(value, str),
    "integer": lambda value: isinstance(value, int) and not isinstance(value, bool),
    "number": _is_number,
    "boolean": lambda value: isinstance(value, bool),
    "object": lambda value: isinstance(value, Mapping),
    "array": lambda value: isinstance(value, (list, tuple)),
}


def required(value: Any, **params) -> Optional[str]:
    if is_empty(value):
        return "Field is required."
    return None


def type_check(value: Any, type: str, **params) -> Optional[str]:
    predicate = _TYPES.get(type)
    if predicate is None:
        return f"Unknown type '{type}'."
    if not predicate(value):
        return f"Must be of type {type}."
    return None


def length(value: Any, min: Optional[int] = None, max: Optional[int] = None, **params) -> Optional[str]:
    if not isinstance(value, (str, list, tuple)):
        return "Length can only be checked on strings and lists."
    size = len(value)
    if min is not None and size < min:
        return f"Length must be at least {min} (got {size})."
    if max is not None and size > max:
        return f"Length must be at most {max} (got {size})."
    return None


def value_range(
    value: Any, min: Optional[float] = None, max: Optional[float] = None, **params
) -> Optional[str]:
    if not _is_number(value):
        return "Must be a number."
    if min is not None and value < min:
        return f"Must be at least {min}."
    if max is not None and value > max:
        return f"Must be at most {max}."
    return None


def enum(value: Any, choices: Iterable[Any], case_sensitive: bool = True, **params) -> Optional[str]:
    options = list(choices)
    if not case_sensitive and isinstance(value, str):
        if value.lower() in {str(option).lower() for option in options}:
            return None
    elif value in options:
        return None
    return f"Must be one of: {', '.join(str(option) for option in options)}."


def pattern(value: Any, regex: str, **params) -> Optional[str]:
    if not isinstance(value, str) or re.fullmatch(regex, value) is None:
        return f"Must match pattern {regex}."
    return None


def format_check(value: Any, format: str, **params) -> Optional[str]:
    entry = FORMATS.get(format)
    if entry is None:
        return f"Unknown format '{format}'."
    predicate, message = entry
    if not predicate(value):
        return message
    return None


def date_order(value: Any, begin: str, end: str, allow_equal: bool = True, **params) -> Optional[str]:
    if not isinstance(value, Mapping):
        return "Must be an object."
    begin_value = _parse_date(value.get(begin))
    end_value = _parse_date(value.get(end))
    # Absent or malformed dates are reported by required/format rules
    if begin_value is None or end_value is None:
        return None
    if end_value < begin_value or (not allow_equal and end_value == begin_value):
        comparator = "on or after" if allow_equal else "after"
        return f"{end} must be {comparator} {begin}."
    return None


def exactly_one_of(value: Any, fields: Iterable[str], **params) -> Optional[str]:
    if not isinstance(value, Mapping):
        return "Must be an object."
    names = list(fields)
    present = [name for name in names if not is_empty(value.get(name, MISSING))]
    if len(present) != 1:
        return f"Exactly one of {', '.join(names)} must be provided (got {len(present)})."
    return None


def at_least_one_of(value: Any, fields: Iterable[str], **params) -> Optional[str]:
    if not isinstance(value, Mapping):
        return "Must be an object."
    names = list(fields)
    if all(is_empty(value.get(name, MISSING)) for name in names):
        return f"At least one of {', '.join(names)} must be provided."
    return None


def register_default_checks() -> None:
    register_check("required", required, checks_absent=True)
    register_check("type", type_check)
    register_check("length", length)
    register_check("range", value_range)
    register_check("enum", enum)
    register_check("pattern", pattern)
    register_check("format", format_check)
    register_check("date_order", date_order)
    register_check("exactly_one_of", exactly_one_of)
    register_check("at_least_one_of", at_least_one_of)


register_default_checks()
