"""
Declarative validation rulesets.

A ruleset is plain data: a list of rules, each naming a field path, a
registered check and the check's parameters. New constraints are added by
editing data (Python or YAML), not by writing new validation code paths.

YAML layout::

    name: booking_commit
    rules:
      - field: comments[*].text
        check: length
        params:
          max: 512
      - field: receivedBy
        check: required
        message: "receivedBy is mandatory for agency commits"
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import jsonschema
import yaml

from nsk_booking.utils.logger import get_logger
from nsk_booking.validation.checks import get_check

logger = get_logger(__name__)


RULESET_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["name", "rules"],
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "rules": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["field", "check"],
                "additionalProperties": False,
                "properties": {
                    "field": {"type": "string"},
                    "check": {"type": "string", "minLength": 1},
                    "params": {"type": "object"},
                    "message": {"type": "string"},
                },
            },
        },
    },
}


@dataclass(frozen=True)
class Rule:
    """
    A single declarative constraint.

    Attributes:
        field: Dotted path, ``[*]`` iterates list elements, ``""`` is the payload root
        check: Name of a registered check
        params: Keyword parameters passed to the check
        message: Optional message overriding the check's own
    """

    field: str
    check: str
    params: Dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None

    def __post_init__(self) -> None:
        get_check(self.check)


@dataclass(frozen=True)
class Ruleset:
    """Named, ordered collection of rules."""

    name: str
    rules: Tuple[Rule, ...] = ()
    description: Optional[str] = None

    def extend(self, *rules: Rule) -> "Ruleset":
        """Return a new ruleset with ``rules`` appended."""
        return Ruleset(name=self.name, rules=self.rules + tuple(rules), description=self.description)

    def __len__(self) -> int:
        return len(self.rules)


def ruleset_from_dict(data: Dict[str, Any]) -> Ruleset:
    """
    Build a ruleset from a dictionary, validating it against ``RULESET_SCHEMA``.

    Raises:
        ValueError: If the data does not match the schema or names an unknown check
    """
    try:
        jsonschema.validate(instance=data, schema=RULESET_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ValueError(f"Ruleset failed schema validation: {e.message}") from e

    rules: List[Rule] = []
    for idx, rule_data in enumerate(data["rules"]):
        try:
            rules.append(
                Rule(
                    field=rule_data["field"],
                    check=rule_data["check"],
                    params=dict(rule_data.get("params") or {}),
                    message=rule_data.get("message"),
                )
            )
        except ValueError as e:
            raise ValueError(f"Ruleset '{data['name']}': rule [{idx}] invalid: {e}") from e

    return Ruleset(name=data["name"], rules=tuple(rules), description=data.get("description"))


def load_ruleset(path: str) -> Ruleset:
    """
    Load a ruleset from a YAML file.

    Args:
        path: Path to the ruleset YAML file

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the YAML is malformed or fails schema validation
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.error(f"Ruleset file not found: {path}", operation="load_ruleset")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in ruleset: {e}", operation="load_ruleset")
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Ruleset file {path} must contain a mapping")

    ruleset = ruleset_from_dict(data)
    logger.info(
        f"Loaded ruleset '{ruleset.name}' with {len(ruleset)} rules",
        operation="load_ruleset",
        context={"path": path},
    )
    return ruleset


COMMENT_TYPES = ["Default", "Itinerary", "Manifest", "Alert", "Archive"]

DEFAULT_COMMIT_RULESET = Ruleset(
    name="booking_commit",
    description="Local checks applied to a booking commit request before submission",
    rules=(
        Rule("comments", "type", {"type": "array"}),
        Rule("comments[*].text", "required"),
        Rule("comments[*].text", "length", {"max": 512}),
        Rule("comments[*].type", "enum", {"choices": COMMENT_TYPES}),
        Rule("hold", "type", {"type": "object"}),
        Rule("hold.holdDateTime", "required"),
        Rule("hold.holdDateTime", "format", {"format": "datetime"}),
        Rule("concurrentMerge", "type", {"type": "boolean"}),
        Rule("receivedBy", "type", {"type": "string"}),
        Rule("receivedBy", "length", {"max": 64}),
        Rule("restrictionOverride", "type", {"type": "boolean"}),
        Rule("notifyContacts", "type", {"type": "boolean"}),
        Rule("currencyCode", "format", {"format": "currency_code"}),
    ),
)
