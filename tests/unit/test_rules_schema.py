"""
Unit tests for ruleset loading (nsk_booking/validation/rules.py)

Rulesets are data: they are schema-checked with jsonschema and loaded from
YAML so new constraints need no code changes.
"""

import pytest

from nsk_booking.validation import (
    DEFAULT_COMMIT_RULESET,
    RULESET_SCHEMA,
    Rule,
    load_ruleset,
    ruleset_from_dict,
    validate,
)

AGENCY_RULESET_YAML = """
name: agency_commit
description: Commit rules for agency bookings
rules:
  - field: receivedBy
    check: required
    message: receivedBy is mandatory for agency commits
  - field: currencyCode
    check: enum
    params:
      choices: [KES, USD]
  - field: comments[*].text
    check: length
    params:
      max: 120
"""


class TestRulesetFromDict:
    def test_builds_rules_in_order(self):
        ruleset = ruleset_from_dict(
            {
                "name": "r",
                "rules": [
                    {"field": "a", "check": "required"},
                    {"field": "b", "check": "length", "params": {"max": 2}},
                ],
            }
        )

        assert ruleset.name == "r"
        assert [rule.field for rule in ruleset.rules] == ["a", "b"]
        assert ruleset.rules[1].params == {"max": 2}

    @pytest.mark.parametrize(
        "data",
        [
            {"rules": []},
            {"name": "r"},
            {"name": "r", "rules": [{"field": "a"}]},
            {"name": "r", "rules": [{"field": "a", "check": "required", "extra": 1}]},
            {"name": "r", "rules": [], "unexpected": True},
        ],
    )
    def test_schema_violations_rejected(self, data):
        with pytest.raises(ValueError, match="schema validation"):
            ruleset_from_dict(data)

    def test_unknown_check_rejected(self):
        with pytest.raises(ValueError, match=r"rule \[0\] invalid"):
            ruleset_from_dict({"name": "r", "rules": [{"field": "a", "check": "telepathy"}]})

    def test_schema_is_draft_07(self):
        assert RULESET_SCHEMA["$schema"].endswith("draft-07/schema#")


class TestLoadRuleset:
    def test_load_yaml_ruleset(self, tmp_path):
        path = tmp_path / "agency.yaml"
        path.write_text(AGENCY_RULESET_YAML, encoding="utf-8")

        ruleset = load_ruleset(str(path))

        assert ruleset.name == "agency_commit"
        assert len(ruleset) == 3

        result = validate({"currencyCode": "EUR", "comments": [{"text": "y" * 121}]}, ruleset)
        assert [(v.field, v.rule) for v in result.violations] == [
            ("receivedBy", "required"),
            ("currencyCode", "enum"),
            ("comments[0].text", "length"),
        ]
        assert result.violations[0].message == "receivedBy is mandatory for agency commits"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_ruleset(str(tmp_path / "absent.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("name: [unclosed\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            load_ruleset(str(path))

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- field: a\n  check: required\n", encoding="utf-8")

        with pytest.raises(ValueError, match="must contain a mapping"):
            load_ruleset(str(path))


class TestDefaultCommitRuleset:
    def test_rules_reference_registered_checks(self):
        assert all(isinstance(rule, Rule) for rule in DEFAULT_COMMIT_RULESET.rules)
        assert DEFAULT_COMMIT_RULESET.name == "booking_commit"

    def test_hold_date_must_be_iso_datetime(self):
        result = validate({"hold": {"holdDateTime": "next friday"}}, DEFAULT_COMMIT_RULESET)

        assert [(v.field, v.rule) for v in result.violations] == [("hold.holdDateTime", "format")]
