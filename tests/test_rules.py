"""
Tests for the rule model and the match finders.
Run with:  python -m pytest tests/test_rules.py -v
"""

import re

import pytest

from oracle2dbx.rules import (
    ConfigurationError,
    Rewritten,
    Rule,
    RuleMatch,
    Severity,
    call_finder,
    regex_finder,
)


def _identity(match):
    return Rewritten(match.text)


class TestRuleValidation:
    def test_compiles_pattern(self):
        rule = Rule("r", r"\bfoo\b", _identity)
        assert rule.compiled_pattern.flags & re.IGNORECASE
        assert rule.severity == Severity.INFO

    def test_invalid_regex(self):
        with pytest.raises(ConfigurationError, match="Invalid regex"):
            Rule("bad", r"(unclosed", _identity)

    def test_transform_must_be_callable(self):
        with pytest.raises(ConfigurationError, match="callable"):
            Rule("r", "x", "not a function")

    def test_error_severity_rejected(self):
        with pytest.raises(ConfigurationError, match="severity"):
            Rule("r", "x", _identity, severity=Severity.ERROR)

    def test_empty_name_rejected(self):
        with pytest.raises(ConfigurationError):
            Rule("", "x", _identity)


class TestRegexFinder:
    def test_groups_and_lines(self):
        pattern = re.compile(r"NVL\((\w+)", re.IGNORECASE)
        matches = list(regex_finder(pattern, "a\nnvl(x) nvl(y)"))
        assert [m.group(1) for m in matches] == ["x", "y"]
        assert matches[0].line == 2
        assert matches[0].group(2) is None


class TestCallFinder:
    def test_extends_to_balanced_parenthesis(self):
        pattern = re.compile(r"\bDECODE\s*\(", re.IGNORECASE)
        text = "SELECT decode(a, f(b), ')') x"
        (match,) = call_finder(pattern, text)
        assert match.text == "decode(a, f(b), ')')"
        assert match.inner == "a, f(b), ')'"

    def test_unclosed_call(self):
        pattern = re.compile(r"\bDECODE\s*\(", re.IGNORECASE)
        (match,) = call_finder(pattern, "SELECT DECODE(a, 1")
        assert match.inner is None
        assert match.text == "DECODE("

    def test_match_equality_ignores_regex_object(self):
        first = RuleMatch(0, 1, "x")
        second = RuleMatch(0, 1, "x", regex_match=re.match("x", "x"))
        assert first == second
