"""
Tests for the rule engine: ordering, splicing, trace entries and faults.
Run with:  python -m pytest tests/test_engine.py -v
"""

import pytest

from oracle2dbx.engine import RuleEngine, RuleExecutionFault, convert
from oracle2dbx.rules import (
    ConfigurationError,
    FlaggedForReview,
    Rewritten,
    Rule,
    RuleMatch,
    Severity,
    Unchanged,
)


def upper_rule(name="upper", pattern=r"\bfoo\b", **kwargs):
    return Rule(name, pattern, lambda m: Rewritten(m.text.upper()), **kwargs)


def failing_transform(match):
    raise ValueError("boom")


def failing_finder(pattern, text):
    raise RuntimeError("matcher exploded")


class TestEngineSetup:
    def test_duplicate_names_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            RuleEngine([upper_rule(), upper_rule()])

    def test_non_rule_rejected(self):
        with pytest.raises(ConfigurationError):
            RuleEngine([upper_rule(), "not a rule"])

    def test_rules_are_frozen_in_order(self):
        rules = [upper_rule("a"), upper_rule("b")]
        engine = RuleEngine(rules)
        rules.append(upper_rule("c"))
        assert engine.rule_names == ["a", "b"]


class TestRewriting:
    def test_counts_rewrites(self):
        result = convert("foo bar foo", [upper_rule()])
        assert result.output_text == "FOO bar FOO"
        (entry,) = result.trace
        assert entry.count == 2
        assert entry.severity == Severity.INFO
        assert entry.note == "2 occurrence(s) rewritten"
        assert not result.needs_review

    def test_no_match_no_entry(self):
        result = convert("bar", [upper_rule()])
        assert result.output_text == "bar"
        assert result.trace == []

    def test_each_rule_sees_previous_output(self):
        rules = [
            Rule("first", r"\ba\b", lambda m: Rewritten("b")),
            Rule("second", r"\bb\b", lambda m: Rewritten("c")),
        ]
        assert convert("a", rules).output_text == "c"

    def test_skips_literals_and_comments(self):
        result = convert("foo 'foo' -- foo\n/* foo */ foo", [upper_rule()])
        assert result.output_text == "FOO 'foo' -- foo\n/* foo */ FOO"

    def test_code_only_disabled(self):
        result = convert("'foo'", [upper_rule(code_only=False)])
        assert result.output_text == "'FOO'"

    def test_overlapping_matches_skipped(self):
        def overlapping(pattern, text):
            yield RuleMatch(0, 3, text[0:3])
            yield RuleMatch(2, 5, text[2:5])
        rule = Rule("overlap", "x", lambda m: Rewritten("#"), finder=overlapping)
        result = convert("abcdef", [rule])
        assert result.output_text == "#def"
        assert result.trace[0].count == 1

    def test_unchanged_outcomes_leave_no_entry(self):
        rule = Rule("noop", r"\bfoo\b", lambda m: Unchanged("nothing to do"))
        result = convert("foo foo", [rule])
        assert result.output_text == "foo foo"
        assert result.trace == []

    def test_notes_are_collected_once(self):
        rule = Rule("noted", r"\bfoo\b", lambda m: Rewritten("bar", "renamed"))
        result = convert("foo foo", [rule])
        assert result.trace[0].note == "2 occurrence(s) rewritten; renamed"

    def test_silent_rule_has_no_summary(self):
        result = convert("foo", [upper_rule(silent=True)])
        assert result.output_text == "FOO"
        assert result.trace == []


class TestFlagging:
    def test_flag_marker_keeps_original(self):
        rule = Rule("flagger", r"\bfoo\b", lambda m: FlaggedForReview("check this"))
        result = convert("x foo y", [rule])
        assert result.output_text == "x /* REVIEW[flagger]: check this */ foo y"
        summary, review = result.trace
        assert summary.note == "0 occurrence(s) rewritten, 1 flagged for manual review"
        assert review.severity == Severity.REVIEW
        assert review.line == 1
        assert review.construct == "foo"
        assert result.needs_review

    def test_flag_with_replacement(self):
        rule = Rule("flagger", r"\bfoo\b", lambda m: FlaggedForReview("guess", "bar"))
        assert convert("foo", [rule]).output_text == "/* REVIEW[flagger]: guess */ bar"

    def test_review_severity_turns_rewrite_into_flag(self):
        rule = Rule("seq", r"\bfoo\b", lambda m: Rewritten("bar"),
                    severity=Severity.REVIEW, description="semantics differ")
        result = convert("foo", [rule])
        assert result.output_text == "/* REVIEW[seq]: semantics differ */ bar"
        assert len(result.review_entries) == 1


class TestFaults:
    def test_transform_fault_is_recorded(self):
        rules = [Rule("broken", r"\bfoo\b", failing_transform), upper_rule("after", r"\bbar\b")]
        result = convert("foo bar", rules)
        assert result.output_text == "foo BAR"
        (fault,) = result.fault_entries
        assert fault.rule_name == "broken"
        assert "ValueError: boom" in fault.note
        assert result.entries_for("broken")[0].note == "0 occurrence(s) rewritten, 1 failed"
        assert result.needs_review

    def test_wrong_return_type_is_a_fault(self):
        rule = Rule("bad_return", r"\bfoo\b", lambda m: "FOO")
        result = convert("foo", [rule])
        assert result.output_text == "foo"
        assert "TypeError" in result.fault_entries[0].note

    def test_finder_fault_skips_rule(self):
        rules = [
            Rule("bad_finder", "x", lambda m: Rewritten("y"), finder=failing_finder),
            upper_rule(),
        ]
        result = convert("foo x", rules)
        assert result.output_text == "FOO x"
        (fault,) = result.fault_entries
        assert fault.note.startswith("rule skipped, matcher failed")

    def test_strict_mode_raises(self):
        rule = Rule("broken", r"\bfoo\b", failing_transform)
        with pytest.raises(RuleExecutionFault) as excinfo:
            convert("a\nfoo", [rule], continue_on_error=False)
        assert excinfo.value.rule_name == "broken"
        assert excinfo.value.line == 2
        assert isinstance(excinfo.value.cause, ValueError)
