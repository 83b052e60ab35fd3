"""
Rule engine for the Oracle to Databricks converter.

The engine applies an ordered rule list to a single text buffer. Each rule
sees the output of the previous one. Matches are spliced left to right and
never overlap; every rule execution that found something leaves a summary
entry in the trace, and every flagged or failed occurrence leaves one more.
"""

import logging
import traceback
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .report_generator import review_marker
from .rules import (
    ConfigurationError,
    FlaggedForReview,
    Rewritten,
    Rule,
    Severity,
    Unchanged,
)
from .scanning import ProtectedRegions, shorten

logger = logging.getLogger(__name__)


class RuleExecutionFault(RuntimeError):
    """A rule's transform or finder raised while converting."""

    def __init__(self, rule_name: str, cause: BaseException, line: Optional[int] = None):
        self.rule_name = rule_name
        self.cause = cause
        self.line = line
        location = f" at line {line}" if line is not None else ""
        super().__init__(f"Rule '{rule_name}' failed{location}: {type(cause).__name__}: {cause}")


@dataclass
class TraceEntry:
    """One record of what a rule did."""
    rule_name: str
    count: int
    note: str
    severity: Severity = Severity.INFO
    line: Optional[int] = None
    construct: Optional[str] = None

    def __str__(self) -> str:
        location = f" (line {self.line})" if self.line is not None else ""
        return f"[{self.severity.value}] {self.rule_name}: {self.note}{location}"


@dataclass
class ConversionResult:
    """Result of running the rule list over one text."""
    output_text: str
    trace: List[TraceEntry] = field(default_factory=list)
    success: bool = True
    source_text: str = ""
    error: Optional[str] = None

    @property
    def review_entries(self) -> List[TraceEntry]:
        return [e for e in self.trace if e.severity == Severity.REVIEW]

    @property
    def fault_entries(self) -> List[TraceEntry]:
        return [e for e in self.trace if e.severity == Severity.ERROR]

    @property
    def needs_review(self) -> bool:
        return not self.success or bool(self.review_entries or self.fault_entries)

    def entries_for(self, rule_name: str) -> List[TraceEntry]:
        return [e for e in self.trace if e.rule_name == rule_name]


def _summary_note(rewritten: int, flagged: int, faults: int, notes: List[str]) -> str:
    parts = [f"{rewritten} occurrence(s) rewritten"]
    if flagged:
        parts.append(f"{flagged} flagged for manual review")
    if faults:
        parts.append(f"{faults} failed")
    summary = ', '.join(parts)
    if notes:
        summary += '; ' + '; '.join(notes)
    return summary


class RuleEngine:
    """
    Applies an ordered list of rules to SQL text.

    Example:
        >>> engine = RuleEngine(DEFAULT_RULES)
        >>> result = engine.convert("CREATE TABLE t (id NUMBER(10));")
        >>> print(result.output_text)
    """

    def __init__(self, rules: Sequence[Rule], continue_on_error: bool = True):
        """
        Initialize the engine.

        Args:
            rules: Rules in application order
            continue_on_error: When False, a failing rule raises
                RuleExecutionFault instead of being recorded in the trace

        Raises:
            ConfigurationError: If an item is not a Rule or a name repeats
        """
        seen = set()
        for rule in rules:
            if not isinstance(rule, Rule):
                raise ConfigurationError(f"Rule list contains a non-rule item: {rule!r}")
            if rule.name in seen:
                raise ConfigurationError(f"Duplicate rule name '{rule.name}' in rule list")
            seen.add(rule.name)

        self.rules = tuple(rules)
        self.continue_on_error = continue_on_error

    @property
    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def convert(self, text: str) -> ConversionResult:
        """
        Run every rule, in order, over ``text``.

        Args:
            text: Source SQL

        Returns:
            ConversionResult with the final text and the trace
        """
        trace: List[TraceEntry] = []
        buffer = text

        for rule in self.rules:
            buffer = self._apply_rule(rule, buffer, trace)

        return ConversionResult(output_text=buffer, trace=trace, source_text=text)

    def _fault(self, rule: Rule, error: Exception, line: Optional[int] = None) -> RuleExecutionFault:
        fault = RuleExecutionFault(rule.name, error, line)
        logger.warning("%s", fault)
        logger.debug("Traceback for rule '%s':\n%s", rule.name,
                     ''.join(traceback.format_exception(type(error), error, error.__traceback__)))
        return fault

    def _apply_rule(self, rule: Rule, buffer: str, trace: List[TraceEntry]) -> str:
        """Apply one rule and return the new buffer."""
        try:
            matches = list(rule.find(buffer))
        except Exception as e:
            fault = self._fault(rule, e)
            if not self.continue_on_error:
                raise fault from e
            trace.append(TraceEntry(
                rule_name=rule.name,
                count=0,
                note=f"rule skipped, matcher failed: {type(e).__name__}: {e}",
                severity=Severity.ERROR,
            ))
            return buffer

        regions = ProtectedRegions(buffer) if rule.code_only and matches else None
        pieces = []
        cursor = 0
        rewritten = flagged = faults = 0
        notes: List[str] = []
        entries: List[TraceEntry] = []

        for match in matches:
            if match.start < cursor:
                continue
            if regions is not None and regions.contains(match.start):
                continue

            try:
                outcome = rule.transform(match)
                if not isinstance(outcome, (Rewritten, Unchanged, FlaggedForReview)):
                    raise TypeError(f"transform returned {type(outcome).__name__}, not an outcome")
            except Exception as e:
                fault = self._fault(rule, e, match.line)
                if not self.continue_on_error:
                    raise fault from e
                faults += 1
                entries.append(TraceEntry(
                    rule_name=rule.name,
                    count=1,
                    note=f"occurrence left unchanged: {type(e).__name__}: {e}",
                    severity=Severity.ERROR,
                    line=match.line,
                    construct=shorten(match.text),
                ))
                continue

            if isinstance(outcome, Unchanged):
                continue

            if isinstance(outcome, Rewritten) and rule.severity == Severity.REVIEW:
                outcome = FlaggedForReview(outcome.note or rule.description, outcome.text)

            if isinstance(outcome, FlaggedForReview):
                kept = match.text if outcome.replacement is None else outcome.replacement
                replacement = f"{review_marker(rule.name, outcome.reason)} {kept}"
                flagged += 1
                entries.append(TraceEntry(
                    rule_name=rule.name,
                    count=1,
                    note=outcome.reason,
                    severity=Severity.REVIEW,
                    line=match.line,
                    construct=shorten(match.text),
                ))
            else:
                replacement = outcome.text
                rewritten += 1
                if outcome.note and outcome.note not in notes:
                    notes.append(outcome.note)

            pieces.append(buffer[cursor:match.start])
            pieces.append(replacement)
            cursor = match.end

        if not pieces:
            output = buffer
        else:
            pieces.append(buffer[cursor:])
            output = ''.join(pieces)

        handled = rewritten + flagged + faults
        if handled and not rule.silent:
            note = _summary_note(rewritten, flagged, faults, notes)
            trace.append(TraceEntry(rule_name=rule.name, count=handled, note=note))
            logger.debug("%s: %s", rule.name, note)
        trace.extend(entries)

        return output


def convert(text: str, rules: Sequence[Rule], continue_on_error: bool = True) -> ConversionResult:
    """Functional form of RuleEngine(rules).convert(text)."""
    return RuleEngine(rules, continue_on_error=continue_on_error).convert(text)
