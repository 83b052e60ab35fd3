"""
Rule model for the Oracle to Databricks rewrite engine.

A rule pairs a regular expression with a transform. The engine asks the
rule's finder for matches in the current buffer, hands each match to the
transform and splices the outcome back into the text.

Transforms return one of three outcomes:

- Rewritten: replace the matched text
- Unchanged: leave the matched text as it is
- FlaggedForReview: prefix an inline review marker, optionally with a
  best-effort replacement
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, Optional, Tuple, Union

from .scanning import find_closing_paren, get_line_number


class ConfigurationError(ValueError):
    """A rule, rule list or configuration file is malformed."""


class Severity(Enum):
    """Severity of a trace entry."""
    INFO = "INFO"
    REVIEW = "REVIEW"
    ERROR = "ERROR"


@dataclass(frozen=True)
class RuleMatch:
    """One located occurrence of a rule's construct."""
    start: int
    end: int
    text: str
    line: int = 1
    groups: Tuple[Optional[str], ...] = ()
    # Text between the parentheses of a matched call; None when unbalanced
    inner: Optional[str] = None
    # Reason the finder already knows the occurrence cannot be rewritten
    problem: Optional[str] = None
    regex_match: Optional[re.Match] = field(default=None, compare=False, repr=False)

    def group(self, index: int) -> Optional[str]:
        """Return capture group ``index`` (1-based), or None."""
        if 1 <= index <= len(self.groups):
            return self.groups[index - 1]
        return None


@dataclass(frozen=True)
class Rewritten:
    text: str
    note: str = ""


@dataclass(frozen=True)
class Unchanged:
    reason: str = ""


@dataclass(frozen=True)
class FlaggedForReview:
    reason: str
    replacement: Optional[str] = None


Outcome = Union[Rewritten, Unchanged, FlaggedForReview]

Finder = Callable[[re.Pattern, str], Iterator[RuleMatch]]


def regex_finder(pattern: re.Pattern, text: str) -> Iterator[RuleMatch]:
    """Yield every regex match of ``pattern`` in ``text``."""
    for m in pattern.finditer(text):
        yield RuleMatch(
            start=m.start(),
            end=m.end(),
            text=m.group(0),
            line=get_line_number(text, m.start()),
            groups=m.groups(),
            regex_match=m,
        )


def call_finder(pattern: re.Pattern, text: str) -> Iterator[RuleMatch]:
    """
    Yield function calls whose name and opening parenthesis match ``pattern``.

    The match is extended to the balanced closing parenthesis. When the call
    never closes, the match covers only the name and ``inner`` is None so the
    transform can flag it.
    """
    for m in pattern.finditer(text):
        open_index = m.end() - 1
        if text[open_index] != '(':
            continue
        close_index = find_closing_paren(text, open_index)
        if close_index is None:
            end = m.end()
            inner = None
        else:
            end = close_index + 1
            inner = text[open_index + 1:close_index]
        yield RuleMatch(
            start=m.start(),
            end=end,
            text=text[m.start():end],
            line=get_line_number(text, m.start()),
            groups=m.groups(),
            inner=inner,
            regex_match=m,
        )


@dataclass(frozen=True)
class Rule:
    """
    A single rewrite rule.

    Attributes:
        name: Unique rule name, shown in the trace and in review markers
        pattern: Regular expression locating the construct
        transform: Function turning a RuleMatch into an Outcome
        severity: REVIEW makes every rewrite of this rule carry a review marker
        description: One-line description for listings
        flags: re flags for the pattern (keywords match case-insensitively)
        finder: Match locator; defaults to plain regex matching
        code_only: Skip matches starting inside literals or comments
        silent: Produce no trace summary
    """
    name: str
    pattern: str
    transform: Callable[[RuleMatch], Outcome]
    severity: Severity = Severity.INFO
    description: str = ""
    flags: int = re.IGNORECASE
    finder: Optional[Finder] = None
    code_only: bool = True
    silent: bool = False
    compiled_pattern: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise ConfigurationError("Rule name must be a non-empty string")
        if not callable(self.transform):
            raise ConfigurationError(f"Rule '{self.name}' has no callable transform")
        if self.severity not in (Severity.INFO, Severity.REVIEW):
            raise ConfigurationError(
                f"Rule '{self.name}' severity must be INFO or REVIEW, got {self.severity}"
            )
        try:
            compiled = re.compile(self.pattern, self.flags)
        except (re.error, TypeError) as e:
            raise ConfigurationError(f"Invalid regex pattern in rule '{self.name}': {e}") from e
        object.__setattr__(self, 'compiled_pattern', compiled)

    def find(self, text: str) -> Iterator[RuleMatch]:
        """Locate this rule's matches in ``text``."""
        finder = self.finder or regex_finder
        return finder(self.compiled_pattern, text)
