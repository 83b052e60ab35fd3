"""
Lexical helpers for the Oracle to Databricks rewriter.

The rewrite rules operate on raw text rather than on a parse tree, so they
share a handful of quote and comment aware primitives:

- locating string literals, quoted identifiers and comments
- matching parentheses
- splitting an argument list on top-level commas
- finding statement boundaries
"""

import bisect
import re
from typing import List, Optional, Tuple

import sqlglot
from sqlglot.errors import SqlglotError
from sqlglot.tokens import TokenType


Span = Tuple[int, int]

_OPENERS = (TokenType.L_PAREN, TokenType.L_BRACKET)
_CLOSERS = (TokenType.R_PAREN, TokenType.R_BRACKET)


class UnbalancedExpression(ValueError):
    """Raised when an expression cannot be split safely."""


def get_line_number(text: str, position: int) -> int:
    """Return the 1-based line number of a character position."""
    return text.count('\n', 0, position) + 1


_ALTERNATIVE_QUOTE = re.compile(r"[nN]?[qQ]'(\S)")
_ALTERNATIVE_CLOSERS = {'[': ']', '(': ')', '{': '}', '<': '>'}


def _is_name_char(char: str) -> bool:
    return char.isalnum() or char in '_$#'


def alternative_quote_at(sql: str, i: int) -> Optional[re.Match]:
    """Match an Oracle ``q'X...X'`` / ``nq'X...X'`` literal prefix at ``i``."""
    if i > 0 and _is_name_char(sql[i - 1]):
        return None
    return _ALTERNATIVE_QUOTE.match(sql, i)


def skip_quoted(sql: str, i: int) -> int:
    """
    Return the index just past the quoted run starting at ``i``.

    The run is a '...' literal, a "..." identifier, or an alternative-quote
    literal such as q'[it's]' whose body ends at the closing delimiter
    followed by a quote.
    """
    alternative = alternative_quote_at(sql, i)
    if alternative:
        opener = alternative.group(1)
        closer = _ALTERNATIVE_CLOSERS.get(opener, opener) + "'"
        end = sql.find(closer, alternative.end())
        return len(sql) if end == -1 else end + 2

    quote_char = sql[i]
    length = len(sql)
    i += 1
    while i < length:
        if sql[i] == quote_char:
            i += 1
            # Doubled quote is an escaped quote in Oracle
            if i < length and sql[i] == quote_char:
                i += 1
                continue
            return i
        i += 1
    return length


def skip_literal(sql: str, i: int) -> Optional[int]:
    """Return the index just past a literal or quoted identifier starting at ``i``, or None."""
    if sql[i] in ("'", '"') or alternative_quote_at(sql, i):
        return skip_quoted(sql, i)
    return None


def skip_comment(sql: str, i: int) -> Optional[int]:
    """Return the index just past a comment starting at ``i``, or None."""
    if sql.startswith('--', i):
        end = sql.find('\n', i)
        return len(sql) if end == -1 else end
    if sql.startswith('/*', i):
        end = sql.find('*/', i + 2)
        return len(sql) if end == -1 else end + 2
    return None


def protected_spans(sql: str) -> List[Span]:
    """
    Locate the spans of a SQL text that rewrite rules must not touch.

    Handles:
    - String literals and double-quoted identifiers (with doubled-quote escapes)
    - Alternative-quote literals such as q'[...]' and nq'{...}'
    - Single-line comments starting with --
    - Multi-line comments enclosed in /* */

    An unterminated literal or comment runs to the end of the text.

    Args:
        sql: SQL text

    Returns:
        Ordered list of half-open (start, end) spans
    """
    spans = []
    i = 0
    length = len(sql)

    while i < length:
        end = skip_literal(sql, i)
        if end is not None:
            spans.append((i, end))
            i = end
            continue
        end = skip_comment(sql, i)
        if end is not None:
            spans.append((i, end))
            i = end
            continue
        i += 1

    return spans


class ProtectedRegions:
    """Position lookup over the literal and comment spans of one buffer."""

    def __init__(self, sql: str):
        self.spans = protected_spans(sql)
        self._starts = [start for start, _ in self.spans]

    def contains(self, position: int) -> bool:
        idx = bisect.bisect_right(self._starts, position) - 1
        return idx >= 0 and position < self.spans[idx][1]


def find_closing_paren(sql: str, open_index: int) -> Optional[int]:
    """
    Find the parenthesis closing the one at ``open_index``.

    Parentheses inside literals and comments are ignored.

    Returns:
        Index of the matching ')' or None when the text ends first
    """
    depth = 0
    i = open_index
    length = len(sql)

    while i < length:
        char = sql[i]
        end = skip_literal(sql, i)
        if end is None:
            end = skip_comment(sql, i)
        if end is not None:
            i = end
            continue
        if char == '(':
            depth += 1
        elif char == ')':
            depth -= 1
            if depth == 0:
                return i
        i += 1

    return None


def statement_end(sql: str, start: int) -> int:
    """
    Return the index just past the statement that begins at ``start``.

    The statement ends after the first ';' found at parenthesis depth zero
    outside literals and comments, or at the end of the text.
    """
    depth = 0
    i = start
    length = len(sql)

    while i < length:
        char = sql[i]
        end = skip_literal(sql, i)
        if end is None:
            end = skip_comment(sql, i)
        if end is not None:
            i = end
            continue
        if char == '(':
            depth += 1
        elif char == ')':
            depth = max(depth - 1, 0)
        elif char == ';' and depth == 0:
            return i + 1
        i += 1

    return length


def split_statements(sql: str) -> List[Span]:
    """
    Split a script into statement spans.

    Each span covers the statement text including its terminating ';'.
    Spans holding only whitespace are dropped.
    """
    spans = []
    position = 0
    length = len(sql)

    while position < length:
        end = statement_end(sql, position)
        if sql[position:end].strip():
            spans.append((position, end))
        position = end

    return spans


def _mask_alternative_quotes(text: str) -> str:
    """Replace each q'...' literal with a plain literal of the same length."""
    pieces = []
    position = 0
    i = 0

    while i < len(text):
        end = skip_literal(text, i)
        if end is None:
            end = skip_comment(text, i)
        if end is None:
            i += 1
            continue
        if alternative_quote_at(text, i):
            pieces.append(text[position:i])
            pieces.append("'" + 'x' * (end - i - 2) + "'")
            position = end
        i = end

    pieces.append(text[position:])
    return ''.join(pieces)


def split_arguments(text: str) -> List[str]:
    """
    Split a function argument list on its top-level commas.

    The text is tokenized with sqlglot's Oracle tokenizer, so commas inside
    nested calls, parenthesized expressions and string literals never split
    an argument. Argument text is returned exactly as written (stripped).

    Args:
        text: Text between the call's parentheses

    Returns:
        List of argument strings (empty for an empty argument list)

    Raises:
        UnbalancedExpression: If the text cannot be tokenized or its
            brackets do not balance
    """
    if not text.strip():
        return []

    try:
        tokens = sqlglot.tokenize(_mask_alternative_quotes(text), read="oracle")
    except SqlglotError as e:
        raise UnbalancedExpression(f"cannot tokenize argument list: {e}") from e

    arguments = []
    depth = 0
    start = 0

    for token in tokens:
        if token.token_type in _OPENERS:
            depth += 1
        elif token.token_type in _CLOSERS:
            depth -= 1
            if depth < 0:
                raise UnbalancedExpression("unexpected closing bracket in argument list")
        elif token.token_type == TokenType.COMMA and depth == 0:
            arguments.append(text[start:token.start].strip())
            start = token.end + 1

    if depth != 0:
        raise UnbalancedExpression("unclosed bracket in argument list")

    arguments.append(text[start:].strip())
    return arguments


_STRING_LITERAL = re.compile(r"^'((?:[^']|'')*)'$", re.DOTALL)


def string_literal_value(text: str) -> Optional[str]:
    """Return the value of a single-quoted literal, or None if ``text`` is not one."""
    match = _STRING_LITERAL.match(text.strip())
    if not match:
        return None
    return match.group(1).replace("''", "'")


def shorten(text: str, limit: int = 60) -> str:
    """Collapse whitespace and truncate for log and report lines."""
    flat = ' '.join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[:limit - 3] + '...'
