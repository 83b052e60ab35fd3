"""
Rewrite rules for Oracle to Databricks SQL conversion.

This module contains the transform functions for each Oracle construct the
converter knows about, the finders that locate constructs a plain regex
cannot delimit (operator chains, statements), and the ordered default rule
list.

Rule order is part of the converter's behavior. In particular the
NUMBER(p,s) rule must run before the bare NUMBER rule, otherwise a
declaration such as ``NUMBER\\n(10,2)`` loses its precision.
"""

import bisect
import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .custom_rules import ConverterSettings, CustomRule
from .format_mappings import (
    LOB_TYPE_MAPPINGS,
    MAX_DECIMAL_PRECISION,
    convert_oracle_date_format,
    is_numeric_format,
    iso_target_function,
)
from .report_generator import HEADER_BANNER, header_banner
from .rules import (
    ConfigurationError,
    FlaggedForReview,
    Rewritten,
    Rule,
    RuleMatch,
    Severity,
    Unchanged,
    call_finder,
)
from .scanning import (
    ProtectedRegions,
    UnbalancedExpression,
    skip_comment,
    skip_literal,
    get_line_number,
    split_arguments,
    statement_end,
    string_literal_value,
)


# ==========================================
# SQL TOKENS
# ==========================================

@dataclass(frozen=True)
class Token:
    """A coarse SQL token used by the chain and clause finders."""
    kind: str  # 'word', 'str', 'comment', 'lparen', 'rparen', 'concat', 'punct'
    start: int
    end: int
    text: str

    @property
    def upper(self) -> str:
        return self.text.upper()


_WORD_CHARS = re.compile(r"[\w$#.:@]+")

# Words that can never be an operand of ||
OPERAND_KEYWORDS = frozenset({
    'SELECT', 'FROM', 'WHERE', 'CASE', 'WHEN', 'THEN', 'ELSE', 'END', 'AND',
    'OR', 'NOT', 'AS', 'IS', 'IN', 'ON', 'BY', 'SET', 'VALUES', 'INTO',
    'RETURN', 'LIKE', 'BETWEEN', 'DISTINCT', 'UNION', 'ALL', 'HAVING',
    'GROUP', 'ORDER', 'JOIN', 'USING', 'BEGIN', 'DECLARE', 'IF', 'LOOP',
})

ARITHMETIC_OPERATORS = frozenset('+-*/%')

# Keywords that close a FROM clause
FROM_CLAUSE_TERMINATORS = frozenset({
    'WHERE', 'GROUP', 'ORDER', 'HAVING', 'CONNECT', 'START', 'UNION',
    'INTERSECT', 'MINUS', 'FETCH', 'MODEL', 'WINDOW', 'QUALIFY',
})


def tokenize_sql(text: str) -> List[Token]:
    """
    Split SQL text into coarse tokens.

    Literals and comments are single tokens, so nothing inside them is ever
    taken for an operator or a parenthesis.
    """
    tokens = []
    i = 0
    length = len(text)

    while i < length:
        char = text[i]
        if char.isspace():
            i += 1
            continue
        end = skip_literal(text, i)
        if end is not None:
            tokens.append(Token('str', i, end, text[i:end]))
            i = end
            continue
        end = skip_comment(text, i)
        if end is not None:
            tokens.append(Token('comment', i, end, text[i:end]))
            i = end
            continue
        if text.startswith('||', i):
            tokens.append(Token('concat', i, i + 2, '||'))
            i += 2
            continue
        if char == '(':
            tokens.append(Token('lparen', i, i + 1, char))
            i += 1
            continue
        if char == ')':
            tokens.append(Token('rparen', i, i + 1, char))
            i += 1
            continue
        word = _WORD_CHARS.match(text, i)
        if word:
            tokens.append(Token('word', i, word.end(), word.group(0)))
            i = word.end()
            continue
        tokens.append(Token('punct', i, i + 1, char))
        i += 1

    return tokens


def match_parentheses(tokens: Sequence[Token]) -> Dict[int, int]:
    """Map each paired parenthesis token index to its partner's index."""
    pairs = {}
    stack = []
    for index, token in enumerate(tokens):
        if token.kind == 'lparen':
            stack.append(index)
        elif token.kind == 'rparen' and stack:
            opener = stack.pop()
            pairs[opener] = index
            pairs[index] = opener
    return pairs


class _LineIndex:
    """Line lookup for character positions of one text."""

    def __init__(self, text: str):
        self._newlines = [i for i, char in enumerate(text) if char == '\n']

    def line(self, position: int) -> int:
        return bisect.bisect_left(self._newlines, position) + 1


# ==========================================
# CONCATENATION CHAINS
# ==========================================

@dataclass
class ConcatChain:
    """One ``a || b || ...`` chain."""
    start: int
    end: int
    operands: List[Tuple[int, int]]
    problem: Optional[str] = None


def _code_tokens(tokens: Sequence[Token]) -> List[Token]:
    return [t for t in tokens if t.kind != 'comment']


def _operand_end(tokens, index, pairs) -> Optional[int]:
    """Index of the last token of the operand that starts at ``index``."""
    if index >= len(tokens):
        return None
    token = tokens[index]
    if token.kind == 'str':
        return index
    if token.kind == 'lparen':
        return pairs.get(index)
    if token.kind == 'word':
        if index + 1 < len(tokens) and tokens[index + 1].kind == 'lparen':
            return pairs.get(index + 1)
        return index
    return None


def _operand_start(tokens, index, pairs) -> Optional[int]:
    """Index of the first token of the operand that ends at ``index``."""
    if index < 0:
        return None
    token = tokens[index]
    if token.kind in ('str', 'word'):
        return index
    if token.kind == 'rparen':
        opener = pairs.get(index)
        if opener is None:
            return None
        if opener > 0 and tokens[opener - 1].kind == 'word' and \
                tokens[opener - 1].upper not in OPERAND_KEYWORDS:
            return opener - 1
        return opener
    return None


def find_concat_chains(text: str) -> List[ConcatChain]:
    """
    Locate the outermost ``||`` chains of a text.

    A chain is a run of operands joined by ``||``. An operand is a literal, an
    identifier, a function call or a parenthesized expression. Chains that
    cannot be rewritten mechanically carry a ``problem``: a missing operand,
    a keyword operand, an arithmetic neighbor (precedence differs), a comment
    between operands, or a chain spanning several lines.
    """
    all_tokens = tokenize_sql(text)
    tokens = _code_tokens(all_tokens)
    comment_starts = [t.start for t in all_tokens if t.kind == 'comment']
    pairs = match_parentheses(tokens)
    lines = _LineIndex(text)
    chains = []
    i = 0

    while i < len(tokens):
        if tokens[i].kind != 'concat':
            i += 1
            continue

        problem = None
        first = _operand_start(tokens, i - 1, pairs)
        if first is None:
            chains.append(ConcatChain(tokens[i].start, tokens[i].end, [],
                                      "concatenation operator without a left operand"))
            i += 1
            continue

        operands = [(first, i - 1)]
        op_index = i
        while op_index < len(tokens) and tokens[op_index].kind == 'concat':
            right_first = op_index + 1
            right_last = _operand_end(tokens, right_first, pairs)
            if right_last is None:
                problem = "concatenation operator without a right operand"
                break
            operands.append((right_first, right_last))
            op_index = right_last + 1

        last_token = operands[-1][1] if problem is None else op_index
        start = tokens[first].start
        end = tokens[last_token].end

        if problem is None:
            for first_idx, last_idx in operands:
                if first_idx == last_idx and tokens[first_idx].kind == 'word' and \
                        tokens[first_idx].upper in OPERAND_KEYWORDS:
                    problem = f"keyword {tokens[first_idx].upper} used as a concatenation operand"
                    break
        if problem is None:
            before = tokens[first - 1] if first > 0 else None
            after = tokens[last_token + 1] if last_token + 1 < len(tokens) else None
            for neighbor in (before, after):
                if neighbor is not None and neighbor.kind == 'punct' and \
                        neighbor.text in ARITHMETIC_OPERATORS:
                    problem = "arithmetic operator next to the chain; operator precedence differs from concat()"
                    break
        if problem is None and lines.line(start) != lines.line(end - 1):
            problem = "concatenation chain continues across lines"
        if problem is None:
            k = bisect.bisect_left(comment_starts, start)
            if k < len(comment_starts) and comment_starts[k] < end:
                problem = "comment inside concatenation chain"

        spans = [(tokens[a].start, tokens[b].end) for a, b in operands]
        chains.append(ConcatChain(start, end, spans, problem))
        i = last_token + 1

    # A chain inside a parenthesized operand is found before the chain holding it
    chains.sort(key=lambda c: (c.start, -c.end))
    outermost = []
    for chain in chains:
        if outermost and chain.start < outermost[-1].end:
            continue
        outermost.append(chain)
    return outermost


def rewrite_concat_chains(text: str) -> str:
    """Rewrite every chain in ``text`` that has no problem, leaving the rest."""
    pieces = []
    cursor = 0
    for chain in find_concat_chains(text):
        if chain.problem is not None:
            continue
        pieces.append(text[cursor:chain.start])
        pieces.append(_concat_call(text, chain))
        cursor = chain.end
    pieces.append(text[cursor:])
    return ''.join(pieces)


def _concat_call(text: str, chain: ConcatChain) -> str:
    operands = [rewrite_concat_chains(text[a:b].strip()) for a, b in chain.operands]
    return f"concat({', '.join(operands)})"


def concat_chain_finder(pattern: re.Pattern, text: str) -> Iterator[RuleMatch]:
    """Yield the outermost ``||`` chains of ``text``."""
    for chain in find_concat_chains(text):
        yield RuleMatch(
            start=chain.start,
            end=chain.end,
            text=text[chain.start:chain.end],
            line=get_line_number(text, chain.start),
            groups=tuple(text[a:b] for a, b in chain.operands),
            problem=chain.problem,
        )


# ==========================================
# STATEMENT FINDERS
# ==========================================

STORAGE_ADVISORY_PREFIX = "/* Suggestion: Consider using 'USING "

_STORAGE_CLAUSE = re.compile(
    r"\bUSING\s+(?:DELTA|PARQUET|CSV|JSON|ORC|AVRO|TEXT|ICEBERG)\b", re.IGNORECASE
)

_OUTER_JOIN_MARK = re.compile(r"\(\s*\+\s*\)")


def create_table_finder(pattern: re.Pattern, text: str) -> Iterator[RuleMatch]:
    """
    Yield whole CREATE TABLE statements that lack a storage clause.

    Statements already followed by the storage advisory are skipped.
    """
    position = 0
    while True:
        m = pattern.search(text, position)
        if not m:
            return
        end = statement_end(text, m.start())
        position = max(end, m.end())
        statement = text[m.start():end]
        code = ' '.join(t.text for t in tokenize_sql(statement) if t.kind not in ('comment', 'str'))
        if _STORAGE_CLAUSE.search(code):
            continue
        if text[end:].lstrip().startswith(STORAGE_ADVISORY_PREFIX):
            continue
        yield RuleMatch(
            start=m.start(),
            end=end,
            text=statement,
            line=get_line_number(text, m.start()),
            groups=m.groups(),
            regex_match=m,
        )


def has_comma_joined_from(statement: str) -> bool:
    """Return True if a FROM clause of the statement lists tables separated by commas."""
    tokens = _code_tokens(tokenize_sql(statement))
    for index, token in enumerate(tokens):
        if token.kind != 'word' or token.upper != 'FROM':
            continue
        depth = 0
        for follower in tokens[index + 1:]:
            if follower.kind == 'lparen':
                depth += 1
            elif follower.kind == 'rparen':
                if depth == 0:
                    break
                depth -= 1
            elif depth == 0:
                if follower.kind == 'word' and follower.upper in FROM_CLAUSE_TERMINATORS:
                    break
                if follower.kind == 'punct' and follower.text == ';':
                    break
                if follower.kind == 'punct' and follower.text == ',':
                    return True
    return False


def outer_join_finder(pattern: re.Pattern, text: str) -> Iterator[RuleMatch]:
    """Yield ``(+)`` markers inside statements with a comma-separated FROM list."""
    position = 0
    length = len(text)
    while position < length:
        end = statement_end(text, position)
        statement = text[position:end]
        if _OUTER_JOIN_MARK.search(statement) and has_comma_joined_from(statement):
            for m in pattern.finditer(text, position, end):
                yield RuleMatch(
                    start=m.start(),
                    end=m.end(),
                    text=m.group(0),
                    line=get_line_number(text, m.start()),
                    groups=m.groups(),
                    regex_match=m,
                )
        position = end


# One sequence name part: a plain or a double-quoted identifier
_SEQUENCE_NAME_PART = r'(?:"(?:[^"]|"")+"|[A-Za-z_][\w$#]*)'


def sequence_pattern(pseudo_column: str) -> str:
    """Pattern for ``[schema.]sequence.<pseudo_column>``, quoted name parts included."""
    return rf'(?<![\w$#"])({_SEQUENCE_NAME_PART}(?:\.{_SEQUENCE_NAME_PART})?)\.{pseudo_column}\b'


def sequence_finder(pattern: re.Pattern, text: str) -> Iterator[RuleMatch]:
    """
    Yield sequence references whose pseudo-column sits in code.

    A quoted name part is itself a protected span, so the check is made on
    the pseudo-column and on the name's first character instead.
    """
    regions = ProtectedRegions(text)
    for m in pattern.finditer(text):
        if regions.contains(m.end(1)):
            continue
        if regions.contains(m.start()) and text[m.start()] != '"':
            continue
        yield RuleMatch(
            start=m.start(),
            end=m.end(),
            text=m.group(0),
            line=get_line_number(text, m.start()),
            groups=m.groups(),
            regex_match=m,
        )


def header_finder(pattern: re.Pattern, text: str) -> Iterator[RuleMatch]:
    """Yield existing banners, plus an insertion point when none opens the text."""
    existing = list(pattern.finditer(text))
    if not existing or existing[0].start() != 0:
        yield RuleMatch(start=0, end=0, text='', line=1)
    for m in existing:
        yield RuleMatch(start=m.start(), end=m.end(), text=m.group(0),
                        line=get_line_number(text, m.start()), regex_match=m)


# ==========================================
# TRANSFORMS
# ==========================================

def _split_call(match: RuleMatch) -> List[str]:
    """Split a matched call's arguments; raises UnbalancedExpression."""
    if match.inner is None:
        raise UnbalancedExpression("call has no closing parenthesis")
    return split_arguments(match.inner)


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class OracleTransformations:
    """Collection of transforms for Oracle-specific constructs."""

    @staticmethod
    def normalize_line_endings(match: RuleMatch):
        return Rewritten('\n', "line endings normalized to LF")

    @staticmethod
    def number_precision_scale(match: RuleMatch):
        """NUMBER(p,s) -> DECIMAL(p,s), NUMBER(p) -> DECIMAL(p)."""
        precision, scale = match.group(1), match.group(2)
        if precision == '*':
            precision = str(MAX_DECIMAL_PRECISION)

        if int(precision) == 0 or int(precision) > MAX_DECIMAL_PRECISION:
            return FlaggedForReview(f"precision {precision} is outside DECIMAL's 1..38 range")
        if scale is None:
            return Rewritten(f"DECIMAL({precision})", "NUMBER(p) mapped to DECIMAL(p)")
        if int(scale) < 0:
            return FlaggedForReview(
                f"negative scale {scale} rounds left of the decimal point; DECIMAL has no equivalent"
            )
        if int(scale) > int(precision):
            return FlaggedForReview(f"scale {scale} exceeds precision {precision}; DECIMAL requires scale <= precision")
        return Rewritten(f"DECIMAL({precision},{scale})", "NUMBER(p,s) mapped to DECIMAL(p,s)")

    @staticmethod
    def bounded_string(match: RuleMatch):
        return Rewritten("STRING", "character length bounds dropped; STRING is unbounded")

    @staticmethod
    def large_object(match: RuleMatch):
        key = ' '.join(match.text.upper().split())
        if key.startswith('RAW'):
            key = 'RAW'
        target = LOB_TYPE_MAPPINGS[key]
        return Rewritten(target, "large object and raw types mapped to STRING/BINARY")

    @staticmethod
    def date_to_timestamp(match: RuleMatch):
        return Rewritten(
            "TIMESTAMP",
            "DATE mapped to TIMESTAMP since Oracle DATE carries a time of day; narrow to DATE manually where only the day matters",
        )

    @staticmethod
    def current_timestamp(match: RuleMatch):
        return Rewritten("CURRENT_TIMESTAMP()", "SYSDATE/SYSTIMESTAMP mapped to CURRENT_TIMESTAMP()")

    @staticmethod
    def nvl_to_coalesce(match: RuleMatch):
        return Rewritten("coalesce(", "NVL mapped to coalesce")

    @staticmethod
    def to_date_format(match: RuleMatch):
        """TO_DATE with an ISO format becomes TO_DATE/TO_TIMESTAMP without a format."""
        try:
            args = _split_call(match)
        except UnbalancedExpression as e:
            return FlaggedForReview(f"TO_DATE arguments could not be split: {e}")

        if len(args) == 1:
            return Unchanged("single-argument TO_DATE is already valid")
        if len(args) != 2:
            return FlaggedForReview("TO_DATE with NLS parameters; rewrite manually")

        expr, fmt_arg = args
        fmt = string_literal_value(fmt_arg)
        if fmt is None:
            return FlaggedForReview("TO_DATE format is not a string literal")

        target = iso_target_function(fmt)
        if target is not None:
            return Rewritten(f"{target}({expr})", "TO_DATE with ISO format mapped to the single-argument form")

        converted, unknown = convert_oracle_date_format(fmt)
        reason = f"TO_DATE format '{fmt}' is not ISO; Databricks pattern would be '{converted}'"
        if unknown:
            reason += f" (unmapped elements: {', '.join(unknown)})"
        return FlaggedForReview(reason)

    @staticmethod
    def to_char_format(match: RuleMatch):
        """TO_CHAR(expr, 'fmt') -> date_format(expr, 'pattern')."""
        try:
            args = _split_call(match)
        except UnbalancedExpression as e:
            return FlaggedForReview(f"TO_CHAR arguments could not be split: {e}")

        if len(args) == 1:
            return Rewritten(f"CAST({args[0]} AS STRING)", "TO_CHAR(x) mapped to CAST(x AS STRING)")
        if len(args) != 2:
            return FlaggedForReview("TO_CHAR with NLS parameters; rewrite manually")

        expr, fmt_arg = args
        fmt = string_literal_value(fmt_arg)
        if fmt is None:
            return FlaggedForReview("TO_CHAR format is not a string literal")
        if is_numeric_format(fmt):
            return FlaggedForReview(f"numeric format mask '{fmt}'; use format_number or format_string")

        converted, unknown = convert_oracle_date_format(fmt)
        replacement = f"date_format({expr}, {_quote(converted)})"
        if unknown:
            return FlaggedForReview(
                f"format elements {', '.join(unknown)} have no Databricks equivalent and were kept as written",
                replacement,
            )
        return Rewritten(replacement, "TO_CHAR datetime format mapped to date_format pattern")

    @staticmethod
    def decode_to_case(match: RuleMatch):
        """DECODE(subject, v1, r1, ..., default) -> CASE WHEN ... END."""
        try:
            args = _split_call(match)
        except UnbalancedExpression as e:
            return FlaggedForReview(f"DECODE arguments could not be split: {e}")

        if len(args) < 3:
            return FlaggedForReview(f"DECODE needs at least 3 arguments, found {len(args)}")

        subject = args[0]
        pairs = args[1:]
        default = pairs.pop() if len(pairs) % 2 == 1 else None

        parts = ["CASE"]
        for search, result in zip(pairs[0::2], pairs[1::2]):
            if search.upper() == 'NULL':
                parts.append(f"WHEN {subject} IS NULL THEN {result}")
            else:
                parts.append(f"WHEN {subject} = {search} THEN {result}")
        if default is not None:
            parts.append(f"ELSE {default}")
        parts.append("END")

        return FlaggedForReview(
            "DECODE rewritten as CASE; DECODE treats NULL as equal to NULL, CASE = does not",
            ' '.join(parts),
        )

    @staticmethod
    def nvl2_to_case(match: RuleMatch):
        try:
            args = _split_call(match)
        except UnbalancedExpression as e:
            return FlaggedForReview(f"NVL2 arguments could not be split: {e}")
        if len(args) != 3:
            return FlaggedForReview(f"NVL2 needs 3 arguments, found {len(args)}")
        expr, if_not_null, if_null = args
        return Rewritten(
            f"CASE WHEN {expr} IS NOT NULL THEN {if_not_null} ELSE {if_null} END",
            "NVL2 mapped to CASE",
        )

    @staticmethod
    def concat_operator(match: RuleMatch):
        """a || b || c -> concat(a, b, c)."""
        if match.problem is not None:
            return FlaggedForReview(match.problem)
        operands = [rewrite_concat_chains(operand.strip()) for operand in match.groups]
        return Rewritten(f"concat({', '.join(operands)})", "|| chains mapped to concat()")

    @staticmethod
    def sequence_currval(match: RuleMatch):
        return FlaggedForReview(
            f"{match.group(1)}.CURRVAL has no Databricks equivalent; keep the generated value in a variable or column"
        )

    @staticmethod
    def sys_guid(match: RuleMatch):
        return Rewritten("uuid()", "SYS_GUID() mapped to uuid()")

    @staticmethod
    def outer_join(match: RuleMatch):
        return FlaggedForReview("Oracle (+) outer join; rewrite as an explicit LEFT/RIGHT OUTER JOIN")

    @staticmethod
    def header(match: RuleMatch):
        if match.start == 0:
            return Rewritten(header_banner())
        return Rewritten('')


def _bare_number(settings: ConverterSettings):
    target = f"DECIMAL({settings.default_numeric_precision},{settings.default_numeric_scale})"

    def transform(match: RuleMatch):
        return Rewritten(target, f"bare NUMBER mapped to {target}")

    return transform


def _sequence_nextval(settings: ConverterSettings):
    replacement = settings.sequence_replacement

    def transform(match: RuleMatch):
        return Rewritten(
            replacement,
            f"{match.group(1)}.NEXTVAL replaced with {replacement}; numeric sequence semantics are not preserved",
        )

    return transform


def _storage_advisory(settings: ConverterSettings):
    storage = settings.storage_format.upper()

    def transform(match: RuleMatch):
        name = match.group(1)
        after_name = match.text[match.regex_match.end() - match.start:].lstrip()
        if after_name.startswith('('):
            place = f"after the column list of {name}"
        else:
            place = f"after the table name {name}"
        advisory = f"{STORAGE_ADVISORY_PREFIX}{storage}' {place} for a Databricks managed table */"
        return Rewritten(f"{match.text}\n{advisory}", f"storage advisory added for USING {storage}")

    return transform


# ==========================================
# RULE LISTS
# ==========================================

def build_default_rules(settings: Optional[ConverterSettings] = None) -> Tuple[Rule, ...]:
    """
    Build the default rule list in application order.

    Args:
        settings: Converter settings (numeric defaults, sequence replacement,
            storage format); defaults apply when omitted

    Returns:
        Tuple of rules
    """
    settings = settings or ConverterSettings()
    T = OracleTransformations

    return (
        Rule("normalize_line_endings", r"\r\n?", T.normalize_line_endings,
             description="CRLF and CR line endings become LF", flags=0, code_only=False),
        Rule("number_precision_scale", r"\bNUMBER\s*\(\s*(\d+|\*)\s*(?:,\s*(-?\d+)\s*)?\)",
             T.number_precision_scale,
             description="NUMBER(p,s) -> DECIMAL(p,s)"),
        Rule("number_bare", r"\bNUMBER\b(?![ \t]*\()", _bare_number(settings),
             description="bare NUMBER -> default DECIMAL"),
        Rule("bounded_strings",
             r"\b(?:N?VARCHAR2?|N?CHAR)\s*\(\s*\d+\s*(?:BYTE|CHAR)?\s*\)",
             T.bounded_string,
             description="VARCHAR2(n)/CHAR(n) and national variants -> STRING"),
        Rule("large_objects", r"\b(?:LONG\s+RAW|N?CLOB|BLOB|LONG)\b|\bRAW\s*\(\s*\d+\s*\)",
             T.large_object,
             description="CLOB/NCLOB/LONG -> STRING, BLOB/RAW/LONG RAW -> BINARY"),
        Rule("date_to_timestamp", r"\bDATE\b(?!\s*[('])", T.date_to_timestamp,
             description="DATE type -> TIMESTAMP (DATE '...' literals kept)"),
        Rule("current_timestamp", r"\bSYS(?:DATE|TIMESTAMP)\b", T.current_timestamp,
             description="SYSDATE/SYSTIMESTAMP -> CURRENT_TIMESTAMP()"),
        Rule("nvl_to_coalesce", r"\bNVL\s*\(", T.nvl_to_coalesce,
             description="NVL( -> coalesce("),
        Rule("to_date_format", r"\bTO_DATE\s*\(", T.to_date_format,
             description="TO_DATE with ISO format -> TO_DATE/TO_TIMESTAMP", finder=call_finder),
        Rule("to_char_format", r"\bTO_CHAR\s*\(", T.to_char_format,
             description="TO_CHAR(x, fmt) -> date_format(x, pattern)", finder=call_finder),
        Rule("decode_to_case", r"\bDECODE\s*\(", T.decode_to_case,
             description="DECODE -> CASE WHEN (flagged)", finder=call_finder),
        Rule("nvl2_to_case", r"\bNVL2\s*\(", T.nvl2_to_case,
             description="NVL2 -> CASE WHEN ... IS NOT NULL", finder=call_finder),
        Rule("concat_operator", r"\|\|", T.concat_operator,
             description="a || b -> concat(a, b)", finder=concat_chain_finder, code_only=False),
        Rule("sequence_nextval", sequence_pattern("NEXTVAL"),
             _sequence_nextval(settings), severity=Severity.REVIEW,
             description=f"seq.NEXTVAL -> {settings.sequence_replacement} (flagged)",
             finder=sequence_finder, code_only=False),
        Rule("sequence_currval", sequence_pattern("CURRVAL"),
             T.sequence_currval, description="seq.CURRVAL (flagged)",
             finder=sequence_finder, code_only=False),
        Rule("sys_guid", r"\bSYS_GUID\s*\(\s*\)", T.sys_guid,
             description="SYS_GUID() -> uuid()"),
        Rule("create_table_storage",
             r"\bCREATE\s+(?:OR\s+REPLACE\s+)?(?:GLOBAL\s+TEMPORARY\s+)?TABLE\s+([\w$#.\"]+)",
             _storage_advisory(settings),
             description=f"CREATE TABLE without USING -> advisory for USING {settings.storage_format.upper()}",
             finder=create_table_finder),
        Rule("oracle_outer_join", r"[\w$#]+(?:\.[\w$#]+)*\s*\(\s*\+\s*\)", T.outer_join,
             description="col(+) in comma joins (flagged)", finder=outer_join_finder),
        Rule("header_banner", re.escape(HEADER_BANNER), T.header,
             description="prepend the review header", flags=0, finder=header_finder,
             code_only=False, silent=True),
    )


DEFAULT_RULES = build_default_rules()

# Type rules are safe to re-apply to their own output
TYPE_RULE_NAMES = (
    "number_precision_scale",
    "number_bare",
    "bounded_strings",
    "large_objects",
)


def custom_rule_to_rule(custom: CustomRule) -> Rule:
    """Turn a configured regex substitution into an engine rule."""
    replacement = custom.replacement
    note = custom.description or f"custom rule {custom.name} applied"

    if custom.review:
        reason = custom.reason or custom.description or "custom rule requires review"

        def transform(match: RuleMatch):
            return FlaggedForReview(reason, match.regex_match.expand(replacement))
    else:
        def transform(match: RuleMatch):
            return Rewritten(match.regex_match.expand(replacement), note)

    return Rule(
        name=custom.name,
        pattern=custom.pattern,
        transform=transform,
        description=custom.description,
        flags=custom.regex_flags,
    )


def build_rule_list(settings: Optional[ConverterSettings] = None,
                    custom_rules: Sequence[CustomRule] = ()) -> Tuple[Rule, ...]:
    """
    Assemble the full rule list, custom rules included.

    Custom rules go right after line-ending normalization ('before') or right
    before the header banner ('after'), highest priority first.

    Raises:
        ConfigurationError: If the position setting is unknown
    """
    settings = settings or ConverterSettings()
    defaults = list(build_default_rules(settings))
    extra = [custom_rule_to_rule(c) for c in sorted(custom_rules, key=lambda c: -c.priority) if c.enabled]

    if settings.custom_rules_position == 'before':
        position = 1
    elif settings.custom_rules_position == 'after':
        position = len(defaults) - 1
    else:
        raise ConfigurationError(
            f"Unknown custom_rules_position '{settings.custom_rules_position}' (use 'before' or 'after')"
        )

    return tuple(defaults[:position] + extra + defaults[position:])
