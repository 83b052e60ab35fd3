"""
Conversion reporting for the Oracle to Databricks converter.

This module owns everything the user reads besides the converted SQL itself:
the header banner and inline review markers written into the output, the
changelog rendered from a conversion trace, and the text/JSON conversion
reports printed by the command line tool.
"""

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import sqlglot
from sqlglot.errors import SqlglotError

from .rules import Severity
from .scanning import get_line_number, split_statements

logger = logging.getLogger(__name__)

STATUS_CLEAN = "clean"
STATUS_NEEDS_REVIEW = "needs manual review"
STATUS_FAILED = "failed"

HEADER_BANNER = (
    "/* Converted by Oracle->Databricks quick converter\n"
    "   - This is an automated conversion. Please REVIEW manually.\n"
    "   - PL/SQL blocks, complex DECODE, and sequence semantics may need manual rewrite.\n"
    "*/\n"
    "\n"
)

MARKER_PREFIX = "/* REVIEW["


def header_banner() -> str:
    """Return the fixed comment block placed at the top of every output."""
    return HEADER_BANNER


def review_marker(rule_name: str, reason: str) -> str:
    """
    Build the inline comment placed in front of a construct needing review.

    Comment openers and terminators inside the reason are broken up so the marker
    always stays a single well-formed comment.
    """
    text = ' '.join(str(reason).split()).replace('*/', '* /').replace('/*', '/ *')
    return f"{MARKER_PREFIX}{rule_name}]: {text} */"


def format_entry(entry) -> str:
    """Format one trace entry as a changelog line."""
    line = f"[{entry.severity.value}] {entry.rule_name}: {entry.note}"
    if entry.line is not None:
        line += f" (line {entry.line})"
    return line


@dataclass
class RenderedReport:
    """What the caller displays after a conversion."""
    display_output: str
    changelog: str
    status: str
    flagged_count: int = 0

    @property
    def is_clean(self) -> bool:
        return self.status == STATUS_CLEAN


def _flagged_count(trace) -> int:
    return sum(1 for entry in trace if entry.severity in (Severity.REVIEW, Severity.ERROR))


def render(result) -> RenderedReport:
    """
    Render a ConversionResult for display.

    Args:
        result: ConversionResult produced by the engine

    Returns:
        RenderedReport with the output text, the changelog (one line per
        trace entry, in application order) and the run status
    """
    flagged = _flagged_count(result.trace)
    if not result.success:
        status = STATUS_FAILED
    elif flagged:
        status = STATUS_NEEDS_REVIEW
    else:
        status = STATUS_CLEAN

    return RenderedReport(
        display_output=result.output_text,
        changelog='\n'.join(format_entry(entry) for entry in result.trace),
        status=status,
        flagged_count=flagged,
    )


def format_log(result) -> str:
    """Build the log text returned next to the converted SQL."""
    rendered = render(result)
    lines = ["Starting conversion..."]
    if rendered.changelog:
        lines.append(rendered.changelog)

    if rendered.status == STATUS_FAILED:
        lines.append(f"Conversion failed: {result.error}")
        lines.append("Input returned unchanged below the header.")
    elif rendered.status == STATUS_NEEDS_REVIEW:
        lines.append(
            f"Conversion complete: {STATUS_NEEDS_REVIEW} "
            f"({rendered.flagged_count} flagged construct(s))."
        )
    else:
        lines.append(f"Conversion complete: {STATUS_CLEAN}.")

    return '\n'.join(lines)


def check_target_syntax(output_text: str) -> List[str]:
    """
    Parse each converted statement with sqlglot's Databricks dialect.

    Args:
        output_text: Converted SQL script

    Returns:
        One message per statement that fails to parse (empty when all parse)
    """
    problems = []

    for number, (start, end) in enumerate(split_statements(output_text), start=1):
        statement = output_text[start:end]
        try:
            sqlglot.parse(statement, read="databricks")
        except SqlglotError as e:
            message = str(e).splitlines()[0] if str(e) else type(e).__name__
            line = get_line_number(output_text, start + len(statement) - len(statement.lstrip()))
            problems.append(f"Statement {number} (line {line}): {message}")
            logger.debug("Statement %d does not parse as Databricks SQL: %s", number, e)

    return problems


@dataclass
class ConversionReport:
    """Summary of one conversion run."""
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    source_file: Optional[str] = None
    status: str = STATUS_CLEAN
    success: bool = True
    error: Optional[str] = None

    # Occurrences handled per rule, in application order
    rule_counts: Dict[str, int] = field(default_factory=dict)

    flagged_items: List[Dict[str, Any]] = field(default_factory=list)
    fault_items: List[Dict[str, Any]] = field(default_factory=list)

    # Filled only when a syntax check was requested
    syntax_errors: List[str] = field(default_factory=list)
    syntax_checked: bool = False

    @property
    def total_occurrences(self) -> int:
        return sum(self.rule_counts.values())

    @property
    def total_flagged(self) -> int:
        return len(self.flagged_items)

    @property
    def flagged_by_rule(self) -> Dict[str, int]:
        return dict(Counter(item['rule'] for item in self.flagged_items))


class ReportGenerator:
    """
    Generator for conversion reports.

    Example:
        >>> generator = ReportGenerator()
        >>> report = generator.build_report(result, source_file='schema.sql')
        >>> generator.print_report(report, output_format='text')
    """

    # Report width for text formatting
    REPORT_WIDTH = 100

    def build_report(self, result, source_file: Optional[str] = None,
                     syntax_errors: Optional[List[str]] = None) -> ConversionReport:
        """
        Build a report from a ConversionResult.

        Args:
            result: ConversionResult to summarise
            source_file: Optional name of the converted file
            syntax_errors: Output of check_target_syntax, when it was run

        Returns:
            ConversionReport
        """
        rendered = render(result)
        report = ConversionReport(
            source_file=source_file,
            status=rendered.status,
            success=result.success,
            error=result.error,
        )

        for entry in result.trace:
            if entry.severity == Severity.INFO:
                report.rule_counts[entry.rule_name] = (
                    report.rule_counts.get(entry.rule_name, 0) + entry.count
                )
                continue
            item = {
                'rule': entry.rule_name,
                'line': entry.line,
                'reason': entry.note,
                'construct': entry.construct,
            }
            if entry.severity == Severity.REVIEW:
                report.flagged_items.append(item)
            else:
                report.fault_items.append(item)

        if syntax_errors is not None:
            report.syntax_checked = True
            report.syntax_errors = list(syntax_errors)

        return report

    def print_report(self, report: ConversionReport, output_format: str = 'text',
                     output_file: Optional[str] = None):
        """
        Print the conversion report in the specified format.

        Args:
            report: ConversionReport to print
            output_format: 'text' or 'json'
            output_file: Optional file path to write the report
        """
        if output_format == 'json':
            output = self.format_json(report)
        else:
            output = self.format_text(report)

        if output_file:
            with open(output_file, 'w', encoding='utf-8') as f:
                f.write(output)
            print(f"Report written to: {output_file}")
        else:
            print(output)

    def format_json(self, report: ConversionReport) -> str:
        report_dict = {
            'timestamp': report.timestamp,
            'source_file': report.source_file,
            'status': report.status,
            'success': report.success,
            'error': report.error,
            'summary': {
                'occurrences_handled': report.total_occurrences,
                'flagged_for_review': report.total_flagged,
                'rule_faults': len(report.fault_items),
            },
            'rules': report.rule_counts,
            'flagged_by_rule': report.flagged_by_rule,
            'flagged_items': report.flagged_items,
            'fault_items': report.fault_items,
        }
        if report.syntax_checked:
            report_dict['syntax_errors'] = report.syntax_errors
        return json.dumps(report_dict, indent=2)

    def _section(self, lines: List[str], title: str):
        width = self.REPORT_WIDTH
        lines.append("┌" + "─" * width + "┐")
        lines.append("│" + f" {title} ".center(width) + "│")
        lines.append("└" + "─" * width + "┘")

    @staticmethod
    def _location(item: Dict[str, Any]) -> str:
        return f"line {item['line']}" if item['line'] is not None else "-"

    def format_text(self, report: ConversionReport) -> str:
        width = self.REPORT_WIDTH
        lines = [
            "",
            "╔" + "═" * width + "╗",
            "║" + " ORACLE TO DATABRICKS CONVERSION REPORT ".center(width) + "║",
            "╚" + "═" * width + "╝",
            f"  Generated: {report.timestamp}",
        ]
        if report.source_file:
            lines.append(f"  Source:    {report.source_file}")
        lines.append("")

        self._section(lines, "CONVERSION SUMMARY")
        lines.append(f"  Status:                       {report.status}")
        lines.append(f"  Occurrences handled:          {report.total_occurrences:>8}")
        lines.append(f"  ⚠ Flagged for review:         {report.total_flagged:>8}")
        lines.append(f"  ✗ Rule faults:                {len(report.fault_items):>8}")
        if report.error:
            lines.append(f"  Error: {report.error}")
        lines.append("")

        if report.rule_counts:
            self._section(lines, "RULES APPLIED")
            lines.append(f"  {'Rule':<40} {'Occurrences':>12} {'Flagged':>10}")
            lines.append("  " + "─" * 64)
            flagged_by_rule = report.flagged_by_rule
            for rule_name, count in report.rule_counts.items():
                lines.append(
                    f"  {rule_name[:40]:<40} {count:>12} {flagged_by_rule.get(rule_name, 0):>10}"
                )
            lines.append("")

        if report.flagged_items:
            self._section(lines, "CONSTRUCTS NEEDING MANUAL REVIEW")
            for item in report.flagged_items:
                lines.append(f"  ⚠ [{item['rule']}] {self._location(item)}: {item['reason']}")
                if item.get('construct'):
                    lines.append(f"      {item['construct']}")
            lines.append("")

        if report.fault_items:
            self._section(lines, "RULE FAULTS")
            for item in report.fault_items:
                lines.append(f"  ✗ [{item['rule']}] {self._location(item)}: {item['reason']}")
            lines.append("")

        if report.syntax_checked:
            self._section(lines, "DATABRICKS SYNTAX CHECK")
            if report.syntax_errors:
                lines.extend(f"  ✗ {message}" for message in report.syntax_errors)
            else:
                lines.append("  ✓ All statements parse as Databricks SQL")
            lines.append("")

        return '\n'.join(lines)


def build_conversion_report(result, source_file: Optional[str] = None,
                            syntax_errors: Optional[List[str]] = None) -> ConversionReport:
    """Build a report with a default ReportGenerator."""
    return ReportGenerator().build_report(result, source_file, syntax_errors)


def print_conversion_report(report: ConversionReport, output_format: str = 'text',
                            output_file: Optional[str] = None):
    """Print or write a report with a default ReportGenerator."""
    ReportGenerator().print_report(report, output_format, output_file)
