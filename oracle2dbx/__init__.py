"""
Oracle to Databricks quick converter

A rule-based rewriter turning Oracle SQL scripts into Databricks SQL, with
inline review markers wherever no faithful automatic rewrite exists.
"""

from .translator import (
    DEFAULT_EXAMPLE,
    ConversionOutput,
    OracleToDatabricksConverter,
    convert,
)
from .engine import ConversionResult, RuleEngine, RuleExecutionFault, TraceEntry
from .rules import (
    ConfigurationError,
    FlaggedForReview,
    Rewritten,
    Rule,
    RuleMatch,
    Severity,
    Unchanged,
)
from .transformations import DEFAULT_RULES, build_default_rules, build_rule_list
from .custom_rules import ConverterSettings, CustomRule, CustomRulesConfig, load_custom_rules
from .report_generator import (
    ConversionReport,
    RenderedReport,
    ReportGenerator,
    check_target_syntax,
    header_banner,
    render,
    review_marker,
)

__version__ = "0.1.0"
__all__ = [
    "DEFAULT_EXAMPLE",
    "ConversionOutput",
    "OracleToDatabricksConverter",
    "convert",
    "ConversionResult",
    "RuleEngine",
    "RuleExecutionFault",
    "TraceEntry",
    "ConfigurationError",
    "FlaggedForReview",
    "Rewritten",
    "Rule",
    "RuleMatch",
    "Severity",
    "Unchanged",
    "DEFAULT_RULES",
    "build_default_rules",
    "build_rule_list",
    "ConverterSettings",
    "CustomRule",
    "CustomRulesConfig",
    "load_custom_rules",
    "ConversionReport",
    "RenderedReport",
    "ReportGenerator",
    "check_target_syntax",
    "header_banner",
    "render",
    "review_marker",
]
