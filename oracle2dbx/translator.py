"""
Main Oracle to Databricks SQL converter module.

This module provides the primary interface: a converter object wrapping the
rule engine with its configuration, and a ``convert`` function that takes
source text and returns the converted text together with a log.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .custom_rules import ConverterSettings, CustomRulesConfig, load_custom_rules
from .engine import ConversionResult, RuleEngine, RuleExecutionFault
from .report_generator import format_log, header_banner
from .transformations import build_rule_list

logger = logging.getLogger(__name__)

DEFAULT_EXAMPLE = """-- Example Oracle script
CREATE TABLE employees (
  emp_id NUMBER(10) PRIMARY KEY,
  emp_name VARCHAR2(100),
  hire_date DATE DEFAULT SYSDATE,
  salary NUMBER(10,2),
  notes CLOB
);

INSERT INTO employees (emp_id, emp_name, hire_date, salary)
VALUES (emp_seq.NEXTVAL, NVL('John Doe', 'Unknown'), SYSDATE, 5000);

SELECT emp_name || ' - ' || TO_CHAR(hire_date, 'YYYY-MM-DD') AS emp_info,
       DECODE(status, 'A', 'Active', 'I', 'Inactive', 'Unknown') as status_text
FROM employees;
"""


@dataclass
class ConversionOutput:
    """Converted text and the log shown next to it."""
    output_text: str
    log_text: str
    result: Optional[ConversionResult] = None

    @property
    def needs_review(self) -> bool:
        return self.result is None or self.result.needs_review


class OracleToDatabricksConverter:
    """
    Converter for rewriting Oracle SQL as Databricks SQL.

    Example:
        >>> converter = OracleToDatabricksConverter()
        >>> result = converter.convert("SELECT SYSDATE FROM DUAL")
        >>> print(result.output_text)

        # With settings and custom rules
        >>> converter = OracleToDatabricksConverter(config_file="oracle2dbx.json")
    """

    def __init__(
        self,
        config_file: Optional[str] = None,
        config: Optional[CustomRulesConfig] = None,
    ):
        """
        Initialize the converter.

        Args:
            config_file: Optional path to a JSON configuration file
            config: Optional pre-loaded CustomRulesConfig object

        Raises:
            ConfigurationError: If the configuration or a rule is malformed
        """
        if config is None and config_file is not None:
            config = load_custom_rules(config_file)
        self.config = config or CustomRulesConfig()

        settings: ConverterSettings = self.config.settings
        self.engine = RuleEngine(
            build_rule_list(settings, self.config.get_enabled_rules()),
            continue_on_error=settings.continue_on_error,
        )
        if self.config.rules:
            logger.info(
                "Using %d/%d custom rule(s)",
                len(self.config.get_enabled_rules()), len(self.config.rules),
            )

    @property
    def rules(self):
        return self.engine.rules

    def convert(self, sql: str) -> ConversionResult:
        """
        Convert Oracle SQL text.

        Rule faults are recorded in the trace. Anything else going wrong
        yields an unsuccessful result carrying the input below the header.

        Args:
            sql: Oracle SQL text (any number of statements)

        Returns:
            ConversionResult
        """
        try:
            return self.engine.convert(sql)
        except RuleExecutionFault:
            # Only raised in strict mode (continue_on_error disabled)
            raise
        except Exception as e:
            logger.error("Conversion failed: %s: %s", type(e).__name__, e)
            return self._failed(sql, f"{type(e).__name__}: {e}")

    @staticmethod
    def _failed(sql, error: str) -> ConversionResult:
        text = sql if isinstance(sql, str) else ''
        return ConversionResult(
            output_text=header_banner() + text,
            success=False,
            source_text=text,
            error=error,
        )

    def convert_text(self, sql: str) -> ConversionOutput:
        """Convert and return the output text with its log."""
        result = self.convert(sql)
        return ConversionOutput(result.output_text, format_log(result), result)

    def convert_file(self, input_path: str, output_path: Optional[str] = None) -> ConversionResult:
        """
        Convert an Oracle SQL file.

        Args:
            input_path: Path to input Oracle SQL file
            output_path: Optional path to output Databricks SQL file

        Returns:
            ConversionResult for the whole file
        """
        with open(input_path, 'r', encoding='utf-8', newline='') as f:
            script = f.read()

        result = self.convert(script)

        if output_path:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(result.output_text)
            logger.info("Converted SQL written to %s", output_path)

        return result


_default_converter: Optional[OracleToDatabricksConverter] = None


def _get_default_converter() -> OracleToDatabricksConverter:
    global _default_converter
    if _default_converter is None:
        _default_converter = OracleToDatabricksConverter()
    return _default_converter


def convert(source_text: str) -> ConversionOutput:
    """
    Convert Oracle SQL text with the default rules.

    Never raises: on an unexpected failure the output is the input below the
    header banner and the log says why.

    Args:
        source_text: Oracle SQL text

    Returns:
        ConversionOutput(output_text, log_text)
    """
    if source_text is None:
        source_text = ''
    return _get_default_converter().convert_text(source_text)
