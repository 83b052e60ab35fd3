"""
Configuration and custom rules for Oracle to Databricks conversion.

A JSON configuration file tunes the built-in rules and adds custom
regex-based rules for in-house Oracle functions and conventions the default
rules do not cover. Custom rules run through the same engine as the built-in
ones: they skip string literals and comments, appear in the trace, and can be
marked for manual review.

Example JSON configuration:
{
  "settings": {
    "default_numeric_precision": 18,
    "sequence_replacement": "monotonically_increasing_id()",
    "custom_rules_position": "after"
  },
  "custom_rules": [
    {
      "name": "hr_fmt_name",
      "description": "HR_UTIL.FMT_NAME(first, last) -> concat_ws(' ', first, last)",
      "pattern": "\\bHR_UTIL\\.FMT_NAME\\s*\\(\\s*([^,]+?)\\s*,\\s*([^)]+?)\\s*\\)",
      "replacement": "concat_ws(' ', \\1, \\2)",
      "flags": ["IGNORECASE"],
      "priority": 10
    }
  ]
}

Omitted settings keep their defaults; omitted rule fields default to
enabled, priority 100, no flags and no review.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .format_mappings import (
    DEFAULT_NUMERIC_PRECISION,
    DEFAULT_NUMERIC_SCALE,
    MAX_DECIMAL_PRECISION,
)
from .rules import ConfigurationError

logger = logging.getLogger(__name__)

FLAG_MAPPING = {
    'IGNORECASE': re.IGNORECASE,
    'I': re.IGNORECASE,
    'MULTILINE': re.MULTILINE,
    'M': re.MULTILINE,
    'DOTALL': re.DOTALL,
    'S': re.DOTALL,
    'VERBOSE': re.VERBOSE,
    'X': re.VERBOSE,
}

CUSTOM_RULES_POSITIONS = ('before', 'after')

# Group references in a replacement template: \1 or \g<name> / \g<1>
_GROUP_REFERENCE = re.compile(r"\\(?:(\d+)|g<([^>]*)>)")


@dataclass
class ConverterSettings:
    """Tunable parameters of the built-in rules."""
    default_numeric_precision: int = DEFAULT_NUMERIC_PRECISION
    default_numeric_scale: int = DEFAULT_NUMERIC_SCALE
    sequence_replacement: str = "uuid()"
    storage_format: str = "DELTA"
    custom_rules_position: str = "before"
    continue_on_error: bool = True

    def __post_init__(self):
        precision = self.default_numeric_precision
        scale = self.default_numeric_scale
        if not isinstance(precision, int) or not 1 <= precision <= MAX_DECIMAL_PRECISION:
            raise ConfigurationError(
                f"default_numeric_precision must be an integer between 1 and {MAX_DECIMAL_PRECISION}"
            )
        if not isinstance(scale, int) or not 0 <= scale <= precision:
            raise ConfigurationError("default_numeric_scale must be an integer between 0 and the precision")
        if not self.sequence_replacement or not str(self.sequence_replacement).strip():
            raise ConfigurationError("sequence_replacement must not be empty")
        if not re.fullmatch(r"[A-Za-z]+", str(self.storage_format)):
            raise ConfigurationError(f"storage_format must be a single word, got '{self.storage_format}'")
        if self.custom_rules_position not in CUSTOM_RULES_POSITIONS:
            raise ConfigurationError(
                f"Unknown custom_rules_position '{self.custom_rules_position}' (use 'before' or 'after')"
            )
        if not isinstance(self.continue_on_error, bool):
            raise ConfigurationError(
                f"continue_on_error must be true or false, got {self.continue_on_error!r}"
            )


@dataclass
class CustomRule:
    """
    A regex substitution configured in JSON.

    The replacement is an ``re`` template (``\\1``, ``\\g<name>``). With
    ``review`` set the substitution is still made but the result carries a
    review marker explaining ``reason``.
    """
    name: str
    pattern: str
    replacement: str
    description: str = ""
    flags: List[str] = field(default_factory=list)
    enabled: bool = True
    priority: int = 100
    review: bool = False
    reason: str = ""

    def __post_init__(self):
        self.regex = self._compile()
        self._check_group_references()

    @property
    def regex_flags(self) -> int:
        combined = 0
        for flag in self.flags:
            key = str(flag).upper()
            if key not in FLAG_MAPPING:
                raise ConfigurationError(f"Unknown regex flag '{flag}' in rule '{self.name}'")
            combined |= FLAG_MAPPING[key]
        return combined

    def _compile(self) -> re.Pattern:
        try:
            return re.compile(self.pattern, self.regex_flags)
        except (re.error, TypeError) as e:
            raise ConfigurationError(f"Invalid regex pattern in rule '{self.name}': {e}") from e

    def _check_group_references(self) -> None:
        if not isinstance(self.replacement, str):
            raise ConfigurationError(f"Replacement of rule '{self.name}' must be a string")
        group_count = self.regex.groups
        for number, name in _GROUP_REFERENCE.findall(self.replacement):
            index = number or (name if name.isdigit() else None)
            if index is not None:
                if int(index) > group_count:
                    raise ConfigurationError(
                        f"Rule '{self.name}' replacement refers to group {index}, "
                        f"but the pattern has {group_count}"
                    )
            elif name not in self.regex.groupindex:
                raise ConfigurationError(f"Rule '{self.name}' replacement refers to unknown group '{name}'")


@dataclass
class CustomRulesConfig:
    """Settings plus custom rules, as read from one configuration file."""
    rules: List[CustomRule] = field(default_factory=list)
    settings: ConverterSettings = field(default_factory=ConverterSettings)
    source_file: Optional[str] = None

    def get_enabled_rules(self) -> List[CustomRule]:
        """Enabled rules, highest priority first; ties keep file order."""
        return sorted((r for r in self.rules if r.enabled), key=lambda r: -r.priority)


def load_custom_rules(config_path: str) -> CustomRulesConfig:
    """
    Read and parse a JSON configuration file.

    Args:
        config_path: Path to the JSON configuration file

    Returns:
        CustomRulesConfig with the settings and every rule, enabled or not

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the JSON, a setting or a rule is malformed
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in configuration file '{config_path}': {e}") from e

    config = parse_config(config_data, source_file=str(path))
    logger.info("Loaded %d custom rule(s) from %s", len(config.rules), path)
    return config


# Optional rule fields and their defaults
_RULE_DEFAULTS = {
    'description': '',
    'flags': (),
    'enabled': True,
    'priority': 100,
    'review': False,
    'reason': '',
}


def _parse_settings(settings_data) -> ConverterSettings:
    if not isinstance(settings_data, dict):
        raise ConfigurationError("'settings' must be a JSON object")
    unknown = sorted(set(settings_data) - set(ConverterSettings.__dataclass_fields__))
    if unknown:
        raise ConfigurationError(f"Unknown setting(s): {', '.join(unknown)}")
    return ConverterSettings(**settings_data)


def _parse_rule(position: int, rule_data) -> CustomRule:
    if not isinstance(rule_data, dict):
        raise ConfigurationError(f"Rule {position} must be a JSON object")
    for required in ('pattern', 'replacement'):
        if required not in rule_data:
            raise ConfigurationError(f"Rule {position} is missing required '{required}' field")

    options = {key: rule_data.get(key, default) for key, default in _RULE_DEFAULTS.items()}
    return CustomRule(
        name=rule_data.get('name', f'custom_rule_{position}'),
        pattern=rule_data['pattern'],
        replacement=rule_data['replacement'],
        **options,
    )


def parse_config(config_data: Dict[str, Any], source_file: Optional[str] = None) -> CustomRulesConfig:
    """
    Build a CustomRulesConfig from already decoded JSON.

    Unknown settings are rejected; unknown top-level keys (such as a
    free-text "description") are ignored.

    Raises:
        ConfigurationError: If a setting or rule is malformed
    """
    if not isinstance(config_data, dict):
        raise ConfigurationError("Configuration must be a JSON object")

    settings = _parse_settings(config_data.get('settings', {}))

    rules_data = config_data.get('custom_rules', [])
    if not isinstance(rules_data, list):
        raise ConfigurationError("'custom_rules' must be a JSON array")

    rules = []
    for position, rule_data in enumerate(rules_data, start=1):
        rule = _parse_rule(position, rule_data)
        if any(existing.name == rule.name for existing in rules):
            raise ConfigurationError(f"Duplicate custom rule name '{rule.name}'")
        rules.append(rule)

    return CustomRulesConfig(rules=rules, settings=settings, source_file=source_file)


def create_sample_config() -> Dict[str, Any]:
    """Return a starter configuration with every setting and a few example rules."""
    return {
        "description": "Settings and custom rules for Oracle to Databricks SQL conversion",
        "settings": {
            "default_numeric_precision": DEFAULT_NUMERIC_PRECISION,
            "default_numeric_scale": DEFAULT_NUMERIC_SCALE,
            "sequence_replacement": "uuid()",
            "storage_format": "DELTA",
            "custom_rules_position": "before",
            "continue_on_error": True
        },
        "custom_rules": [
            {
                "name": "convert_my_company_concat",
                "description": "In-house MY_COMPANY_CONCAT(a, b, c) becomes concat(a, b, c)",
                "pattern": r"\bMY_COMPANY_CONCAT\s*\(\s*([^,()]+?)\s*,\s*([^,()]+?)\s*,\s*([^,()]+?)\s*\)",
                "replacement": r"concat(\1, \2, \3)",
                "flags": ["IGNORECASE"],
                "priority": 100
            },
            {
                "name": "convert_get_employee_name",
                "description": "GET_EMPLOYEE_NAME(id) calls the catalog function main.hr.get_employee_name",
                "pattern": r"\bGET_EMPLOYEE_NAME\s*\(",
                "replacement": "main.hr.get_employee_name(",
                "flags": ["IGNORECASE"],
                "enabled": False,
                "priority": 90
            },
            {
                "name": "replace_schema_prefix",
                "description": "LEGACY_DW. schema prefix becomes dw_catalog.reporting.",
                "pattern": r"\bLEGACY_DW\.",
                "replacement": "dw_catalog.reporting.",
                "flags": ["IGNORECASE"],
                "enabled": False,
                "priority": 50
            },
            {
                "name": "flag_pkg_utils_format_amount",
                "description": "PKG_UTILS.FORMAT_AMOUNT(x, d) becomes FORMAT_NUMBER(x, d)",
                "pattern": r"\bPKG_UTILS\.FORMAT_AMOUNT\s*\(\s*([^,()]+?)\s*,\s*([^,()]+?)\s*\)",
                "replacement": r"FORMAT_NUMBER(\1, \2)",
                "flags": ["IGNORECASE"],
                "priority": 80,
                "review": True,
                "reason": "PKG_UTILS.FORMAT_AMOUNT rounding differs from FORMAT_NUMBER"
            }
        ]
    }


def save_sample_config(output_path: str) -> None:
    """Write the starter configuration as indented JSON."""
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(create_sample_config(), f, indent=2, ensure_ascii=False)
    logger.info("Sample configuration saved to %s", output_path)


def validate_config(config_path: str) -> Tuple[bool, List[str]]:
    """
    Check that a configuration file loads and yields a usable rule list.

    Returns:
        (is_valid, errors); errors is empty when the file is valid
    """
    try:
        config = load_custom_rules(config_path)
    except (FileNotFoundError, ConfigurationError) as e:
        return False, [str(e)]

    # Custom rule names must not collide with the built-in ones
    from .engine import RuleEngine
    from .transformations import build_rule_list
    try:
        RuleEngine(build_rule_list(config.settings, config.rules))
    except ConfigurationError as e:
        return False, [str(e)]

    return True, []
