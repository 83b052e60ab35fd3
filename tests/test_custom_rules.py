"""
Tests for the JSON configuration: settings, custom rules and their placement.
Run with:  python -m pytest tests/test_custom_rules.py -v
"""

import json
import re

import pytest

from oracle2dbx import OracleToDatabricksConverter
from oracle2dbx.custom_rules import (
    ConverterSettings,
    CustomRule,
    CustomRulesConfig,
    create_sample_config,
    load_custom_rules,
    parse_config,
    save_sample_config,
    validate_config,
)
from oracle2dbx.report_generator import HEADER_BANNER
from oracle2dbx.rules import ConfigurationError
from oracle2dbx.transformations import build_rule_list


def write_config(tmp_path, data, name="config.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


COALESCE_TO_IFNULL = {
    "name": "coalesce_to_ifnull",
    "pattern": r"\bcoalesce\(",
    "replacement": "ifnull(",
}


class TestSettings:
    def test_defaults(self):
        settings = ConverterSettings()
        assert settings.default_numeric_precision == 38
        assert settings.default_numeric_scale == 0
        assert settings.sequence_replacement == "uuid()"
        assert settings.custom_rules_position == "before"

    @pytest.mark.parametrize("kwargs", [
        {"default_numeric_precision": 39},
        {"default_numeric_precision": 0},
        {"default_numeric_precision": 10, "default_numeric_scale": 11},
        {"sequence_replacement": "  "},
        {"storage_format": "delta lake"},
        {"custom_rules_position": "middle"},
        {"continue_on_error": "false"},
        {"continue_on_error": 0},
    ])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(ConfigurationError):
            ConverterSettings(**kwargs)

    def test_unknown_setting_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown setting"):
            parse_config({"settings": {"numeric_precision": 10}})


class TestCustomRule:
    def test_flags(self):
        rule = CustomRule("r", "x", "y", flags=["IGNORECASE", "m"])
        assert rule.regex_flags == re.IGNORECASE | re.MULTILINE

    def test_unknown_flag(self):
        with pytest.raises(ConfigurationError, match="Unknown regex flag"):
            CustomRule("r", "x", "y", flags=["GLOBAL"])

    def test_invalid_pattern(self):
        with pytest.raises(ConfigurationError, match="Invalid regex"):
            CustomRule("r", "f(", "y")

    def test_replacement_group_out_of_range(self):
        with pytest.raises(ConfigurationError, match="group 2"):
            CustomRule("r", r"f\((\w+)\)", r"g(\2)")

    def test_replacement_unknown_named_group(self):
        with pytest.raises(ConfigurationError, match="unknown group"):
            CustomRule("r", r"f\((?P<arg>\w+)\)", r"g(\g<other>)")

    def test_enabled_rules_by_priority(self):
        config = CustomRulesConfig(rules=[
            CustomRule("low", "a", "b", priority=10),
            CustomRule("off", "a", "b", enabled=False),
            CustomRule("high", "a", "b", priority=200),
        ])
        assert [r.name for r in config.get_enabled_rules()] == ["high", "low"]


class TestLoading:
    def test_load(self, tmp_path):
        path = write_config(tmp_path, {
            "settings": {"storage_format": "PARQUET"},
            "custom_rules": [
                {"name": "my_func", "pattern": r"\bMY_FUNC\(([^)]*)\)", "replacement": r"my_udf(\1)",
                 "flags": ["IGNORECASE"]},
            ],
        })
        config = load_custom_rules(path)
        assert config.source_file == path
        assert config.settings.storage_format == "PARQUET"
        assert [r.name for r in config.rules] == ["my_func"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_custom_rules(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_custom_rules(str(path))

    def test_missing_pattern(self):
        with pytest.raises(ConfigurationError, match="pattern"):
            parse_config({"custom_rules": [{"name": "r", "replacement": "x"}]})

    def test_missing_replacement(self):
        with pytest.raises(ConfigurationError, match="replacement"):
            parse_config({"custom_rules": [{"name": "r", "pattern": "x"}]})

    def test_duplicate_names(self):
        rule = {"name": "r", "pattern": "x", "replacement": "y"}
        with pytest.raises(ConfigurationError, match="Duplicate"):
            parse_config({"custom_rules": [rule, dict(rule)]})

    def test_default_names(self):
        config = parse_config({"custom_rules": [{"pattern": "x", "replacement": "y"}]})
        assert config.rules[0].name == "custom_rule_1"


class TestConversionWithCustomRules:
    def test_custom_rule_applied(self, tmp_path):
        path = write_config(tmp_path, {"custom_rules": [
            {"name": "my_func", "pattern": r"\bMY_FUNC\(([^)]*)\)", "replacement": r"my_udf(\1)",
             "flags": ["IGNORECASE"], "description": "MY_FUNC -> my_udf"},
        ]})
        result = OracleToDatabricksConverter(config_file=path).convert("SELECT my_func(x), 'MY_FUNC(y)' FROM t")
        assert result.output_text == HEADER_BANNER + "SELECT my_udf(x), 'MY_FUNC(y)' FROM t"
        assert result.entries_for("my_func")[0].note == "1 occurrence(s) rewritten; MY_FUNC -> my_udf"

    def test_position_before(self):
        config = parse_config({"custom_rules": [COALESCE_TO_IFNULL]})
        converter = OracleToDatabricksConverter(config=config)
        assert converter.rules[1].name == "coalesce_to_ifnull"
        assert converter.convert("NVL(a, b)").output_text == HEADER_BANNER + "coalesce(a, b)"

    def test_position_after(self):
        config = parse_config({
            "settings": {"custom_rules_position": "after"},
            "custom_rules": [COALESCE_TO_IFNULL],
        })
        converter = OracleToDatabricksConverter(config=config)
        assert converter.rules[-2].name == "coalesce_to_ifnull"
        assert converter.rules[-1].name == "header_banner"
        assert converter.convert("NVL(a, b)").output_text == HEADER_BANNER + "ifnull(a, b)"

    def test_review_rule(self):
        config = parse_config(create_sample_config())
        result = OracleToDatabricksConverter(config=config).convert("SELECT PKG_UTILS.FORMAT_AMOUNT(x, 2) FROM t")
        assert result.output_text == HEADER_BANNER + (
            "SELECT /* REVIEW[flag_pkg_utils_format_amount]: PKG_UTILS.FORMAT_AMOUNT rounding "
            "differs from FORMAT_NUMBER */ FORMAT_NUMBER(x, 2) FROM t"
        )
        assert len(result.review_entries) == 1

    def test_name_collision_with_builtin(self):
        config = parse_config({"custom_rules": [{"name": "number_bare", "pattern": "x", "replacement": "y"}]})
        with pytest.raises(ConfigurationError, match="Duplicate"):
            OracleToDatabricksConverter(config=config)

    def test_disabled_rules_not_in_list(self):
        config = parse_config(create_sample_config())
        names = [rule.name for rule in build_rule_list(config.settings, config.rules)]
        assert "convert_my_company_concat" in names
        assert "replace_schema_prefix" not in names


class TestValidation:
    def test_sample_config_is_valid(self, tmp_path):
        path = str(tmp_path / "oracle2dbx.json")
        save_sample_config(path)
        assert validate_config(path) == (True, [])

    def test_missing_file(self, tmp_path):
        is_valid, errors = validate_config(str(tmp_path / "missing.json"))
        assert not is_valid
        assert "not found" in errors[0]

    def test_name_collision(self, tmp_path):
        path = write_config(tmp_path, {"custom_rules": [
            {"name": "sys_guid", "pattern": "x", "replacement": "y"},
        ]})
        is_valid, errors = validate_config(path)
        assert not is_valid
        assert "sys_guid" in errors[0]
