"""
End-to-end tests for the converter facade.
Run with:  python -m pytest tests/test_translator.py -v
"""

import pytest

import oracle2dbx
from oracle2dbx import (
    DEFAULT_EXAMPLE,
    OracleToDatabricksConverter,
    RuleExecutionFault,
    convert,
)
from oracle2dbx.custom_rules import ConverterSettings, CustomRulesConfig
from oracle2dbx.report_generator import HEADER_BANNER


class TestScenarios:
    def test_number_precision_scale(self):
        output = convert("NUMBER(10,2)")
        assert "DECIMAL(10,2)" in output.output_text
        entries = output.result.entries_for("number_precision_scale")
        assert [e.severity.value for e in entries] == ["INFO"]
        assert output.result.review_entries == []
        assert "[INFO] number_precision_scale: 1 occurrence(s) rewritten" in output.log_text

    def test_varchar2(self):
        assert "STRING" in convert("VARCHAR2(100)").output_text

    def test_sysdate(self):
        assert "CURRENT_TIMESTAMP()" in convert("SYSDATE").output_text

    def test_nvl(self):
        assert "coalesce(a, b)" in convert("NVL(a, b)").output_text

    def test_nextval(self):
        output = convert("emp_seq.NEXTVAL")
        assert "uuid()" in output.output_text
        assert "/* REVIEW[sequence_nextval]: emp_seq.NEXTVAL" in output.output_text
        assert len(output.result.review_entries) == 1
        assert output.log_text.endswith("needs manual review (1 flagged construct(s)).")

    def test_decode(self):
        output = convert("DECODE(status, 'A', 'Active', 'I', 'Inactive', 'Unknown')")
        assert "/* REVIEW[decode_to_case]:" in output.output_text
        assert "CASE WHEN status = 'A' THEN 'Active'" in output.output_text
        assert len(output.result.review_entries) == 1


class TestDefaultExample:
    def test_example_conversion(self):
        output = convert(DEFAULT_EXAMPLE)
        text = output.output_text
        assert text.count(HEADER_BANNER) == 1
        assert text.startswith(HEADER_BANNER)
        assert "emp_id DECIMAL(10) PRIMARY KEY" in text
        assert "emp_name STRING" in text
        assert "hire_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP()" in text
        assert "salary DECIMAL(10,2)" in text
        assert "notes STRING" in text
        assert "'USING DELTA' after the column list of employees" in text
        assert "coalesce('John Doe', 'Unknown')" in text
        assert "concat(emp_name, ' - ', date_format(hire_date, 'yyyy-MM-dd')) AS emp_info" in text
        assert "CASE WHEN status = 'A' THEN 'Active'" in text
        assert sorted(e.rule_name for e in output.result.review_entries) == [
            "decode_to_case",
            "sequence_nextval",
        ]
        assert output.needs_review

    def test_reconverting_output_keeps_single_banner(self):
        once = convert(DEFAULT_EXAMPLE).output_text
        assert convert(once).output_text.count(HEADER_BANNER) == 1


class TestNeverRaises:
    def test_empty_and_none(self):
        assert convert("").output_text == HEADER_BANNER
        assert convert(None).output_text == HEADER_BANNER

    def test_conservation(self):
        output = convert("SELECT id FROM employees;")
        assert output.output_text == HEADER_BANNER + "SELECT id FROM employees;"
        assert output.result.trace == []
        assert not output.needs_review

    def test_unbalanced_input(self):
        output = convert("SELECT DECODE(a, NVL(b, 'x) FROM t")
        assert output.output_text.startswith(HEADER_BANNER)
        assert output.result.success

    def test_engine_failure_returns_input(self, monkeypatch):
        converter = OracleToDatabricksConverter()

        def broken(text):
            raise RuntimeError("engine exploded")

        monkeypatch.setattr(converter.engine, "convert", broken)
        result = converter.convert("SELECT 1;")
        assert not result.success
        assert result.output_text == HEADER_BANNER + "SELECT 1;"
        assert "engine exploded" in result.error

        output = converter.convert_text("SELECT 1;")
        assert "Conversion failed: RuntimeError: engine exploded" in output.log_text

    def test_strict_mode_raises_rule_faults(self, monkeypatch):
        config = CustomRulesConfig(settings=ConverterSettings(continue_on_error=False))
        converter = OracleToDatabricksConverter(config=config)

        def broken(text):
            raise RuleExecutionFault("sys_guid", ValueError("bad"))

        monkeypatch.setattr(converter.engine, "convert", broken)
        with pytest.raises(RuleExecutionFault):
            converter.convert("SELECT SYS_GUID() FROM dual")


class TestFiles:
    def test_convert_file(self, tmp_path):
        source = tmp_path / "input.sql"
        target = tmp_path / "output.sql"
        source.write_bytes(b"SELECT NVL(a, 0)\r\nFROM t;\r\n")
        result = OracleToDatabricksConverter().convert_file(str(source), str(target))
        expected = HEADER_BANNER + "SELECT coalesce(a, 0)\nFROM t;\n"
        assert result.output_text == expected
        assert target.read_text(encoding="utf-8") == expected

    def test_public_api(self):
        assert oracle2dbx.__version__
        assert "convert" in oracle2dbx.__all__
