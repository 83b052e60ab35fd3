#!/usr/bin/env python3
"""
Oracle to Databricks quick converter - Command Line Interface

Usage:
    python ora2dbx.py convert <input_file> [--output <output_file>] [--config <config_file>] [--report] [--check]
    python ora2dbx.py inline "SQL statement" [--config <config_file>]
    python ora2dbx.py example
    python ora2dbx.py rules [--config <config_file>]
    python ora2dbx.py init-config [--output <config_file>]
    python ora2dbx.py validate-config <config_file>

Exit status: 0 when the conversion is clean, 1 when constructs need manual
review or the conversion failed, 2 on configuration errors.
"""

import argparse
import logging
import sys
from pathlib import Path

from oracle2dbx import (
    DEFAULT_EXAMPLE,
    ConfigurationError,
    OracleToDatabricksConverter,
    Severity,
    check_target_syntax,
    load_custom_rules,
    render,
)
from oracle2dbx.custom_rules import save_sample_config, validate_config
from oracle2dbx.report_generator import build_conversion_report, print_conversion_report

EXIT_CLEAN = 0
EXIT_NEEDS_REVIEW = 1
EXIT_CONFIG_ERROR = 2


def print_banner():
    """Print the application banner."""
    banner = """
╔═══════════════════════════════════════════════════════════════════╗
║           Oracle to Databricks quick converter                    ║
╚═══════════════════════════════════════════════════════════════════╝
"""
    print(banner)


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s: [%(levelname)s] %(message)s',
        stream=sys.stderr,
    )


def build_converter(args) -> OracleToDatabricksConverter:
    """Create the converter, loading the optional configuration file."""
    config_file = getattr(args, 'config', None)
    return OracleToDatabricksConverter(config_file=config_file)


def print_changelog(result, verbose: bool = False):
    """Print the status line, plus the changelog in verbose mode, to stderr."""
    rendered = render(result)
    if verbose and rendered.changelog:
        print("-- Changelog:", file=sys.stderr)
        for line in rendered.changelog.split('\n'):
            print(f"--   {line}", file=sys.stderr)
    if rendered.is_clean:
        print("-- ✓ Conversion clean", file=sys.stderr)
    elif not result.success:
        print(f"-- ✗ Conversion failed: {result.error}", file=sys.stderr)
    else:
        print(f"-- ⚠ Needs manual review: {rendered.flagged_count} flagged construct(s)", file=sys.stderr)
    return rendered


def convert_file(args):
    """Convert an Oracle SQL file."""
    input_path = Path(args.input_file)
    if not input_path.exists():
        print(f"Error: Input file '{input_path}' not found.", file=sys.stderr)
        return EXIT_NEEDS_REVIEW

    try:
        converter = build_converter(args)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    result = converter.convert_file(str(input_path), args.output)

    if args.output:
        print(f"✓ Converted SQL written to: {args.output}", file=sys.stderr)
    else:
        print(result.output_text)

    rendered = print_changelog(result, args.verbose)

    syntax_errors = None
    if args.check:
        syntax_errors = check_target_syntax(result.output_text)
        if syntax_errors:
            print(f"-- ⚠ {len(syntax_errors)} statement(s) do not parse as Databricks SQL", file=sys.stderr)
            for message in syntax_errors:
                print(f"--   {message}", file=sys.stderr)

    if args.report:
        report = build_conversion_report(result, str(input_path), syntax_errors)
        print_conversion_report(report, args.report_format, args.report_output)

    return EXIT_CLEAN if rendered.is_clean else EXIT_NEEDS_REVIEW


def translate_inline(args):
    """Convert inline SQL from the command line."""
    try:
        converter = build_converter(args)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    result = converter.convert(args.sql)
    print(result.output_text)
    rendered = print_changelog(result, args.verbose)
    return EXIT_CLEAN if rendered.is_clean else EXIT_NEEDS_REVIEW


def show_example(args):
    """Convert and print the built-in example script."""
    output = OracleToDatabricksConverter().convert_text(DEFAULT_EXAMPLE)
    print("-- Oracle input:")
    print(DEFAULT_EXAMPLE)
    print("-- Databricks output:")
    print(output.output_text)
    print(output.log_text)
    return EXIT_CLEAN if not output.needs_review else EXIT_NEEDS_REVIEW


def list_rules(args):
    """List the active rules in application order."""
    try:
        converter = build_converter(args)
    except (ConfigurationError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    for position, rule in enumerate(converter.rules, start=1):
        flag = " [review]" if rule.severity == Severity.REVIEW else ""
        print(f"  {position:>2}. {rule.name:<24} {rule.description}{flag}")
    return EXIT_CLEAN


def init_config(args):
    """Generate a sample configuration file."""
    output_path = args.output

    try:
        output_dir = Path(output_path).parent
        if output_dir and not output_dir.exists():
            output_dir.mkdir(parents=True, exist_ok=True)

        save_sample_config(output_path)
        print(f"\n✓ Configuration file created: {output_path}")
        print("\nThis file contains the converter settings and example custom rules.")
        print("Edit the file to add your own in-house function conversions.")
        print("\nUsage:")
        print(f"  python ora2dbx.py convert input.sql -o output.sql --config {output_path}")
        return EXIT_CLEAN
    except OSError as e:
        print(f"Error creating configuration file: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


def validate_config_cmd(args):
    """Validate a configuration file and summarise what it would change."""
    config_path = args.config_file
    print(f"Checking {config_path}")

    is_valid, errors = validate_config(config_path)
    if not is_valid:
        print("\n✗ Configuration is invalid:")
        for error in errors:
            print(f"  • {error}")
        return EXIT_CONFIG_ERROR

    config = load_custom_rules(config_path)
    enabled_rules = config.get_enabled_rules()
    settings = config.settings

    print("\n✓ Configuration is valid")
    print(f"  {len(enabled_rules)} of {len(config.rules)} custom rule(s) enabled, "
          f"applied {settings.custom_rules_position} the built-in rules")
    for rule in enabled_rules:
        suffix = " [review]" if rule.review else ""
        print(f"    {rule.priority:>3}  {rule.name}{suffix}")

    print(f"  NUMBER without precision -> DECIMAL({settings.default_numeric_precision},"
          f"{settings.default_numeric_scale})")
    print(f"  Sequence NEXTVAL -> {settings.sequence_replacement}")
    print(f"  Table storage advisory -> USING {settings.storage_format}")
    if not settings.continue_on_error:
        print("  Strict mode: rule faults abort the conversion")

    return EXIT_CLEAN


def add_config_argument(parser):
    parser.add_argument(
        '--config', '-c',
        help='Path to JSON configuration file (settings and custom rules)'
    )


def add_verbose_argument(parser):
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        default=False,
        help='Show the changelog and debug logging'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Oracle to Databricks quick converter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert a file
  python ora2dbx.py convert input.sql --output output.sql

  # Convert with settings and custom rules
  python ora2dbx.py convert input.sql -o output.sql --config oracle2dbx.json

  # Convert with a JSON report and a Databricks syntax check
  python ora2dbx.py convert input.sql -o out.sql --check --report --report-format json --report-output report.json

  # Quick inline conversion
  python ora2dbx.py inline "SELECT NVL(a, 0) FROM t"

  # Convert the built-in example script
  python ora2dbx.py example

  # List the rules in application order
  python ora2dbx.py rules

  # Generate and validate a configuration file
  python ora2dbx.py init-config --output oracle2dbx.json
  python ora2dbx.py validate-config oracle2dbx.json
"""
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    convert_parser = subparsers.add_parser('convert', help='Convert an Oracle SQL file to Databricks SQL')
    convert_parser.add_argument('input_file', help='Input Oracle SQL file')
    convert_parser.add_argument(
        '--output', '-o',
        help='Output file path (prints to stdout if not specified)'
    )
    add_config_argument(convert_parser)
    add_verbose_argument(convert_parser)
    convert_parser.add_argument(
        '--report', '-R',
        action='store_true',
        default=False,
        help='Generate a conversion report after conversion'
    )
    convert_parser.add_argument(
        '--report-format',
        choices=['text', 'json'],
        default='text',
        help='Format for the conversion report (default: text)'
    )
    convert_parser.add_argument(
        '--report-output',
        help='Write report to file instead of stdout'
    )
    convert_parser.add_argument(
        '--check',
        action='store_true',
        default=False,
        help='Parse the converted statements with the Databricks dialect'
    )
    convert_parser.set_defaults(func=convert_file)

    inline_parser = subparsers.add_parser('inline', help='Convert SQL given on the command line')
    inline_parser.add_argument('sql', help='Oracle SQL to convert')
    add_config_argument(inline_parser)
    add_verbose_argument(inline_parser)
    inline_parser.set_defaults(func=translate_inline)

    example_parser = subparsers.add_parser('example', help='Convert the built-in example script')
    add_verbose_argument(example_parser)
    example_parser.set_defaults(func=show_example)

    rules_parser = subparsers.add_parser('rules', help='List the active rules in application order')
    add_config_argument(rules_parser)
    add_verbose_argument(rules_parser)
    rules_parser.set_defaults(func=list_rules)

    init_config_parser = subparsers.add_parser('init-config', help='Generate a sample configuration file')
    init_config_parser.add_argument(
        '--output', '-o',
        default='oracle2dbx.json',
        help='Output path for the configuration file (default: oracle2dbx.json)'
    )
    add_verbose_argument(init_config_parser)
    init_config_parser.set_defaults(func=init_config)

    validate_config_parser = subparsers.add_parser('validate-config', help='Validate a configuration file')
    validate_config_parser.add_argument('config_file', help='Path to the configuration file to validate')
    add_verbose_argument(validate_config_parser)
    validate_config_parser.set_defaults(func=validate_config_cmd)

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        print_banner()
        parser.print_help()
        return EXIT_CLEAN

    setup_logging(getattr(args, 'verbose', False))
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
