"""
Oracle to Databricks format and type mappings.

This module holds the lookup tables the rewrite rules consult: datetime
format elements, large object types and the numeric defaults used for a
bare NUMBER declaration.
"""

import re
from typing import List, Tuple

# Precision and scale used when a NUMBER column declares neither
DEFAULT_NUMERIC_PRECISION = 38
DEFAULT_NUMERIC_SCALE = 0

# Highest precision Databricks DECIMAL accepts
MAX_DECIMAL_PRECISION = 38

# Format strings that map onto the single-argument target functions
ISO_DATE_FORMATS = {
    "YYYY-MM-DD": "TO_DATE",
    "YYYY-MM-DD HH24:MI:SS": "TO_TIMESTAMP",
}

# Oracle datetime format elements to Databricks datetime pattern letters
DATE_FORMAT_MAPPINGS = {
    # Year formats
    "SYYYY": "yyyy",  # 4-digit year with sign
    "YYYY": "yyyy",   # 4-digit year
    "RRRR": "yyyy",   # Round year (4 digits)
    "YY": "yy",       # Last 2 digits of year
    "RR": "yy",       # Round year (2 digits)

    # Quarter
    "Q": "Q",

    # Month formats
    "MM": "MM",       # Month (01-12)
    "MON": "MMM",     # Abbreviated month (JAN, FEB)
    "MONTH": "MMMM",  # Full month name

    # Day formats
    "DDD": "DDD",     # Day of year (1-366)
    "DD": "dd",       # Day of month (01-31)
    "DY": "EEE",      # Abbreviated day (MON, TUE)
    "DAY": "EEEE",    # Full day name

    # Hour formats
    "HH": "hh",       # Hour of day (01-12)
    "HH12": "hh",     # Hour of day (01-12)
    "HH24": "HH",     # Hour of day (00-23)

    # Minute/Second formats
    "MI": "mm",
    "SS": "ss",

    # Fractional seconds
    "FF": "SSSSSS",
    "FF1": "S",
    "FF2": "SS",
    "FF3": "SSS",
    "FF4": "SSSS",
    "FF5": "SSSSS",
    "FF6": "SSSSSS",

    # AM/PM indicators
    "AM": "a",
    "PM": "a",

    # Era indicator
    "AD": "G",
    "BC": "G",

    # Fill mode and format exact modifiers have no pattern letter
    "FM": "",
    "FX": "",
}

# Characters copied verbatim between format elements
FORMAT_SEPARATORS = frozenset(" -/:.,;")

# Longest element first so MONTH wins over MON and HH24 over HH
_SORTED_ELEMENTS = sorted(DATE_FORMAT_MAPPINGS, key=len, reverse=True)

# Oracle number format masks, e.g. '999,990.99', 'FM$9G999D00', '0000'
NUMERIC_MASK_PATTERN = re.compile(
    r"^(?:FM)?[$L]?[90,.GDV]*[90][90,.GDV]*(?:MI|PR|S)?$",
    re.IGNORECASE,
)

# Large object and raw types
LOB_TYPE_MAPPINGS = {
    "CLOB": "STRING",
    "NCLOB": "STRING",
    "LONG": "STRING",
    "BLOB": "BINARY",
    "RAW": "BINARY",
    "LONG RAW": "BINARY",
}


def is_numeric_format(oracle_format: str) -> bool:
    """Return True if the format string is an Oracle number format mask."""
    return bool(NUMERIC_MASK_PATTERN.match(oracle_format.strip()))


def convert_oracle_date_format(oracle_format: str) -> Tuple[str, List[str]]:
    """
    Convert an Oracle datetime format string to a Databricks pattern.

    The format is decomposed greedily, longest element first. Separators are
    copied as they are. Any run of characters that is neither a known element
    nor a separator is copied unchanged and reported.

    Args:
        oracle_format: Oracle format string (e.g., 'DD-MON-YYYY HH24:MI')

    Returns:
        Tuple of (databricks_format, list_of_unknown_elements)
    """
    converted = []
    unknown = []
    pending = []
    i = 0

    def flush_pending():
        if pending:
            run = ''.join(pending)
            converted.append(run)
            unknown.append(run)
            pending.clear()

    while i < len(oracle_format):
        char = oracle_format[i]
        if char in FORMAT_SEPARATORS:
            flush_pending()
            converted.append(char)
            i += 1
            continue

        for element in _SORTED_ELEMENTS:
            if oracle_format[i:i + len(element)].upper() == element:
                flush_pending()
                converted.append(DATE_FORMAT_MAPPINGS[element])
                i += len(element)
                break
        else:
            pending.append(char)
            i += 1

    flush_pending()
    return ''.join(converted), unknown


def iso_target_function(oracle_format: str):
    """Return the target function for an ISO format string, or None."""
    return ISO_DATE_FORMATS.get(oracle_format.upper())
