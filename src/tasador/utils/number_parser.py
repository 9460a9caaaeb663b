"""
Number Parsing Utilities

Parses the numeric cells found in agent spreadsheets ("U$S 150.000,50",
"85 m²", "1.200") and formats values back for display.
"""

import math
import re
from typing import Union

from tasador.logging_config import get_logger

logger = get_logger(__name__)

# Currency symbols, unit suffixes and whitespace removed before parsing.
# Mirrors the cleanup agents' sheets have always been imported with, which
# also drops letters such as "D" and "s" from "USD" / "U$S" / "Días".
_STRIP_CHARS = re.compile(r"[Uu$sSDdm²\s]")
_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def clean_number(value: Union[str, int, float, None]) -> float:
    """Parse a spreadsheet number written with es-AR conventions.

    Thousands separators are dots and the decimal separator is a comma.
    Currency symbols and unit suffixes are ignored. Anything that still
    does not start with a number parses to 0.

    Args:
        value: Raw cell value.

    Returns:
        Parsed float, or 0.0 when nothing numeric is found.

    Example:
        >>> clean_number("U$S 150.000,50")
        150000.5
        >>> clean_number("85 m²")
        85.0
        >>> clean_number("consultar")
        0.0
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) else float(value)

    text = _STRIP_CHARS.sub("", str(value))
    text = text.replace(".", "").replace(",", ".", 1)

    match = _LEADING_FLOAT.match(text)
    if not match:
        logger.debug("Could not extract number from: %s", value)
        return 0.0

    parsed = float(match.group(0))
    return 0.0 if math.isnan(parsed) else parsed


def format_currency(value: Union[int, float, None]) -> str:
    """Format a value as whole US dollars.

    Example:
        >>> format_currency(150000.5)
        '$150,001'
        >>> format_currency(-2500)
        '-$2,500'
    """
    if value is None:
        return "-"

    # Half-up, not banker's rounding
    amount = int(math.floor(abs(value) + 0.5))
    sign = "-" if value < 0 and amount else ""
    return f"{sign}${amount:,}"


def format_number(value: Union[int, float, None], decimals: int = 2) -> str:
    """Format a number with es-AR grouping (1.234,56), trimming zero decimals.

    Example:
        >>> format_number(1234.5)
        '1.234,5'
        >>> format_number(1500)
        '1.500'
    """
    if value is None:
        return "-"

    text = f"{value:,.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    # Swap separators: 1,234.5 -> 1.234,5
    return text.replace(",", "_").replace(".", ",").replace("_", ".")
