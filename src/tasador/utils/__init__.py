"""
Utility modules for Tasador.

Provides number, date and surface type parsing and formatting.
"""

from tasador.utils.date_parser import (
    to_datetime,
    format_date,
    format_short_date,
)
from tasador.utils.number_parser import (
    clean_number,
    format_currency,
    format_number,
)
from tasador.utils.surface_types import (
    SurfaceType,
    parse_surface_type,
    get_default_factor,
    SURFACE_TYPE_MAP,
)

__all__ = [
    "to_datetime",
    "format_date",
    "format_short_date",
    "clean_number",
    "format_currency",
    "format_number",
    "SurfaceType",
    "parse_surface_type",
    "get_default_factor",
    "SURFACE_TYPE_MAP",
]
