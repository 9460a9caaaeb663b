"""
Core modules for Tasador.

Contains database helpers, data models, the pure valuation math and shared
constants. Import models and math from their modules directly.
"""

from tasador.core.constants import (
    MAX_SAVED_VALUATIONS,
    DEFAULT_FACTORS,
)
from tasador.core.database import (
    get_connection,
    fetch_all,
    fetch_one,
    execute,
)

__all__ = [
    "MAX_SAVED_VALUATIONS",
    "DEFAULT_FACTORS",
    "get_connection",
    "fetch_all",
    "fetch_one",
    "execute",
]
