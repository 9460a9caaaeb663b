"""
Tasador: comparable-based property valuation

Values a property from a set of market comparables by homogenizing their
surfaces, reducing their unit prices to tercile statistics and projecting
those onto the target property.

Main components:
- core: data models, constants and the pure valuation math
- remote: async document store (memory / sqlite) and real-time sync
- valuation: active valuation store, saved valuations, per-agent session
- importer: CSV / Google Sheets comparable import
- api: Flask REST API server
- cli: Command-line interfaces

Usage:
    from tasador import config
    from tasador.core.homogenization import valuate
    from tasador.valuation import ValuationSession
"""

__version__ = "1.0.0"

from tasador.config import get_config
from tasador.logging_config import setup_logging

__all__ = [
    "__version__",
    "get_config",
    "setup_logging",
]
