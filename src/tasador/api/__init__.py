"""
Flask REST API for the valuation service.

Provides endpoints for:
- The active valuation and its comparables
- Saved valuations
- Comparable import
"""

from tasador.api.server import create_app
from tasador.api.routes import register_routes

__all__ = [
    "create_app",
    "register_routes",
]
