"""
Command-line interface modules.

Provides CLI entry points for:
- api_server: Start the REST API
- import_table: Import comparables from a CSV file or sheet
- report: Print the active valuation or the saved valuations
"""
