"""
Comparable import from CSV text and Google Sheets.
"""

from tasador.importer.table_import import (
    ImportReport,
    RowOk,
    RowSkip,
    fetch_and_parse,
    parse_row,
    parse_table,
    sheet_csv_url,
)

__all__ = [
    "ImportReport",
    "RowOk",
    "RowSkip",
    "fetch_and_parse",
    "parse_row",
    "parse_table",
    "sheet_csv_url",
]
