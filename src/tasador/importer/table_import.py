"""
Tabular Comparable Import

Turns a delimited text table (a CSV export or a shared Google Sheet) into
comparable payloads. Rows are untrusted input: each one becomes either a
``RowOk`` with a payload or a ``RowSkip`` with the reason, and a bad row
never aborts the import. A payload that cannot be read as a table, or whose
header names none of the recognized columns (the sign-in page served for a
sheet that is not public, say), raises ``ImportParseError`` once for the
whole import.

Recognized headers (Spanish or English):
    Dirección / Address, Precio / Price, Sup. Cubierta / Covered Surface,
    Sup. Descubierta / Uncovered Surface, Tipo Sup / Surface Type,
    Factor, Días / Days

Usage:
    report = parse_table(csv_text)
    payloads = report.payloads

    report = await fetch_and_parse("https://docs.google.com/spreadsheets/d/<id>/edit")
"""

import io
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import httpx
import pandas as pd

from tasador.core.constants import (
    ADDRESS_COLUMNS,
    COVERED_COLUMNS,
    DAYS_COLUMNS,
    FACTOR_COLUMNS,
    GOOGLE_SHEETS_EXPORT_URL,
    NO_ADDRESS,
    PRICE_COLUMNS,
    SURFACE_TYPE_COLUMNS,
    UNCOVERED_COLUMNS,
)
from tasador.exceptions import ImportParseError
from tasador.logging_config import get_logger
from tasador.utils.number_parser import clean_number
from tasador.utils.surface_types import parse_surface_type, resolve_factor

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0

_SHEET_ID_PATTERN = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")

# Header row is line 1 of the source
_FIRST_DATA_ROW = 2

KNOWN_COLUMNS = frozenset(
    ADDRESS_COLUMNS
    + PRICE_COLUMNS
    + COVERED_COLUMNS
    + UNCOVERED_COLUMNS
    + SURFACE_TYPE_COLUMNS
    + FACTOR_COLUMNS
    + DAYS_COLUMNS
)


@dataclass
class RowOk:
    """A row that produced a comparable payload (no id yet)."""

    row_number: int
    payload: Dict[str, Any]


@dataclass
class RowSkip:
    """A row left out of the import."""

    row_number: int
    reason: str


RowResult = Union[RowOk, RowSkip]


@dataclass
class ImportReport:
    """Per-row outcome of one import."""

    results: List[RowResult] = field(default_factory=list)
    source: Optional[str] = None

    @property
    def payloads(self) -> List[Dict[str, Any]]:
        return [r.payload for r in self.results if isinstance(r, RowOk)]

    @property
    def skipped(self) -> List[RowSkip]:
        return [r for r in self.results if isinstance(r, RowSkip)]

    @property
    def imported_count(self) -> int:
        return len(self.payloads)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "imported": self.imported_count,
            "skipped": [{"row": s.row_number, "reason": s.reason} for s in self.skipped],
        }


def _pick(row: Mapping[str, Any], columns: Sequence[str]) -> Optional[str]:
    """First non-empty cell among the column aliases."""
    for column in columns:
        value = row.get(column)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def parse_row(row: Mapping[str, Any], row_number: int) -> RowResult:
    """Convert one table row into a comparable payload.

    Missing or non-numeric cells become 0; the factor falls back to the
    surface type default when absent or not positive.

    Example:
        >>> parse_row({"Dirección": "Calle 1", "Precio": "U$S 150.000,50"}, 2).payload["price"]
        150000.5
    """
    address = _pick(row, ADDRESS_COLUMNS) or NO_ADDRESS
    price_cell = _pick(row, PRICE_COLUMNS)

    if address == NO_ADDRESS and price_cell is None:
        return RowSkip(row_number, "no address and no price")

    try:
        surface_type = parse_surface_type(_pick(row, SURFACE_TYPE_COLUMNS))
        factor_cell = _pick(row, FACTOR_COLUMNS)
        explicit_factor = clean_number(factor_cell) if factor_cell is not None else None

        payload = {
            "address": address,
            "price": clean_number(price_cell),
            "covered_surface": clean_number(_pick(row, COVERED_COLUMNS)),
            "uncovered_surface": clean_number(_pick(row, UNCOVERED_COLUMNS)),
            "surface_type": surface_type,
            "homogenization_factor": resolve_factor(explicit_factor, surface_type),
            "days_on_market": clean_number(_pick(row, DAYS_COLUMNS)),
        }
    except (TypeError, ValueError) as e:
        return RowSkip(row_number, f"unreadable row: {e}")

    return RowOk(row_number, payload)


def parse_rows(rows: Sequence[Mapping[str, Any]], source: Optional[str] = None) -> ImportReport:
    """Parse already-split rows (header names as keys)."""
    report = ImportReport(source=source)
    for index, row in enumerate(rows):
        result = parse_row(row, index + _FIRST_DATA_ROW)
        if isinstance(result, RowSkip):
            logger.debug("Skipping row %d: %s", result.row_number, result.reason)
        report.results.append(result)
    return report


def read_table(text: str) -> pd.DataFrame:
    """Read delimited text with a header row; every cell stays a string.

    Raises:
        ImportParseError: If the text is empty or not a table.
    """
    if not text or not text.strip():
        raise ImportParseError("The table is empty")
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise ImportParseError(f"Could not read the table: {e}")

    df.columns = [str(c).strip() for c in df.columns]
    return df


def parse_table(text: str, source: Optional[str] = None) -> ImportReport:
    """Parse a whole CSV payload into an ImportReport.

    Raises:
        ImportParseError: If the payload is not a readable table or its
            header has none of the recognized columns.
    """
    df = read_table(text)
    if not KNOWN_COLUMNS.intersection(df.columns):
        raise ImportParseError(
            "No recognized column in the table header; expected e.g. Dirección, Precio",
            source=source,
        )
    report = parse_rows(df.to_dict(orient="records"), source=source)
    logger.info(
        "Parsed %d rows from %s: %d imported, %d skipped",
        len(df), source or "table", report.imported_count, len(report.skipped),
    )
    return report


def sheet_csv_url(url: str) -> str:
    """CSV export URL for a Google Sheets link; other URLs are returned as is.

    Raises:
        ImportParseError: If a Google Sheets link carries no document id.
    """
    if "docs.google.com/spreadsheets" not in url:
        return url
    match = _SHEET_ID_PATTERN.search(url)
    if not match:
        raise ImportParseError("Invalid Google Sheets link", source=url)
    return GOOGLE_SHEETS_EXPORT_URL.format(sheet_id=match.group(1))


def _with_cache_buster(url: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}t={int(time.time() * 1000)}"


async def fetch_table(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Download the CSV text behind a sheet or CSV link.

    Raises:
        ImportParseError: On transport errors or a non-2xx response.
    """
    export_url = _with_cache_buster(sheet_csv_url(url))
    logger.info("Fetching table from %s", export_url)

    try:
        if client is not None:
            response = await client.get(export_url, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=timeout) as own_client:
                response = await own_client.get(export_url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ImportParseError(
            f"The sheet could not be downloaded (HTTP {e.response.status_code}); "
            "check that it is shared publicly",
            source=url,
        )
    except httpx.HTTPError as e:
        raise ImportParseError(f"The sheet could not be downloaded: {e}", source=url)

    return response.text


async def fetch_and_parse(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> ImportReport:
    """Download and parse a remote table."""
    text = await fetch_table(url, timeout=timeout, client=client)
    return parse_table(text, source=url)
