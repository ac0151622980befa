"""
Google Sheets gviz Read Client
==============================

Read path for every sheet the app uses. The public gviz endpoint
(``/gviz/tq?tqx=out:json&sheet=NAME``) returns a JS-callback-wrapped JSON
table; the client locates the first ``{`` and last ``}`` and parses the
interior.

Features:
- **Retry with exponential backoff**: handles 429, 5xx and network errors
- **Thread-safe singleton**: safe for Azure Functions concurrent execution
- **Plain rows out**: each gviz row becomes a list of cell ``v`` values with
  ``None`` for missing cells, so callers index by ``sheet_config.Column``

Row numbering
-------------
``SheetRow.row_index`` is the 1-based spreadsheet row number, assuming the
first sheet row is the header gviz reports in ``cols[].label``:
the n-th (0-based) gviz row lives on sheet row ``n + 2``.
"""

import os
import json
import logging
import time
import threading
import functools
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Callable, TypeVar
from urllib.parse import quote
import requests
from requests.exceptions import RequestException

from .sheet_config import SheetName

logger = logging.getLogger(__name__)

T = TypeVar('T')

GVIZ_BASE_URL = "https://docs.google.com/spreadsheets/d"


# ============== Custom Exceptions ==============

class GvizError(Exception):
    """Base exception for gviz reads."""
    pass


class GvizRateLimitError(GvizError):
    """Raised when Google throttles the export endpoint."""
    def __init__(self, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Retry after: {retry_after}")


class GvizNotFoundError(GvizError):
    """Raised when the spreadsheet or sheet does not exist or is not shared."""
    pass


class GvizParseError(GvizError):
    """Raised when the wrapped payload cannot be parsed."""
    pass


# ============== Retry Decorator ==============

def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    retryable_status_codes: tuple = (429, 500, 502, 503, 504),
    retryable_exceptions: tuple = (RequestException, GvizRateLimitError),
) -> Callable:
    """
    Decorator that retries a read with exponential backoff.

    Handles:
    - HTTP 429 rate limit (respects Retry-After header)
    - HTTP 5xx server errors
    - Network errors

    Parse errors and 4xx responses other than 429 are not retried.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except requests.HTTPError as e:
                    response = e.response
                    status_code = response.status_code if response is not None else 0

                    if status_code not in retryable_status_codes:
                        if status_code == 404:
                            raise GvizNotFoundError(str(e)) from e
                        raise

                    last_exception = e

                    retry_after = response.headers.get('Retry-After') if response is not None else None
                    if status_code == 429 and retry_after and retry_after.isdigit():
                        wait_time = min(int(retry_after), max_delay)
                        logger.warning(f"Rate limit hit. Waiting {wait_time}s before retry {attempt + 1}/{max_retries}")
                    else:
                        wait_time = min(base_delay * (exponential_base ** attempt), max_delay)
                        logger.warning(f"HTTP {status_code}. Retry {attempt + 1}/{max_retries} in {wait_time}s")

                    if attempt < max_retries:
                        time.sleep(wait_time)

                except retryable_exceptions as e:
                    last_exception = e
                    wait_time = min(base_delay * (exponential_base ** attempt), max_delay)
                    logger.warning(f"Transient error: {e}. Retry {attempt + 1}/{max_retries} in {wait_time}s")

                    if attempt < max_retries:
                        time.sleep(wait_time)

            raise last_exception or GvizError("Max retries exceeded")

        return wrapper
    return decorator


# ============== Payload Parsing ==============

def parse_gviz_payload(text: str) -> Dict[str, Any]:
    """
    Extract the ``table`` object from a wrapped gviz response.

    Raises:
        GvizParseError: If no JSON object can be found, or gviz reports an error
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise GvizParseError("No JSON object in gviz response")

    try:
        data = json.loads(text[start:end + 1])
    except ValueError as e:
        raise GvizParseError(f"Invalid gviz JSON: {e}") from e

    if data.get("status") == "error":
        messages = "; ".join(
            err.get("detailed_message") or err.get("message", "")
            for err in data.get("errors", [])
        )
        raise GvizParseError(f"gviz query error: {messages}")

    table = data.get("table")
    if not isinstance(table, dict):
        raise GvizParseError("gviz response has no table")
    return table


def row_values(row: Optional[Dict[str, Any]]) -> List[Any]:
    """Flatten a gviz row ``{c: [{v}, null, ...]}`` into a list of values."""
    if not row or not row.get("c"):
        return []
    return [cell.get("v") if isinstance(cell, dict) else None for cell in row["c"]]


def cell_value(values: List[Any], index: int) -> Any:
    """Positional cell access with ``None`` for short rows."""
    if 0 <= index < len(values):
        return values[index]
    return None


def cell_text(values: List[Any], index: int) -> str:
    """Cell value as stripped text ("" for missing)."""
    value = cell_value(values, index)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


@dataclass
class SheetRow:
    """A gviz row with its spreadsheet row number."""
    row_index: int
    values: List[Any]

    def __getitem__(self, index: int) -> Any:
        return cell_value(self.values, index)

    def text(self, index: int) -> str:
        return cell_text(self.values, index)


# ============== Configuration ==============

@dataclass
class GvizClientConfig:
    """Configuration for the gviz client."""

    sheet_id: Optional[str] = None            # TMT spreadsheet
    delegation_sheet_id: Optional[str] = None # Delegation spreadsheet
    base_url: str = GVIZ_BASE_URL
    timeout: float = 30.0
    max_retries: int = 3

    @classmethod
    def from_environment(cls) -> "GvizClientConfig":
        """Load configuration from environment variables."""
        sheet_id = os.environ.get("GOOGLE_SHEET_ID")
        return cls(
            sheet_id=sheet_id,
            delegation_sheet_id=os.environ.get("DELEGATION_SHEET_ID", sheet_id),
            base_url=os.environ.get("GVIZ_BASE_URL", GVIZ_BASE_URL),
            timeout=float(os.environ.get("GVIZ_TIMEOUT", "30.0")),
            max_retries=int(os.environ.get("GVIZ_MAX_RETRIES", "3")),
        )


# Sheets that live in the delegation spreadsheet
DELEGATION_SHEETS = {
    SheetName.DELEGATION,
    SheetName.DELEGATION_DONE,
    SheetName.CHECKLIST,
    SheetName.MASTER,
    SheetName.WORKING_DAYS,
    SheetName.DATA,
    SheetName.SALES,
    SheetName.WAREHOUSE,
}


# ============== gviz Client ==============

class GvizClient:
    """
    Read-only client for the gviz JSON export.

    Usage:
        >>> client = get_gviz_client()
        >>> rows = client.fetch_rows(SheetName.PRODUCTION)
        >>> rows[0].text(Column.PRODUCTION.HEAT_NO)
        'H-101'
    """

    def __init__(self, config: Optional[GvizClientConfig] = None):
        self.config = config or GvizClientConfig.from_environment()

        if not self.config.sheet_id:
            raise ValueError("GOOGLE_SHEET_ID environment variable is required")

        self._session = requests.Session()
        logger.info("GvizClient initialized")

    def spreadsheet_for(self, sheet_name: str) -> str:
        """Pick the spreadsheet that holds ``sheet_name``."""
        if sheet_name in {s.value for s in DELEGATION_SHEETS}:
            return self.config.delegation_sheet_id or self.config.sheet_id
        return self.config.sheet_id

    def build_url(self, sheet_name: str, spreadsheet_id: Optional[str] = None) -> str:
        spreadsheet_id = spreadsheet_id or self.spreadsheet_for(sheet_name)
        return (
            f"{self.config.base_url}/{spreadsheet_id}/gviz/tq"
            f"?tqx=out:json&sheet={quote(sheet_name)}"
        )

    def _make_request(self, url: str) -> requests.Response:
        """GET a gviz URL, logging the error body before raising."""
        response = self._session.get(url, timeout=self.config.timeout)

        if not response.ok:
            logger.error(f"gviz error: {response.status_code} - {response.text[:500]}")
            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                raise GvizRateLimitError(int(retry_after) if retry_after and retry_after.isdigit() else None)

        response.raise_for_status()
        return response

    def fetch_table(self, sheet_name: str, spreadsheet_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch and parse the gviz table for a sheet.

        Returns:
            The ``table`` object: ``{"cols": [...], "rows": [...]}``
        """
        sheet_name = getattr(sheet_name, "value", sheet_name)
        url = self.build_url(sheet_name, spreadsheet_id)

        @retry_with_backoff(max_retries=self.config.max_retries)
        def _fetch() -> Dict[str, Any]:
            return parse_gviz_payload(self._make_request(url).text)

        try:
            table = _fetch()
        except RequestException as e:
            raise GvizError(f"gviz request for '{sheet_name}' failed: {e}") from e
        logger.debug(f"Fetched {len(table.get('rows', []))} rows from '{sheet_name}'")
        return table

    def fetch_columns(self, sheet_name: str) -> List[Dict[str, Any]]:
        """Column metadata: ``[{"index", "label", "type"}]``."""
        table = self.fetch_table(sheet_name)
        return [
            {"index": i, "label": col.get("label", ""), "type": col.get("type")}
            for i, col in enumerate(table.get("cols", []))
        ]

    def fetch_rows(self, sheet_name: str, skip_header: bool = False) -> List[SheetRow]:
        """
        Fetch a sheet as positional rows.

        Args:
            sheet_name: SheetName or tab name
            skip_header: Drop the first gviz row (sheets whose header gviz
                does not detect come back with it as row 0)
        """
        table = self.fetch_table(sheet_name)
        rows = [
            SheetRow(row_index=i + 2, values=row_values(row))
            for i, row in enumerate(table.get("rows", []))
        ]
        return rows[1:] if skip_header else rows

    def fetch_column_values(self, sheet_name: str, index: int, skip_header: bool = True) -> List[str]:
        """Non-blank text values of a single column."""
        values = []
        for row in self.fetch_rows(sheet_name, skip_header=skip_header):
            text = row.text(index)
            if text:
                values.append(text)
        return values

    def close(self):
        """Close the session and release resources."""
        if self._session:
            self._session.close()


# ============== Singleton ==============

_client: Optional[GvizClient] = None
_client_lock = threading.Lock()


def get_gviz_client() -> GvizClient:
    """Get the singleton GvizClient instance (thread-safe)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = GvizClient()
    return _client


def reset_gviz_client():
    """Reset the singleton (for testing)."""
    global _client
    with _client_lock:
        if _client is not None:
            _client.close()
        _client = None
