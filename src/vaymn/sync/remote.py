"""Supabase (PostgREST) client for the remote store.

Tables ``books``, ``users`` and ``admins`` hold rows in the same camelCase
shape as the local mirror, keyed by ``id``.
"""

import logging
import re
from typing import Any, Optional

import requests

from ..config import get_config, is_remote_configured

logger = logging.getLogger(__name__)


class RemoteStoreError(Exception):
    """Base exception for remote store errors."""

    pass


class RemoteConfigError(RemoteStoreError):
    """Raised when the remote store is not properly configured."""

    pass


class RemoteTimeoutError(RemoteStoreError):
    """Raised when a remote request times out."""

    pass


_CONTENT_RANGE = re.compile(r"^(?:\d+-\d+|\*)/(\d+|\*)$")


def parse_content_range(header: Optional[str]) -> int:
    """Extract the total row count from a PostgREST Content-Range header.

    Examples: ``0-24/3573`` gives 3573, ``*/0`` gives 0.
    """
    match = _CONTENT_RANGE.match((header or "").strip())
    if not match or match.group(1) == "*":
        raise RemoteStoreError(f"Unexpected Content-Range header: {header!r}")
    return int(match.group(1))


class RemoteStore:
    """Client for the Supabase REST endpoint."""

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client.

        Args:
            url: Project URL (uses config if not provided)
            api_key: Anon or service key (uses config if not provided)
            timeout: Request timeout in seconds (uses config if not provided)
        """
        config = get_config()

        self.url = (url or config.supabase_url or "").rstrip("/")
        self.api_key = api_key or config.supabase_key
        self.timeout = timeout if timeout is not None else config.remote_timeout

        if not is_remote_configured(self.url, self.api_key):
            raise RemoteConfigError("VAYMN_SUPABASE_URL / VAYMN_SUPABASE_KEY not set")

        self._session = requests.Session()
        self._session.headers.update({
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        })

    def _table_url(self, table: str) -> str:
        return f"{self.url}{self.REST_PATH}/{table}"

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[dict] = None,
        json: Any = None,
        headers: Optional[dict] = None,
    ) -> requests.Response:
        """Make a request with error handling."""
        try:
            response = self._session.request(
                method,
                self._table_url(table),
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response
        except requests.exceptions.Timeout:
            raise RemoteTimeoutError(f"{method} {table} timed out")
        except requests.exceptions.HTTPError as e:
            raise RemoteStoreError(
                f"HTTP error on {method} {table}: {e.response.status_code}"
            )
        except requests.exceptions.RequestException as e:
            raise RemoteStoreError(f"Request failed: {e}")

    # ========================================================================
    # Read Operations
    # ========================================================================

    def select(self, table: str, order: Optional[str] = None) -> list[dict]:
        """Fetch every row of a table.

        Args:
            table: Table name
            order: Column to sort ascending by

        Returns:
            List of row dicts
        """
        params = {"select": "*"}
        if order:
            params["order"] = f"{order}.asc"
        response = self._request("GET", table, params=params)
        data = response.json()
        if not isinstance(data, list):
            raise RemoteStoreError(f"Expected a list of rows from {table}")
        return data

    def count(self, table: str) -> int:
        """Count rows in a table without fetching them."""
        response = self._request(
            "HEAD",
            table,
            params={"select": "*"},
            headers={"Prefer": "count=exact"},
        )
        return parse_content_range(response.headers.get("Content-Range"))

    def ping(self) -> bool:
        """Check the remote store answers a minimal query."""
        try:
            self._request("GET", "books", params={"select": "id", "limit": 1})
            return True
        except RemoteStoreError as e:
            logger.debug("Remote ping failed: %s", e)
            return False

    # ========================================================================
    # Write Operations
    # ========================================================================

    @staticmethod
    def _columns(rows: list[dict]) -> str:
        """Union of row keys, for the PostgREST ``columns`` parameter.

        With ``columns`` set, keys missing from a row are written as the
        column default instead of failing the whole batch.
        """
        keys: set[str] = set()
        for row in rows:
            keys.update(row)
        return ",".join(sorted(keys))

    def insert(self, table: str, rows: list[dict]) -> None:
        """Insert rows."""
        if not rows:
            return
        self._request(
            "POST",
            table,
            params={"columns": self._columns(rows)},
            json=rows,
            headers={"Prefer": "return=minimal"},
        )

    def upsert(self, table: str, rows: list[dict]) -> None:
        """Insert rows, merging into existing rows with the same id.

        Only the columns sent are updated on existing rows.
        """
        if not rows:
            return
        self._request(
            "POST",
            table,
            params={"on_conflict": "id", "columns": self._columns(rows)},
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    def delete(self, table: str, row_id: str) -> None:
        """Delete the row with the given id (no-op if absent)."""
        self._request("DELETE", table, params={"id": f"eq.{row_id}"})

    def close(self) -> None:
        self._session.close()
