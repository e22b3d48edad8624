"""HTTP client for the Google Sheets REST API (v4)."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.service_account import Credentials

SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

logger = logging.getLogger(__name__)


class SheetsApiError(RuntimeError):
    """Raised when the Sheets API returns an error response."""

    def __init__(self, method: str, status_code: int, error: str) -> None:
        super().__init__(f"Sheets API error for {method} ({status_code}): {error}")
        self.method = method
        self.status_code = status_code
        self.error = error


def load_service_account_credentials(payload: str) -> Credentials:
    """Build service account credentials from the raw JSON key."""

    try:
        info = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise RuntimeError("Invalid service account JSON payload.") from exc
    return Credentials.from_service_account_info(info, scopes=SHEETS_SCOPES)


def a1_column(index: int) -> str:
    """Return the column letters for a 0-based column offset (0 -> A, 26 -> AA)."""

    if index < 0:
        raise ValueError(f"column index must be non-negative, got {index}")
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def a1_cell(sheet_name: str, row: int, column: int) -> str:
    """A1 reference for a 1-based row and a 0-based column on ``sheet_name``."""

    escaped = sheet_name.replace("'", "''")
    return f"'{escaped}'!{a1_column(column)}{row}"


class SheetsClient:
    """Async wrapper around the two Sheets API calls Roll Call needs."""

    def __init__(
        self,
        spreadsheet_id: str,
        *,
        token: Optional[str] = None,
        credentials: Optional[Credentials] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not token and credentials is None:
            raise ValueError("either token or credentials is required")
        self.spreadsheet_id = spreadsheet_id
        self._token = token
        self._credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=f"{SHEETS_API_BASE}/{spreadsheet_id}",
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _auth_headers(self, method: str) -> Dict[str, str]:
        if self._credentials is not None:
            if not self._credentials.valid:
                logger.debug("Refreshing service account token")
                try:
                    await asyncio.to_thread(self._credentials.refresh, Request())
                except GoogleAuthError as exc:
                    raise SheetsApiError(method, 401, str(exc)) from exc
            token = self._credentials.token
        else:
            token = self._token
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def _check(method: str, response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.is_error:
            error = data.get("error", {}) if isinstance(data, dict) else {}
            message = error.get("message") if isinstance(error, dict) else None
            raise SheetsApiError(method, response.status_code, message or response.reason_phrase)
        return data if isinstance(data, dict) else {}

    async def get_values(self, range_: str) -> List[List[Any]]:
        """Return the rows of ``range_`` as formatted values."""

        method = "values.get"
        response = await self._client.get(
            f"/values/{quote(range_, safe='')}",
            params={"majorDimension": "ROWS"},
            headers=await self._auth_headers(method),
        )
        data = self._check(method, response)
        return data.get("values", [])

    async def batch_update_values(
        self,
        data: List[Dict[str, Any]],
        *,
        value_input_option: str = "USER_ENTERED",
    ) -> Dict[str, Any]:
        """Write every ``{"range", "values"}`` entry in one request."""

        method = "values.batchUpdate"
        response = await self._client.post(
            "/values:batchUpdate",
            json={"valueInputOption": value_input_option, "data": data},
            headers=await self._auth_headers(method),
        )
        return self._check(method, response)


__all__ = [
    "SheetsClient",
    "SheetsApiError",
    "a1_cell",
    "a1_column",
    "load_service_account_credentials",
]
