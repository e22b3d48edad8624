"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import httpx
import pytest
from google.auth.exceptions import TransportError

from roll_call.auth import AuthorizationGate, AuthorizedEmailCache
from roll_call.models import AuthorizedUser
from roll_call.roster import RosterStore
from roll_call.sheets_client import SheetsApiError, SheetsClient

A1_PATTERN = re.compile(r"^'(?P<sheet>(?:[^']|'')+)'!(?P<col>[A-Z]+)(?P<row>\d+)$")


def column_index(letters: str) -> int:
    index = 0
    for letter in letters:
        index = index * 26 + (ord(letter) - ord("A") + 1)
    return index - 1


class FakeSheet:
    """In-memory stand-in for the two Sheets API calls the roster store makes."""

    def __init__(self, rows: List[List[Any]]) -> None:
        self.rows = [list(row) for row in rows]
        self.reads = 0
        self.batches: List[List[Dict[str, Any]]] = []
        self.fail_reads = False
        self.fail_writes = False

    async def get_values(self, range_: str) -> List[List[Any]]:
        self.reads += 1
        if self.fail_reads:
            raise SheetsApiError("values.get", 503, "backend unavailable")
        return [list(row) for row in self.rows]

    async def batch_update_values(self, data: List[Dict[str, Any]]) -> Dict[str, Any]:
        if self.fail_writes:
            raise SheetsApiError("values.batchUpdate", 500, "internal error")
        self.batches.append(data)
        for entry in data:
            match = A1_PATTERN.match(entry["range"])
            assert match, entry["range"]
            row = self.rows[int(match["row"]) - 1]
            column = column_index(match["col"])
            while len(row) <= column:
                row.append("")
            row[column] = "TRUE" if entry["values"][0][0] else "FALSE"
        return {"totalUpdatedCells": len(data)}

    def cell(self, row: int, column: int) -> Any:
        values = self.rows[row - 1]
        return values[column] if column < len(values) else ""


class InMemoryWhitelist:
    def __init__(self, emails: Optional[List[str]] = None) -> None:
        self.users: Dict[str, AuthorizedUser] = {
            email: AuthorizedUser(email=email, added_by="seed", added_at="2025-07-01T00:00:00+00:00")
            for email in emails or []
        }
        self.reads = 0
        self.fail_reads = False

    def get_authorized_users(self) -> List[AuthorizedUser]:
        self.reads += 1
        if self.fail_reads:
            raise ConnectionError("whitelist store unreachable")
        return list(self.users.values())

    def get_authorized_user(self, email: str) -> Optional[AuthorizedUser]:
        return self.users.get(email)

    def add_authorized_user(self, user: AuthorizedUser) -> bool:
        if user.email in self.users:
            return False
        self.users[user.email] = user
        return True

    def remove_authorized_user(self, email: str) -> bool:
        return self.users.pop(email, None) is not None


class UnreachableTokenCredentials:
    """Service account credentials whose token endpoint goes away.

    The first ``working_refreshes`` refreshes hand out a token; later ones fail.
    Tokens never become valid, so every request refreshes.
    """

    valid = False

    def __init__(self, working_refreshes: int = 0) -> None:
        self.working_refreshes = working_refreshes
        self.token: Optional[str] = None

    def refresh(self, request: Any) -> None:
        if self.working_refreshes <= 0:
            raise TransportError("token endpoint unreachable")
        self.working_refreshes -= 1
        self.token = "service-account-token"


def unauthenticated_sheets_client(
    requests: List[httpx.Request],
    rows: Optional[List[List[Any]]] = None,
    working_refreshes: int = 0,
) -> SheetsClient:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"values": rows or []})

    return SheetsClient(
        "sheet-123",
        credentials=UnreachableTokenCredentials(working_refreshes),
        transport=httpx.MockTransport(handler),
    )


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sheet_rows():
    """Header plus three people; dates are in chronological order on the sheet."""
    return [
        ["Name", "7/13/2025", "7/20/2025"],
        ["Ainsa, Jeff", "TRUE", "FALSE"],
        ["Smith, Jane", "FALSE"],
        ["Armstrong, Ellie", "true", "TRUE"],
    ]


@pytest.fixture
def fake_sheet(sheet_rows):
    return FakeSheet(sheet_rows)


@pytest.fixture
def roster(fake_sheet):
    return RosterStore(fake_sheet, "Sheet1")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def whitelist():
    return InMemoryWhitelist(["admin@example.com", "user@example.com"])


@pytest.fixture
def gate(whitelist, clock):
    return AuthorizationGate(whitelist, AuthorizedEmailCache(whitelist, ttl=600, clock=clock))
