"""HTTP client for the Roll Call data and update endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .errors import AuthorizationRequired, DateNotFound, SourceUnavailable, WriteFailed
from .models import AttendanceRecord, Person, RosterSnapshot, UpdateResult

logger = logging.getLogger(__name__)

AUTHORIZATION_MESSAGE = (
    "Access to attendance data requires authorization. "
    "Ask an administrator to add your email or check the endpoint permissions."
)


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def parse_snapshot(data: Any) -> RosterSnapshot:
    """Validate a data-endpoint payload and build a snapshot from it."""

    if (
        not isinstance(data, dict)
        or not isinstance(data.get("dates"), list)
        or not isinstance(data.get("attendanceData"), list)
    ):
        raise SourceUnavailable("Invalid data format received from server")

    dates = [str(date) for date in data["dates"]]
    known = set(dates)
    matrix: List[Person] = []
    for item in data["attendanceData"]:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            raise SourceUnavailable("Invalid data format received from server")
        attendance = item.get("attendance") or {}
        person_id = item.get("personId")
        if not isinstance(attendance, dict) or not (person_id is None or isinstance(person_id, str)):
            raise SourceUnavailable("Invalid data format received from server")
        matrix.append(
            Person(
                name=item["name"],
                person_id=person_id,
                # keys outside the date list are dropped
                attendance={
                    str(date): value is True
                    for date, value in attendance.items()
                    if str(date) in known
                },
            )
        )
    return RosterSnapshot(dates=dates, matrix=matrix)


class AttendanceApiClient:
    """Async roster source that talks to a deployed Roll Call API."""

    def __init__(
        self,
        data_url: str,
        update_url: str,
        *,
        user_email: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.data_url = data_url
        self.update_url = update_url
        headers = {"Content-Type": "application/json"}
        if user_email:
            headers["X-User-Email"] = user_email
        if api_key:
            headers["X-API-Key"] = api_key
        self._client = httpx.AsyncClient(headers=headers, timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_matrix(self) -> RosterSnapshot:
        logger.debug("Fetching attendance data from %s", self.data_url)
        try:
            response = await self._client.get(self.data_url)
        except httpx.HTTPError as exc:
            raise SourceUnavailable(f"Failed to load attendance data: {exc}") from exc

        if response.status_code == 403:
            raise AuthorizationRequired(AUTHORIZATION_MESSAGE)
        if response.is_error:
            body = _error_body(response)
            raise SourceUnavailable(
                body.get("error") or f"HTTP error! Status: {response.status_code}",
                body.get("details"),
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise SourceUnavailable("Invalid data format received from server") from exc
        return parse_snapshot(data)

    async def update_for_date(
        self, date: str, records: Sequence[AttendanceRecord]
    ) -> UpdateResult:
        payload = {"date": date, "attendance": [record.to_payload() for record in records]}
        logger.debug("Posting %d records for %s to %s", len(records), date, self.update_url)
        try:
            response = await self._client.post(self.update_url, json=payload)
        except httpx.HTTPError as exc:
            raise WriteFailed(f"Failed to update attendance: {exc}") from exc

        body = _error_body(response)
        if response.is_error:
            if body.get("code") == DateNotFound.code:
                raise DateNotFound(date)
            raise WriteFailed(
                body.get("error") or f"HTTP error! Status: {response.status_code}",
                body.get("details"),
            )
        # endpoints that only answer {message, receivedData} count every record as written
        matched = body.get("matched", len(records))
        return UpdateResult(
            date=date,
            matched=matched,
            written=body.get("written", matched),
            skipped=list(body.get("skipped", [])),
        )


__all__ = ["AttendanceApiClient", "parse_snapshot", "AUTHORIZATION_MESSAGE"]
