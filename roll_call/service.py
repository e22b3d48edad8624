"""Core orchestration logic for Roll Call."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from .errors import ValidationError
from .models import AttendanceRecord, UpdateResult
from .roster import RosterStore

logger = logging.getLogger(__name__)


class AttendanceService:
    """Translates between the HTTP payloads and the roster store."""

    def __init__(self, roster: RosterStore) -> None:
        self.roster = roster

    async def get_attendance_data(self) -> Dict[str, Any]:
        snapshot = await self.roster.fetch_matrix()
        return {
            "dates": snapshot.dates,
            "attendanceData": [person.to_payload() for person in snapshot.matrix],
        }

    async def get_names(self) -> List[str]:
        return await self.roster.list_names()

    async def update_attendance(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        date, records = parse_update_payload(payload)
        result = await self.roster.update_for_date(date, records)
        return {
            "message": describe_update(result),
            "receivedData": {
                "date": date,
                "attendance": [record.to_payload() for record in records],
            },
            "matched": result.matched,
            "written": result.written,
            "skipped": result.skipped,
        }


def parse_update_payload(payload: Mapping[str, Any]) -> tuple[str, List[AttendanceRecord]]:
    """Validate ``{date, attendance: [{name, present, personId?}]}``."""

    errors: List[str] = []
    date = payload.get("date")
    if not isinstance(date, str) or not date.strip():
        errors.append("date is required")
    entries = payload.get("attendance")
    if not isinstance(entries, list):
        errors.append("attendance must be a list")
        entries = []

    records: List[AttendanceRecord] = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            errors.append(f"attendance[{position}] must be an object")
            continue
        name = entry.get("name")
        present = entry.get("present")
        if not isinstance(name, str) or not name.strip():
            errors.append(f"attendance[{position}].name is required")
            continue
        if not isinstance(present, bool):
            errors.append(f"attendance[{position}].present must be a boolean")
            continue
        person_id = entry.get("personId")
        records.append(
            AttendanceRecord(
                name=name,
                present=present,
                person_id=person_id if isinstance(person_id, str) else None,
            )
        )

    if errors:
        raise ValidationError("Invalid attendance update", errors)
    return date, records  # type: ignore[return-value]


def describe_update(result: UpdateResult) -> str:
    if not result.applied:
        return f"No matching names for {result.date}; no changes applied"
    message = f"Attendance updated for {result.date}"
    if result.skipped:
        message += f" ({len(result.skipped)} names not found)"
    return message


__all__ = ["AttendanceService", "parse_update_payload", "describe_update"]
