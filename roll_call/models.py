"""Dataclasses representing Roll Call domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(slots=True)
class Person:
    name: str
    person_id: Optional[str] = None
    attendance: Dict[str, bool] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "personId": self.person_id,
            "attendance": dict(self.attendance),
        }


@dataclass(slots=True)
class AttendanceRecord:
    """One person's attendance for a single date."""

    name: str
    present: bool
    person_id: Optional[str] = None

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"name": self.name, "present": self.present}
        if self.person_id is not None:
            payload["personId"] = self.person_id
        return payload


@dataclass(slots=True)
class RosterSnapshot:
    """Dates (most recent first) and the full name x date matrix."""

    dates: List[str]
    matrix: List[Person]


@dataclass(slots=True)
class UpdateResult:
    date: str
    matched: int
    written: int
    skipped: List[str] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.matched > 0


@dataclass(slots=True)
class AuthorizedUser:
    email: str
    added_by: str
    added_at: str

    def to_payload(self) -> Dict[str, str]:
        return {"email": self.email, "addedBy": self.added_by, "addedAt": self.added_at}


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


__all__ = [
    "Person",
    "AttendanceRecord",
    "RosterSnapshot",
    "UpdateResult",
    "AuthorizedUser",
    "normalize_email",
]
