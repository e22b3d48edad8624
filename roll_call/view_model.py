"""Client-side attendance state: the full matrix plus one editable date view."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Protocol, Sequence

from .errors import AuthorizationRequired, OperationInProgress, RollCallError
from .models import AttendanceRecord, Person, RosterSnapshot, UpdateResult

logger = logging.getLogger(__name__)


class RosterSource(Protocol):
    async def fetch_matrix(self) -> RosterSnapshot:
        ...

    async def update_for_date(
        self, date: str, records: Sequence[AttendanceRecord]
    ) -> UpdateResult:
        ...


class ViewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    LOAD_ERROR = "load_error"
    SAVING = "saving"


@dataclass(slots=True)
class SaveOutcome:
    ok: bool
    message: str
    skipped: List[str] = field(default_factory=list)


def project(matrix: Sequence[Person], date: str) -> List[AttendanceRecord]:
    """Per-date view of ``matrix``; dates missing from a row read as absent."""

    return [
        AttendanceRecord(
            name=person.name,
            present=person.attendance.get(date, False),
            person_id=person.person_id,
        )
        for person in matrix
    ]


def format_date_for_display(value: str) -> str:
    """Turn ``7/20/2025`` into ``July 20, 2025``; anything unparseable comes back as-is."""

    try:
        parsed = datetime.strptime(value, "%m/%d/%Y")
    except (TypeError, ValueError):
        return value
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


class AttendanceViewModel:
    """Holds the loaded matrix and derives the view for the selected date.

    Edits made through :meth:`toggle` land in both the view and the matrix, so
    switching dates and coming back shows unsaved edits and :meth:`save`
    always sends a consistent slice. Only one load or save may be pending at a
    time; overlapping calls raise :class:`OperationInProgress`.
    """

    def __init__(self, source: RosterSource) -> None:
        self.source = source
        self.state = ViewState.IDLE
        self.dates: List[str] = []
        self.matrix: List[Person] = []
        self.current_date: Optional[str] = None
        self.records: List[AttendanceRecord] = []
        self.dirty = False
        self.error: Optional[str] = None
        self.save_error: Optional[str] = None
        self.save_success = False
        self.auth_required = False
        self._revision = 0

    @property
    def busy(self) -> bool:
        return self.state in (ViewState.LOADING, ViewState.SAVING)

    def _guard(self, action: str) -> None:
        if self.busy:
            raise OperationInProgress(f"Cannot {action} while {self.state.value}")

    async def load_all(self) -> bool:
        self._guard("load")
        self.state = ViewState.LOADING
        self.error = None
        self.save_error = None
        self.save_success = False
        try:
            snapshot = await self.source.fetch_matrix()
        except RollCallError as exc:
            logger.error("Failed to load attendance data: %s", exc)
            self.auth_required = isinstance(exc, AuthorizationRequired)
            self.error = f"Failed to load attendance data: {exc.message}"
            self.state = ViewState.LOAD_ERROR
            return False
        except BaseException:
            self.error = "Failed to load attendance data: unexpected error"
            self.state = ViewState.LOAD_ERROR
            raise

        self.auth_required = False
        self.dates = list(snapshot.dates)
        self.matrix = snapshot.matrix
        self.current_date = self.dates[0] if self.dates else None
        self.records = project(self.matrix, self.current_date) if self.current_date else []
        self.dirty = False
        self.state = ViewState.READY
        return True

    def select_date(self, date: str) -> None:
        if date not in self.dates:
            logger.warning("Ignoring selection of unknown date %r", date)
            return
        self.current_date = date
        self.records = project(self.matrix, date)

    def toggle(self, index: int, present: bool) -> None:
        if not 0 <= index < len(self.records):
            raise IndexError(f"attendance index {index} out of range")
        record = self.records[index]
        if record.present != present:
            self.dirty = True
            self._revision += 1
        record.present = present
        self.matrix[index].attendance[self.current_date] = present

    async def save(self) -> SaveOutcome:
        self._guard("save")
        if self.current_date is None:
            return SaveOutcome(ok=False, message="No date selected")

        date = self.current_date
        records = [
            AttendanceRecord(name=r.name, present=r.present, person_id=r.person_id)
            for r in self.records
        ]
        revision = self._revision
        self.state = ViewState.SAVING
        self.save_error = None
        self.save_success = False
        try:
            result = await self.source.update_for_date(date, records)
        except RollCallError as exc:
            logger.error("Failed to update attendance for %s: %s", date, exc)
            self.save_error = f"Failed to update attendance: {exc.message}"
            return SaveOutcome(ok=False, message=self.save_error)
        finally:
            self.state = ViewState.READY

        if not result.applied:
            self.save_error = "No matching names found; no changes applied"
            return SaveOutcome(ok=False, message=self.save_error, skipped=result.skipped)

        if self._revision == revision:
            self.dirty = False
        self.save_success = True
        message = "Attendance data saved successfully."
        if result.skipped:
            message += f" Skipped: {', '.join(result.skipped)}"
        return SaveOutcome(ok=True, message=message, skipped=result.skipped)


__all__ = [
    "AttendanceViewModel",
    "RosterSource",
    "SaveOutcome",
    "ViewState",
    "format_date_for_display",
    "project",
]
