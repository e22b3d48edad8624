"""Spreadsheet-backed roster store: reads and writes the name x date matrix."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import httpx

from .errors import DateNotFound, SourceUnavailable, WriteFailed
from .models import AttendanceRecord, Person, RosterSnapshot, UpdateResult
from .sheets_client import SheetsApiError, a1_cell

logger = logging.getLogger(__name__)

DATE_FORMAT = "%m/%d/%Y"


class SheetValues(Protocol):
    async def get_values(self, range_: str) -> List[List[Any]]:
        ...

    async def batch_update_values(self, data: List[Dict[str, Any]]) -> Dict[str, Any]:
        ...


def is_present(value: Any) -> bool:
    """A cell counts as present for literal True or the string "true" in any case."""

    if value is True:
        return True
    return isinstance(value, str) and value.strip().lower() == "true"


def parse_date_key(value: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT)
    except (ValueError, AttributeError):
        return None


def order_dates(dates: Iterable[str]) -> List[str]:
    """Most recent first; unparseable keys follow in their original order."""

    indexed = list(enumerate(dates))

    def sort_key(item: Tuple[int, str]) -> Tuple[int, float, int]:
        position, value = item
        parsed = parse_date_key(value)
        if parsed is None:
            return (1, 0.0, position)
        return (0, -parsed.timestamp(), position)

    return [value for _, value in sorted(indexed, key=sort_key)]


def person_id_for_row(row_number: int) -> str:
    return f"row-{row_number}"


def _cell(row: Sequence[Any], column: int) -> Any:
    return row[column] if column < len(row) else ""


def _name(row: Sequence[Any]) -> str:
    return str(_cell(row, 0)).strip()


class RosterStore:
    """Locates rows by person and columns by date on one sheet tab."""

    def __init__(self, client: SheetValues, sheet_name: str) -> None:
        self.client = client
        self.sheet_name = sheet_name
        # person_id -> 1-based sheet row, from the most recent read
        self._rows: Dict[str, int] = {}

    @property
    def _range(self) -> str:
        escaped = self.sheet_name.replace("'", "''")
        return f"'{escaped}'"

    async def _read(self) -> List[List[Any]]:
        try:
            rows = await self.client.get_values(self._range)
        except (SheetsApiError, httpx.HTTPError) as exc:
            logger.error("Failed to read sheet %s: %s", self.sheet_name, exc)
            raise SourceUnavailable(f"Could not read attendance sheet: {exc}") from exc
        if not rows or not rows[0]:
            raise SourceUnavailable("Attendance sheet is empty")
        return rows

    def _remember_rows(self, rows: List[List[Any]]) -> None:
        self._rows = {
            person_id_for_row(number): number
            for number, row in enumerate(rows[1:], start=2)
            if _name(row)
        }

    async def fetch_matrix(self) -> RosterSnapshot:
        rows = await self._read()
        header = rows[0]
        columns: Dict[str, int] = {}
        for column, value in enumerate(header[1:], start=1):
            key = str(value)
            if key.strip() and key not in columns:
                columns[key] = column

        matrix: List[Person] = []
        for number, row in enumerate(rows[1:], start=2):
            name = _name(row)
            if not name:
                continue
            matrix.append(
                Person(
                    name=name,
                    person_id=person_id_for_row(number),
                    attendance={
                        date: is_present(_cell(row, column)) for date, column in columns.items()
                    },
                )
            )
        self._remember_rows(rows)
        logger.info("Loaded %d people across %d dates", len(matrix), len(columns))
        return RosterSnapshot(dates=order_dates(columns), matrix=matrix)

    async def list_names(self) -> List[str]:
        snapshot = await self.fetch_matrix()
        return [person.name for person in snapshot.matrix]

    def _locate_row(
        self,
        record: AttendanceRecord,
        rows: List[List[Any]],
        by_name: Dict[str, int],
    ) -> Optional[int]:
        if record.person_id:
            number = self._rows.get(record.person_id)
            if number is not None and number <= len(rows) and _name(rows[number - 1]) == record.name:
                return number
        return by_name.get(record.name)

    async def update_for_date(
        self, date: str, records: Sequence[AttendanceRecord]
    ) -> UpdateResult:
        rows = await self._read()
        header = rows[0]
        column = next(
            (index for index, value in enumerate(header) if index > 0 and str(value) == date),
            None,
        )
        if column is None:
            raise DateNotFound(date)

        by_name: Dict[str, int] = {}
        for number, row in enumerate(rows[1:], start=2):
            name = _name(row)
            if not name:
                continue
            if name in by_name:
                logger.warning("Duplicate roster name %r on rows %d and %d", name, by_name[name], number)
                continue
            by_name[name] = number

        pending: Dict[str, bool] = {}
        matched = 0
        skipped: List[str] = []
        for record in records:
            number = self._locate_row(record, rows, by_name)
            if number is None:
                logger.warning("No row for %r on %s; skipping", record.name, date)
                skipped.append(record.name)
                continue
            matched += 1
            ref = a1_cell(self.sheet_name, number, column)
            if is_present(_cell(rows[number - 1], column)) == record.present:
                # already holds the requested value
                pending.pop(ref, None)
                continue
            pending[ref] = record.present

        if pending:
            data = [{"range": ref, "values": [[present]]} for ref, present in pending.items()]
            try:
                await self.client.batch_update_values(data)
            except (SheetsApiError, httpx.HTTPError) as exc:
                logger.error("Batch write for %s failed: %s", date, exc)
                raise WriteFailed(f"Could not write attendance for {date}: {exc}") from exc

        self._remember_rows(rows)
        logger.info(
            "Attendance for %s: %d matched, %d written, %d skipped",
            date,
            matched,
            len(pending),
            len(skipped),
        )
        return UpdateResult(date=date, matched=matched, written=len(pending), skipped=skipped)


__all__ = [
    "RosterStore",
    "SheetValues",
    "is_present",
    "order_dates",
    "parse_date_key",
    "person_id_for_row",
]
