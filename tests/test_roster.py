from __future__ import annotations

import asyncio

import pytest

from roll_call.errors import DateNotFound, SourceUnavailable, WriteFailed
from roll_call.models import AttendanceRecord
from roll_call.roster import RosterStore, is_present, order_dates
from roll_call.sheets_client import a1_cell, a1_column
from roll_call.view_model import AttendanceViewModel, ViewState

from .conftest import FakeSheet, unauthenticated_sheets_client


def test_fetch_matrix_reads_header_and_rows(roster):
    snapshot = asyncio.run(roster.fetch_matrix())

    assert snapshot.dates == ["7/20/2025", "7/13/2025"]
    assert [person.name for person in snapshot.matrix] == [
        "Ainsa, Jeff",
        "Smith, Jane",
        "Armstrong, Ellie",
    ]
    jeff, jane, ellie = snapshot.matrix
    assert jeff.attendance == {"7/13/2025": True, "7/20/2025": False}
    # trailing empty cells are truncated by the API and read as absent
    assert jane.attendance == {"7/13/2025": False, "7/20/2025": False}
    assert ellie.attendance == {"7/13/2025": True, "7/20/2025": True}
    assert [person.person_id for person in snapshot.matrix] == ["row-2", "row-3", "row-4"]


def test_fetch_matrix_ignores_blank_names_and_blank_headers():
    sheet = FakeSheet(
        [
            ["Name", "7/6/2025", "", "7/13/2025"],
            ["", "TRUE", "", "TRUE"],
            ["Doe, John", "TRUE", "TRUE", "no"],
        ]
    )
    snapshot = asyncio.run(RosterStore(sheet, "Sheet1").fetch_matrix())

    assert snapshot.dates == ["7/13/2025", "7/6/2025"]
    assert len(snapshot.matrix) == 1
    assert snapshot.matrix[0].attendance == {"7/6/2025": True, "7/13/2025": False}
    assert snapshot.matrix[0].person_id == "row-3"


@pytest.mark.parametrize(
    "value, expected",
    [
        (True, True),
        ("TRUE", True),
        ("true", True),
        (" True ", True),
        (False, False),
        ("FALSE", False),
        ("yes", False),
        ("", False),
        (1, False),
        (None, False),
    ],
)
def test_is_present(value, expected):
    assert is_present(value) is expected


def test_order_dates_puts_most_recent_first_and_keeps_unparseable_last():
    assert order_dates(["7/6/2025", "Notes", "12/28/2024", "7/13/2025"]) == [
        "7/13/2025",
        "7/6/2025",
        "12/28/2024",
        "Notes",
    ]


def test_fetch_matrix_with_zero_rows_is_source_unavailable():
    with pytest.raises(SourceUnavailable):
        asyncio.run(RosterStore(FakeSheet([]), "Sheet1").fetch_matrix())


def test_fetch_matrix_read_failure_is_source_unavailable(fake_sheet, roster):
    fake_sheet.fail_reads = True
    with pytest.raises(SourceUnavailable):
        asyncio.run(roster.fetch_matrix())


def test_token_refresh_failure_is_source_unavailable():
    requests = []
    roster = RosterStore(unauthenticated_sheets_client(requests), "Sheet1")

    with pytest.raises(SourceUnavailable):
        asyncio.run(roster.fetch_matrix())
    assert requests == []


def test_token_refresh_failure_leaves_view_model_in_load_error():
    view_model = AttendanceViewModel(RosterStore(unauthenticated_sheets_client([]), "Sheet1"))

    assert asyncio.run(view_model.load_all()) is False
    assert view_model.state is ViewState.LOAD_ERROR
    assert "token endpoint unreachable" in view_model.error


def test_header_only_sheet_is_an_empty_roster():
    snapshot = asyncio.run(RosterStore(FakeSheet([["Name", "7/20/2025"]]), "Sheet1").fetch_matrix())
    assert snapshot.dates == ["7/20/2025"]
    assert snapshot.matrix == []


def test_update_for_date_writes_changed_cells_in_one_batch(fake_sheet, roster):
    result = asyncio.run(
        roster.update_for_date(
            "7/20/2025",
            [
                AttendanceRecord("Ainsa, Jeff", True),
                AttendanceRecord("Smith, Jane", True),
                AttendanceRecord("Armstrong, Ellie", True),
            ],
        )
    )

    assert result.applied
    assert result.matched == 3
    assert result.written == 2
    assert result.skipped == []
    assert len(fake_sheet.batches) == 1
    assert {entry["range"] for entry in fake_sheet.batches[0]} == {"'Sheet1'!C2", "'Sheet1'!C3"}
    assert fake_sheet.cell(2, 2) == "TRUE"
    assert fake_sheet.cell(3, 2) == "TRUE"


def test_update_for_unknown_date_raises_and_writes_nothing(fake_sheet, roster):
    with pytest.raises(DateNotFound) as excinfo:
        asyncio.run(roster.update_for_date("7/27/2025", [AttendanceRecord("Smith, Jane", True)]))

    assert excinfo.value.date == "7/27/2025"
    assert fake_sheet.batches == []


def test_update_date_match_is_exact(fake_sheet, roster):
    with pytest.raises(DateNotFound):
        asyncio.run(roster.update_for_date("07/20/2025", [AttendanceRecord("Smith, Jane", True)]))
    assert fake_sheet.batches == []


def test_unknown_names_are_skipped(fake_sheet, roster):
    result = asyncio.run(
        roster.update_for_date(
            "7/13/2025",
            [AttendanceRecord("Smith, Jane", True), AttendanceRecord("Nobody, Here", True)],
        )
    )

    assert result.applied
    assert result.matched == 1
    assert result.skipped == ["Nobody, Here"]
    assert fake_sheet.cell(3, 1) == "TRUE"


def test_no_matching_names_is_a_soft_failure(fake_sheet, roster):
    result = asyncio.run(
        roster.update_for_date("7/13/2025", [AttendanceRecord("Nobody, Here", True)])
    )

    assert not result.applied
    assert result.written == 0
    assert result.skipped == ["Nobody, Here"]
    assert fake_sheet.batches == []


def test_saving_the_loaded_values_writes_nothing(fake_sheet, roster):
    snapshot = asyncio.run(roster.fetch_matrix())
    before = [list(row) for row in fake_sheet.rows]

    for date in snapshot.dates:
        records = [
            AttendanceRecord(p.name, p.attendance[date], p.person_id) for p in snapshot.matrix
        ]
        result = asyncio.run(roster.update_for_date(date, records))
        assert result.matched == 3
        assert result.written == 0

    assert fake_sheet.batches == []
    assert fake_sheet.rows == before


def test_batch_failure_is_write_failed(fake_sheet, roster):
    fake_sheet.fail_writes = True
    with pytest.raises(WriteFailed):
        asyncio.run(roster.update_for_date("7/13/2025", [AttendanceRecord("Smith, Jane", True)]))
    assert fake_sheet.cell(3, 1) == "FALSE"


def test_person_id_resolves_duplicate_names():
    sheet = FakeSheet(
        [
            ["Name", "7/20/2025"],
            ["Lee, Sam", "FALSE"],
            ["Lee, Sam", "FALSE"],
        ]
    )
    store = RosterStore(sheet, "Sheet1")
    snapshot = asyncio.run(store.fetch_matrix())
    second = snapshot.matrix[1]

    asyncio.run(
        store.update_for_date("7/20/2025", [AttendanceRecord(second.name, True, second.person_id)])
    )

    assert sheet.cell(2, 1) == "FALSE"
    assert sheet.cell(3, 1) == "TRUE"


def test_stale_person_id_falls_back_to_name():
    sheet = FakeSheet([["Name", "7/20/2025"], ["Ainsa, Jeff", "FALSE"], ["Smith, Jane", "FALSE"]])
    store = RosterStore(sheet, "Sheet1")
    asyncio.run(store.fetch_matrix())
    # someone inserts a row above Jane after the roster was loaded
    sheet.rows.insert(2, ["Doe, John", "FALSE"])

    asyncio.run(store.update_for_date("7/20/2025", [AttendanceRecord("Smith, Jane", True, "row-3")]))

    assert sheet.cell(3, 1) == "FALSE"
    assert sheet.cell(4, 1) == "TRUE"


def test_update_addresses_columns_past_z():
    dates = [f"1/{day}/2025" for day in range(1, 31)]
    sheet = FakeSheet([["Name", *dates], ["Smith, Jane"]])
    store = RosterStore(sheet, "Sheet1")

    asyncio.run(store.update_for_date("1/30/2025", [AttendanceRecord("Smith, Jane", True)]))

    assert sheet.batches[0][0]["range"] == "'Sheet1'!AE2"
    assert sheet.cell(2, 30) == "TRUE"


@pytest.mark.parametrize(
    "index, letters",
    [(0, "A"), (1, "B"), (25, "Z"), (26, "AA"), (51, "AZ"), (52, "BA"), (701, "ZZ"), (702, "AAA")],
)
def test_a1_column(index, letters):
    assert a1_column(index) == letters


def test_a1_cell_quotes_sheet_names():
    assert a1_cell("Sunday School", 4, 2) == "'Sunday School'!C4"
    assert a1_cell("Kids' Class", 2, 0) == "'Kids'' Class'!A2"


def test_a1_column_rejects_negative_offsets():
    with pytest.raises(ValueError):
        a1_column(-1)


def test_token_refresh_failure_on_write_is_write_failed(sheet_rows):
    requests = []
    client = unauthenticated_sheets_client(requests, rows=sheet_rows, working_refreshes=1)
    roster = RosterStore(client, "Sheet1")

    with pytest.raises(WriteFailed):
        asyncio.run(roster.update_for_date("7/13/2025", [AttendanceRecord("Smith, Jane", True)]))
    # only the read reached the API
    assert [request.method for request in requests] == ["GET"]
