"""MCP server exposing Roll Call attendance tools."""

from __future__ import annotations

import asyncio
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .api import build_sheets_client
from .config import load_settings
from .errors import ValidationError
from .roster import RosterStore
from .service import AttendanceService
from .view_model import format_date_for_display, project

mcp = FastMCP("roll-call")

_service: Optional[AttendanceService] = None
_write_lock = asyncio.Lock()


def get_service() -> AttendanceService:
    """Get or create the attendance service (lazy initialization)."""
    global _service
    if _service is None:
        settings = load_settings()
        _service = AttendanceService(RosterStore(build_sheets_client(settings), settings.sheet_name))
    return _service


@mcp.tool()
async def list_dates() -> dict:
    """Return the attendance dates, most recent first."""

    snapshot = await get_service().roster.fetch_matrix()
    return {
        "dates": [
            {"key": date, "label": format_date_for_display(date)} for date in snapshot.dates
        ]
    }


@mcp.tool()
async def get_attendance(date: Optional[str] = None) -> dict:
    """Return who was present on the date (defaults to the most recent date)."""

    snapshot = await get_service().roster.fetch_matrix()
    if not snapshot.dates:
        return {"date": None, "attendance": []}
    target = date or snapshot.dates[0]
    if target not in snapshot.dates:
        raise ValueError(f"Unknown date {target}. Available: {', '.join(snapshot.dates)}")
    records = project(snapshot.matrix, target)
    return {
        "date": target,
        "present": sum(1 for record in records if record.present),
        "attendance": [record.to_payload() for record in records],
    }


@mcp.tool()
async def mark_attendance(date: str, name: str, present: bool = True) -> dict:
    """Mark one person present or absent for a date."""

    async with _write_lock:
        try:
            return await get_service().update_attendance(
                {"date": date, "attendance": [{"name": name, "present": present}]}
            )
        except ValidationError as exc:
            raise ValueError("; ".join(exc.details) or exc.message) from exc


__all__ = ["mcp", "list_dates", "get_attendance", "mark_attendance", "get_service"]
