"""Configuration helpers for Roll Call."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_AUTH_CACHE_TTL_SECONDS = 600


@dataclass(slots=True)
class Settings:
    """Runtime configuration values loaded from environment variables."""

    spreadsheet_id: str
    sheet_name: str
    database_path: Path
    google_access_token: Optional[str] = None
    google_service_account_json: Optional[str] = None
    api_key: Optional[str] = None
    auth_cache_ttl_seconds: float = DEFAULT_AUTH_CACHE_TTL_SECONDS
    authorized_emails: Tuple[str, ...] = ()
    cors_origins: Tuple[str, ...] = field(default_factory=lambda: ("*",))


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from the environment, optionally from a specific file."""

    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    spreadsheet_id = os.getenv("SPREADSHEET_ID")
    access_token = os.getenv("GOOGLE_ACCESS_TOKEN")
    service_account_json = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON")

    if not spreadsheet_id:
        raise RuntimeError("SPREADSHEET_ID must be configured")
    if not access_token and not service_account_json:
        raise RuntimeError(
            "GOOGLE_ACCESS_TOKEN or GOOGLE_SERVICE_ACCOUNT_JSON must be configured"
        )

    db_path = Path(os.getenv("DATABASE_PATH", "roll_call.db")).expanduser()

    raw_ttl = os.getenv("AUTH_CACHE_TTL_SECONDS", str(DEFAULT_AUTH_CACHE_TTL_SECONDS))
    try:
        auth_cache_ttl_seconds = float(raw_ttl)
    except ValueError as exc:
        raise RuntimeError("AUTH_CACHE_TTL_SECONDS must be configured as a number") from exc

    return Settings(
        spreadsheet_id=spreadsheet_id,
        sheet_name=os.getenv("SHEET_NAME", "Sheet1"),
        database_path=db_path,
        google_access_token=access_token or None,
        google_service_account_json=service_account_json or None,
        api_key=os.getenv("API_KEY") or None,
        auth_cache_ttl_seconds=auth_cache_ttl_seconds,
        authorized_emails=_split_csv(os.getenv("AUTHORIZED_EMAILS")),
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS")) or ("*",),
    )


__all__ = ["Settings", "load_settings", "DEFAULT_AUTH_CACHE_TTL_SECONDS"]
