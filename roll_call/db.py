"""SQLite persistence layer for the authorized-user whitelist."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from .models import AuthorizedUser

Connection = sqlite3.Connection
Row = sqlite3.Row


def _to_user(row: Row) -> AuthorizedUser:
    return AuthorizedUser(email=row["email"], added_by=row["added_by"], added_at=row["added_at"])


class Database:
    """Lightweight wrapper around SQLite operations."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _initialize(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS authorized_users (
                    email TEXT PRIMARY KEY,
                    added_by TEXT NOT NULL,
                    added_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    # region Authorized users
    def get_authorized_users(self) -> List[AuthorizedUser]:
        with self.connect() as conn:
            cursor = conn.execute("SELECT * FROM authorized_users ORDER BY email")
            return [_to_user(row) for row in cursor.fetchall()]

    def get_authorized_user(self, email: str) -> Optional[AuthorizedUser]:
        with self.connect() as conn:
            cursor = conn.execute("SELECT * FROM authorized_users WHERE email = ?", (email,))
            row = cursor.fetchone()
            return _to_user(row) if row else None

    def add_authorized_user(self, user: AuthorizedUser) -> bool:
        """Insert ``user``; returns False when the email is already stored."""

        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO authorized_users (email, added_by, added_at)
                VALUES (:email, :added_by, :added_at)
                """,
                {"email": user.email, "added_by": user.added_by, "added_at": user.added_at},
            )
            conn.commit()
            return cursor.rowcount > 0

    def remove_authorized_user(self, email: str) -> bool:
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM authorized_users WHERE email = ?", (email,))
            conn.commit()
            return cursor.rowcount > 0

    # endregion


__all__ = ["Database"]
