"""Roll Call: spreadsheet-backed attendance tracking."""

__version__ = "1.0.0"
