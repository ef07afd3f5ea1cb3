"""Custom exception hierarchy for the trade journal."""

from __future__ import annotations

from datetime import date


class JournalError(Exception):
    """Base exception for all trade journal errors."""

    code: str = "SERVER_ERROR"


# --- Configuration ---
class ConfigError(JournalError):
    """Invalid or missing configuration."""


# --- Ingestion ---
class IngestError(JournalError):
    """Uploaded orderbook could not be turned into trade legs."""

    code = "WRONG_CSV"


class NoFileError(IngestError):
    """Upload request carried no file."""

    code = "NO_FILE"


class UnsupportedFileTypeError(IngestError):
    """Uploaded file is not a CSV export."""

    code = "BAD_TYPE"


class FileTooLargeError(IngestError):
    """Uploaded file exceeds the configured size limit."""

    code = "FILE_TOO_LARGE"


class WrongFileError(IngestError):
    """File matches no known broker header or yields zero usable rows."""

    code = "WRONG_CSV"


# --- Authentication ---
class AuthenticationRequired(JournalError):
    """Caller did not identify a user."""

    code = "UNAUTHORIZED"


# --- Storage ---
class StorageError(JournalError):
    """Document store read/write failure."""


class SnapshotConflictError(StorageError):
    """A concurrent freeze already holds the active snapshot for this day.

    Callers should retry the freeze rather than treat it as fatal.
    """

    code = "CONFLICT"
    retryable = True

    def __init__(self, user_id: str, trading_date: date):
        self.user_id = user_id
        self.trading_date = trading_date
        super().__init__(
            f"Active snapshot conflict for user={user_id} date={trading_date.isoformat()}"
        )


# --- Daily plan ---
class InvalidDateError(JournalError):
    """A date parameter could not be read as a calendar day."""

    code = "BAD_DATE"


class InvalidPlanError(JournalError):
    """A daily plan payload failed validation."""

    code = "BAD_PLAN"
