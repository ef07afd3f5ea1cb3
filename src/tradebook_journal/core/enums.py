"""Enumerations used across the trade journal."""

from enum import Enum


class Direction(str, Enum):
    BUY = "Buy"
    SELL = "Sell"

    @property
    def opposite(self) -> "Direction":
        return Direction.SELL if self is Direction.BUY else Direction.BUY

    @classmethod
    def parse(cls, raw: str | None) -> "Direction | None":
        """Map broker spellings (``B``, ``buy``, ``SELL``...) to a direction."""
        if not raw:
            return None
        value = raw.strip().lower()
        if value in ("buy", "b"):
            return cls.BUY
        if value in ("sell", "s"):
            return cls.SELL
        return None


class SnapshotState(str, Enum):
    """Lifecycle of a day snapshot for one (user, trading date)."""

    ACTIVE = "active"
    SUPERSEDED = "superseded"


class UploadOutcome(str, Enum):
    OK = "ok"
    NO_FILE = "no_file"
    BAD_TYPE = "bad_type"
    UNAUTHORIZED = "unauthorized"
    FILE_TOO_LARGE = "file_too_large"
    WRONG_CSV = "wrong_csv"
    CONFLICT = "conflict"
    SERVER_ERROR = "server_error"
