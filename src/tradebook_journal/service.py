"""Upload service: one orderbook file in, statistics and snapshots out.

Steps for one upload::

    1. reject calls without a user, before touching the file
    2. check extension and size, read bytes, hash them
    3. parse (format errors stop here, nothing is persisted)
    4. process_trades -> Stats, cached per user
    5. record executed legs idempotently
    6. record the orderbook, reusing the row for a known file hash
    7. freeze day snapshots

The uploaded temp file is deleted on every exit path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tradebook_journal.core.clock import IClock, WallClock
from tradebook_journal.core.config import Settings
from tradebook_journal.core.enums import UploadOutcome
from tradebook_journal.core.errors import (
    AuthenticationRequired,
    FileTooLargeError,
    JournalError,
    NoFileError,
    UnsupportedFileTypeError,
)
from tradebook_journal.core.ids import file_hash
from tradebook_journal.core.interfaces import IJournalStore
from tradebook_journal.core.models import DaySnapshot, ExecutedLeg, OrderbookMeta
from tradebook_journal.ingest.parsers import parse_tradebook
from tradebook_journal.journal.cache import StatsCache
from tradebook_journal.journal.pipeline import process_trades
from tradebook_journal.journal.record import TradeLeg
from tradebook_journal.journal.stats import Stats
from tradebook_journal.observability.logger import new_trace_id
from tradebook_journal.observability.metrics import (
    record_duplicate_upload,
    record_upload,
)
from tradebook_journal.snapshots.freezer import SnapshotFreezer

logger = logging.getLogger(__name__)

_CSV_MIME_HINTS = ("csv", "ms-excel", "text/plain")


@dataclass
class UploadResult:
    """What one successful upload produced."""

    stats: Stats
    orderbook: OrderbookMeta
    duplicate: bool
    snapshots: list[DaySnapshot] = field(default_factory=list)
    legs_recorded: int = 0
    parser: str = ""
    rows_dropped: int = 0

    def to_dict(self) -> dict[str, Any]:
        scrips = self.stats.scrip_summary
        return {
            "ok": True,
            "message": (
                f"Orderbook uploaded, {self.legs_recorded} executed trade(s) "
                f"recorded (new), and day snapshots frozen."
            ),
            "source_id": self.orderbook.id,
            "file_hash": self.orderbook.file_hash,
            "duplicate": self.duplicate,
            "parser": self.parser,
            "rows_dropped": self.rows_dropped,
            "days_frozen": len(self.snapshots),
            "headline": {"net_pnl": float(self.stats.net_pnl)},
            "totals_check": {
                "net_pnl_from_scrips": float(sum(r.net_realized for r in scrips)),
                "charges_from_scrips": float(sum(r.charges for r in scrips)),
            },
        }


def _executed_legs(user_id: str, legs: list[TradeLeg]) -> list[ExecutedLeg]:
    return [
        ExecutedLeg(
            user_id=user_id,
            trading_date=leg.date,
            symbol=leg.symbol.strip(),
            direction=leg.direction,
            price=leg.price,
            quantity=leg.quantity,
            trade_time=leg.time,
            charges=leg.charges,
        )
        for leg in legs
        if leg.is_usable
    ]


class UploadService:
    """Processes orderbook uploads against a journal store.

    Parameters
    ----------
    store : IJournalStore
        Where orderbooks, executed legs and snapshots are written.
    settings : Settings
        Thresholds and limits.  Defaults to ``Settings()``.
    cache : StatsCache | None
        Per-user last-stats cache.  Built from ``settings.cache`` if omitted.
    clock : IClock | None
        Time source for the cache and snapshot stamps.
    """

    def __init__(
        self,
        store: IJournalStore,
        settings: Settings | None = None,
        *,
        cache: StatsCache | None = None,
        clock: IClock | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or Settings()
        self._clock = clock or WallClock()
        self.cache = cache or StatsCache(
            ttl_seconds=self._settings.cache.ttl_seconds,
            max_entries=self._settings.cache.max_entries,
            clock=self._clock,
        )
        self.freezer = SnapshotFreezer(
            store,
            conflict_retries=self._settings.snapshots.conflict_retries,
            broker=self._settings.snapshots.broker,
            clock=self._clock,
        )

    @property
    def store(self) -> IJournalStore:
        return self._store

    def check_file_type(self, filename: str | None, content_type: str | None = None) -> None:
        """Raise unless the upload looks like a CSV export."""
        name = (filename or "").lower()
        if any(name.endswith(ext) for ext in self._settings.ingest.allowed_extensions):
            return
        mime = (content_type or "").lower()
        if mime and any(hint in mime for hint in _CSV_MIME_HINTS):
            return
        raise UnsupportedFileTypeError("Only .csv files are accepted.")

    def last_stats(self, user_id: str | None) -> Stats:
        """Cached stats of the user's latest upload, or an empty result."""
        if not user_id:
            return Stats()
        return self.cache.get(user_id) or Stats()

    async def process_upload(
        self,
        user_id: str | None,
        path: Path | None,
        *,
        source_name: str | None = None,
        content_type: str | None = None,
    ) -> UploadResult:
        """Run the full upload pipeline for one file.

        Raises:
            AuthenticationRequired: no user id.
            NoFileError: no file.
            UnsupportedFileTypeError: not a CSV.
            FileTooLargeError: above ``ingest.max_file_bytes``.
            WrongFileError: unrecognized header or no usable rows.
            SnapshotConflictError: snapshot race not resolved by retries.
        """
        new_trace_id()
        started = self._clock.monotonic()
        outcome = UploadOutcome.SERVER_ERROR.value
        try:
            if not user_id:
                raise AuthenticationRequired("Unauthorized.")
            if path is None:
                raise NoFileError("No file uploaded.")
            name = source_name or path.name
            self.check_file_type(name, content_type)

            data = path.read_bytes()
            if len(data) > self._settings.ingest.max_file_bytes:
                raise FileTooLargeError(
                    f"File is {len(data)} bytes; limit is {self._settings.ingest.max_file_bytes}"
                )
            digest = file_hash(data)

            parsed = parse_tradebook(
                data.decode("utf-8-sig", errors="replace"),
                day_first=self._settings.ingest.day_first,
            )

            stats = process_trades(parsed.legs, self._settings)
            self.cache.put(user_id, stats)

            legs_recorded = await self._store.upsert_executed_legs(
                _executed_legs(user_id, parsed.legs),
            )

            meta, created = await self._store.get_or_create_orderbook(
                OrderbookMeta(
                    user_id=user_id,
                    file_hash=digest,
                    source_name=name,
                    size=len(data),
                    broker=parsed.parser,
                    uploaded_at=self._clock.now(),
                )
            )
            if not created:
                record_duplicate_upload()
                logger.info(
                    "Re-upload of known file %s for user %s, reusing orderbook %s",
                    digest[:12], user_id, meta.id,
                )

            snapshots = await self.freezer.freeze_round_trips(
                user_id, meta.id, stats.trades, broker=parsed.parser,
            )

            outcome = UploadOutcome.OK.value
            return UploadResult(
                stats=stats,
                orderbook=meta,
                duplicate=not created,
                snapshots=snapshots,
                legs_recorded=legs_recorded,
                parser=parsed.parser,
                rows_dropped=parsed.dropped,
            )
        except JournalError as exc:
            outcome = exc.code.lower()
            logger.info("Upload rejected for user %s: %s (%s)", user_id, exc.code, exc)
            raise
        except Exception:
            logger.exception("Upload failed for user %s", user_id)
            raise
        finally:
            if path is not None:
                path.unlink(missing_ok=True)
            record_upload(outcome, self._clock.monotonic() - started)
