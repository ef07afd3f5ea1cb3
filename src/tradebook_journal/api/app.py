"""Journal HTTP API: FastAPI application factory.

Routes::

    POST /trade-journal/upload-orderbook    multipart field ``orderbook``
    GET  /trade-journal/stats               last upload's stats for the user
    GET  /trade-calendar/month              ?year=&month=
    GET  /trade-calendar/day/{date}         YYYY-MM-DD
    GET  /daily-journal/plan                ?date=
    POST /daily-journal/plan                JSON plan for one date
    GET  /daily-journal/comparison          ?date=
    GET  /health

The caller is identified by the ``X-User-Id`` header, which an upstream
auth proxy is expected to set.  Requests to user routes without it are
rejected before their body is read.  Journal errors are returned as
``{"ok": false, "code", "message", "retryable"}`` with a status taken
from :data:`STATUS_BY_CODE`.

Usage::

    from tradebook_journal.api.app import create_app

    app = create_app(settings=load_settings("journal.toml"))
"""

from __future__ import annotations

import logging
import tempfile
from datetime import date
from pathlib import Path
from typing import Any

from fastapi import Body, Depends, FastAPI, File, Header, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from tradebook_journal.core.config import Settings
from tradebook_journal.core.errors import (
    AuthenticationRequired,
    JournalError,
    NoFileError,
)
from tradebook_journal.service import UploadService
from tradebook_journal.snapshots.calendar import CalendarService
from tradebook_journal.snapshots.plan import DailyJournalService
from tradebook_journal.storage import create_store

logger = logging.getLogger(__name__)

STATUS_BY_CODE: dict[str, int] = {
    "NO_FILE": 400,
    "BAD_DATE": 400,
    "BAD_PLAN": 422,
    "UNAUTHORIZED": 401,
    "FILE_TOO_LARGE": 413,
    "BAD_TYPE": 415,
    "WRONG_CSV": 422,
    "CONFLICT": 409,
    "SERVER_ERROR": 500,
}

# Paths that act for a user and so require X-User-Id
_USER_PATH_PREFIXES = ("/trade-journal/", "/trade-calendar/", "/daily-journal/")

_MESSAGES: dict[str, str] = {
    "NO_FILE": "No file uploaded.",
    "BAD_TYPE": "Only .csv files are accepted.",
    "UNAUTHORIZED": "Unauthorized.",
    "WRONG_CSV": "Wrong file uploaded. Please upload the orderbook CSV export.",
    "CONFLICT": "Another upload for the same day is in progress. Please retry.",
    "SERVER_ERROR": "Server error while processing the file.",
}


def _error_response(code: str, message: str | None = None, *, retryable: bool = False) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_CODE.get(code, 500),
        content={
            "ok": False,
            "code": code,
            "message": message or _MESSAGES.get(code, code),
            "retryable": retryable,
        },
    )


def require_user(x_user_id: str | None = Header(default=None)) -> str:
    """Dependency: the calling user's id, or 401."""
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationRequired("Unauthorized.")
    return x_user_id.strip()


async def _save_upload(upload: UploadFile, upload_dir: Path) -> Path:
    """Spool the multipart upload to a temp file under *upload_dir*."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(upload.filename or "").suffix or ".csv"
    with tempfile.NamedTemporaryFile(
        dir=upload_dir, prefix="orderbook-", suffix=suffix, delete=False,
    ) as handle:
        try:
            while chunk := await upload.read(1024 * 1024):
                handle.write(chunk)
        except BaseException:
            handle.close()
            Path(handle.name).unlink(missing_ok=True)
            raise
    return Path(handle.name)


def create_app(
    service: UploadService | None = None,
    calendar: CalendarService | None = None,
    settings: Settings | None = None,
    daily: DailyJournalService | None = None,
) -> FastAPI:
    """Create the journal FastAPI application.

    When *service*, *calendar* or *daily* are omitted they are built over
    the store selected by ``settings`` (see :func:`create_store`).
    """
    settings = settings or Settings()
    if service is None or calendar is None or daily is None:
        store = service.store if service is not None else create_store(settings)
        service = service or UploadService(store, settings)
        calendar = calendar or CalendarService(store)
        daily = daily or DailyJournalService(store)

    app = FastAPI(title="Trade Journal", docs_url=None, redoc_url=None)
    app.state.service = service
    app.state.calendar = calendar
    app.state.daily = daily
    app.state.settings = settings
    upload_dir = Path(settings.ingest.upload_dir)

    @app.middleware("http")
    async def user_header_middleware(request: Request, call_next):
        if request.url.path.startswith(_USER_PATH_PREFIXES):
            user_id = request.headers.get("x-user-id")
            if not user_id or not user_id.strip():
                return _error_response("UNAUTHORIZED")
        return await call_next(request)

    # ------------------------------------------------------------------
    # Trade journal
    # ------------------------------------------------------------------

    @app.post("/trade-journal/upload-orderbook")
    async def upload_orderbook(
        user_id: str = Depends(require_user),
        orderbook: UploadFile | None = File(default=None),
    ) -> dict[str, Any]:
        if orderbook is None or not orderbook.filename:
            raise NoFileError("No file uploaded.")
        service.check_file_type(orderbook.filename, orderbook.content_type)

        path = await _save_upload(orderbook, upload_dir)
        result = await service.process_upload(
            user_id,
            path,
            source_name=orderbook.filename,
            content_type=orderbook.content_type,
        )
        return result.to_dict()

    @app.get("/trade-journal/stats")
    async def journal_stats(user_id: str = Depends(require_user)) -> dict[str, Any]:
        return service.last_stats(user_id).to_dict()

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------

    @app.get("/trade-calendar/month")
    async def calendar_month(
        user_id: str = Depends(require_user),
        year: int = Query(..., ge=1970, le=9999),
        month: int = Query(...),
    ) -> dict[str, Any]:
        return await calendar.month_view(user_id, year, month)

    @app.get("/trade-calendar/day/{day}")
    async def calendar_day(day: str, user_id: str = Depends(require_user)) -> Any:
        try:
            trading_date = date.fromisoformat(day)
        except ValueError:
            return _error_response("BAD_DATE", f"Invalid date: {day!r} (expected YYYY-MM-DD)")
        return await calendar.day_view(user_id, trading_date)

    # ------------------------------------------------------------------
    # Daily plan journal
    # ------------------------------------------------------------------

    @app.get("/daily-journal/plan")
    async def get_daily_plan(
        user_id: str = Depends(require_user),
        day: str | None = Query(default=None, alias="date"),
    ) -> dict[str, Any]:
        return await daily.get_plan(user_id, day)

    @app.post("/daily-journal/plan")
    async def save_daily_plan(
        user_id: str = Depends(require_user),
        payload: dict[str, Any] = Body(...),
    ) -> dict[str, Any]:
        plan = await daily.save_plan(user_id, payload)
        return {"ok": True, "id": plan.id, "date": plan.plan_date.isoformat()}

    @app.get("/daily-journal/comparison")
    async def daily_comparison(
        user_id: str = Depends(require_user),
        day: str | None = Query(default=None, alias="date"),
    ) -> dict[str, Any]:
        return await daily.comparison(user_id, day)

    # ------------------------------------------------------------------
    # Health endpoint
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(JournalError)
    async def journal_error_handler(request: Request, exc: JournalError) -> JSONResponse:
        if exc.code == "SERVER_ERROR":
            logger.error("Journal error on %s: %s", request.url.path, exc)
            return _error_response("SERVER_ERROR")
        message = None if exc.code in ("WRONG_CSV", "CONFLICT") else str(exc)
        return _error_response(
            exc.code, message, retryable=getattr(exc, "retryable", False),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s", request.url.path)
        return _error_response("SERVER_ERROR")

    return app
