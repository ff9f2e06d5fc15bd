"""Google Sheets grid client.

This module is the only place that talks to the Google Sheets API.  It
exposes the small, range addressed surface area that the store relies on
(:class:`GridClient`) and implements it on top of ``googleapiclient``:

* Worksheet titles are always quoted for A1 notation and column letters are
  computed by :func:`sheetdb.columns.column_letter`, so ranges never fail to
  parse because of spaces or apostrophes in a sheet name.
* Transient API failures (rate limiting and 5xx responses) are retried with a
  short exponential backoff.  Anything else is surfaced immediately.
* All failures are raised as subclasses of
  :class:`sheetdb.errors.RemoteFailureError` so that callers never need to know
  about ``HttpError``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sheetdb.auth import load_credentials
from sheetdb.columns import a1_range
from sheetdb.errors import DuplicateNameError, InvalidUsageError, RemoteFailureError
from sheetdb.models import SheetProperties
from sheetdb.settings import StoreSettings

logger = logging.getLogger(__name__)

RETRIABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
BACKOFF_SCHEDULE = (1, 2, 4, 8, 16)


class GridClient(Protocol):
    """Operations the store needs from a remote two-dimensional grid."""

    def authenticate(self) -> None: ...

    def list_sheets(self) -> List[SheetProperties]: ...

    def create_sheet(self, title: str) -> List[SheetProperties]: ...

    def apply_header_style(self, sheet_id: int) -> None: ...

    def read_range(self, sheet: str, start: str, end: str) -> List[List[Any]]: ...

    def write_range(self, sheet: str, start: str, end: str, rows: Sequence[Sequence[Any]]) -> None: ...

    def insert_rows(self, sheet_id: int, start_index: int, count: int) -> None: ...

    def remove_rows(self, sheet_id: int, start_index: int, count: int) -> None: ...


def _http_status(exc: HttpError) -> int:
    status = getattr(exc, "status_code", None)
    if status is not None:
        try:
            return int(status)
        except (TypeError, ValueError):
            return 0
    resp = getattr(exc, "resp", None)
    if resp is not None:
        try:
            return int(getattr(resp, "status", 0))
        except (TypeError, ValueError):
            return 0
    return 0


class GoogleSheetsGridClient:
    """Concrete :class:`GridClient` that speaks to Google Sheets v4."""

    def __init__(
        self,
        spreadsheet_id: str,
        *,
        settings: Optional[StoreSettings] = None,
        service=None,
        credentials=None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._settings = settings or StoreSettings(spreadsheet_id=spreadsheet_id)
        self._service = service
        self._credentials = credentials
        self._sleep = sleep

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------
    def authenticate(self) -> None:
        """Build the API service, loading credentials on first use."""

        if self._service is not None:
            return
        if self._credentials is None:
            self._credentials = load_credentials(self._settings)
        try:
            self._service = build("sheets", "v4", credentials=self._credentials, cache_discovery=False)
        except HttpError as exc:
            raise RemoteFailureError(str(exc), status=_http_status(exc)) from exc
        logger.debug("Sheets service ready for %s", self._spreadsheet_id)

    def _require_service(self):
        if self._service is None:
            self.authenticate()
        return self._service

    def _execute(self, request, description: str) -> Dict[str, Any]:
        """Execute ``request`` applying exponential backoff for retriable errors."""

        attempt = 0
        while True:
            try:
                return request.execute() or {}
            except HttpError as exc:
                status = _http_status(exc)
                if status in RETRIABLE_STATUSES and attempt < self._settings.max_retries:
                    delay = BACKOFF_SCHEDULE[min(attempt, len(BACKOFF_SCHEDULE) - 1)]
                    attempt += 1
                    logger.warning(
                        "Sheets API %s error (%s). Retrying in %ss (%d/%d)",
                        description,
                        status,
                        delay,
                        attempt,
                        self._settings.max_retries,
                    )
                    self._sleep(delay)
                    continue
                raise RemoteFailureError(f"Sheets API {description} failed: {exc}", status=status) from exc

    def _batch_update(self, requests: List[Mapping[str, Any]], description: str, **extra: Any) -> Dict[str, Any]:
        body: Dict[str, Any] = {"requests": requests}
        body.update(extra)
        request = self._require_service().spreadsheets().batchUpdate(
            spreadsheetId=self._spreadsheet_id,
            body=body,
        )
        return self._execute(request, description)

    @staticmethod
    def _sheets_from(payload: Mapping[str, Any]) -> List[SheetProperties]:
        sheets = payload.get("sheets", []) if isinstance(payload, Mapping) else []
        return [SheetProperties.from_api(sheet.get("properties", {})) for sheet in sheets]

    # ------------------------------------------------------------------
    # Spreadsheet structure
    # ------------------------------------------------------------------
    def list_sheets(self) -> List[SheetProperties]:
        request = self._require_service().spreadsheets().get(
            spreadsheetId=self._spreadsheet_id,
            includeGridData=False,
        )
        return self._sheets_from(self._execute(request, "spreadsheets.get"))

    def create_sheet(self, title: str) -> List[SheetProperties]:
        """Add a sheet called ``title`` and return the updated sheet list."""

        try:
            response = self._batch_update(
                [{"addSheet": {"properties": {"title": title}}}],
                "addSheet",
                includeSpreadsheetInResponse=True,
            )
        except RemoteFailureError as exc:
            if exc.status == 400 and "already exists" in str(exc).lower():
                raise DuplicateNameError(f"A sheet named {title!r} already exists", status=400) from exc
            raise
        logger.info("Created sheet %s", title)
        return self._sheets_from(response.get("updatedSpreadsheet", {}))

    def apply_header_style(self, sheet_id: int) -> None:
        """Bold and freeze the header row of ``sheet_id``."""

        self._batch_update(
            [
                {
                    "repeatCell": {
                        "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1},
                        "cell": {"userEnteredFormat": {"textFormat": {"bold": True}}},
                        "fields": "userEnteredFormat.textFormat.bold",
                    }
                },
                {
                    "updateSheetProperties": {
                        "properties": {"sheetId": sheet_id, "gridProperties": {"frozenRowCount": 1}},
                        "fields": "gridProperties.frozenRowCount",
                    }
                },
            ],
            "repeatCell",
        )

    def insert_rows(self, sheet_id: int, start_index: int, count: int) -> None:
        self._batch_update(
            [
                {
                    "insertDimension": {
                        "range": {
                            "sheetId": sheet_id,
                            "dimension": "ROWS",
                            "startIndex": start_index,
                            "endIndex": start_index + count,
                        },
                        "inheritFromBefore": False,
                    }
                }
            ],
            "insertDimension",
        )

    def remove_rows(self, sheet_id: int, start_index: int, count: int) -> None:
        logger.debug("Removing %d row(s) at %d from sheet %s", count, start_index, sheet_id)
        self._batch_update(
            [
                {
                    "deleteDimension": {
                        "range": {
                            "sheetId": sheet_id,
                            "dimension": "ROWS",
                            "startIndex": start_index,
                            "endIndex": start_index + count,
                        }
                    }
                }
            ],
            "deleteDimension",
        )

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------
    def read_range(self, sheet: str, start: str, end: str) -> List[List[Any]]:
        request = self._require_service().spreadsheets().values().get(
            spreadsheetId=self._spreadsheet_id,
            range=a1_range(sheet, start, end),
            majorDimension="ROWS",
        )
        payload = self._execute(request, "values.get")
        return [list(row) for row in payload.get("values", [])]

    def write_range(self, sheet: str, start: str, end: str, rows: Sequence[Sequence[Any]]) -> None:
        request = self._require_service().spreadsheets().values().update(
            spreadsheetId=self._spreadsheet_id,
            range=a1_range(sheet, start, end),
            valueInputOption=self._settings.value_input_option,
            body={"majorDimension": "ROWS", "values": [list(row) for row in rows]},
        )
        self._execute(request, "values.update")


def build_client(settings: StoreSettings) -> GoogleSheetsGridClient:
    """Factory helper used by higher level modules to construct a client."""

    if not settings.spreadsheet_id:
        raise InvalidUsageError("A spreadsheet id is required.")
    return GoogleSheetsGridClient(settings.spreadsheet_id, settings=settings)


__all__ = [
    "BACKOFF_SCHEDULE",
    "GoogleSheetsGridClient",
    "GridClient",
    "RETRIABLE_STATUSES",
    "build_client",
]
