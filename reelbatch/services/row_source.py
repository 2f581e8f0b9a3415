"""Row Source - reads flagged work rows from a spreadsheet and writes results back."""

import csv
import io
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence
from urllib.parse import quote

import requests

from reelbatch.core.config import Settings
from reelbatch.core.exceptions import RowSourceError, WriteBackFailure
from reelbatch.models.schemas import WorkItem, WriteBackResult
from reelbatch.services.google_auth import build_google_service, load_credentials
from reelbatch.utils.time_utils import parse_int_prefix

# Half-width o/O and the full-width circle mark a row for execution
EXECUTION_FLAGS = frozenset({"○", "o", "O"})

FIRST_DATA_ROW = 2
MARKER_COLUMN = "A"
RESULT_COLUMN = "L"

PUBLIC_CSV_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/export?format=csv"
PUBLIC_SHEET_CSV_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/gviz/tq?tqx=out:csv&sheet={sheet}"

CSV_TIMEOUT_SECONDS = 30


def is_execution_flag(value: Any) -> bool:
    return str(value or "").strip() in EXECUTION_FLAGS


def parse_row(cells: Sequence[Any], row_index: int, default_duration: int = 20) -> WorkItem:
    """
    Build a WorkItem from the A-L cells of one sheet row.

    Missing or non-numeric numeric cells fall back to their defaults; an
    explicit number is kept as written except for durations of zero or less,
    which take the default.

    Args:
        cells: Row values starting at column A (may be shorter than 12)
        row_index: 1-based sheet row
        default_duration: Duration used for empty, zero or negative cells

    Returns:
        WorkItem
    """

    def cell(index: int) -> str:
        if index >= len(cells) or cells[index] is None:
            return ""
        return str(cells[index]).strip()

    duration = parse_int_prefix(cell(4), default_duration)
    if duration <= 0:
        duration = default_duration

    return WorkItem(
        row_index=row_index,
        image_url=cell(1),
        video_url=cell(2),
        audio_url=cell(3),
        duration=duration,
        output_file_name=cell(5) or None,
        video_start_time=cell(6) or "0:00",
        audio_start_time=cell(7) or "0:00",
        image_scale=parse_int_prefix(cell(8), 100),
        filter_color=cell(9) or "#000000",
        filter_opacity=parse_int_prefix(cell(10), 0),
        output_video_url=cell(11),
    )


def quote_sheet_name(sheet_name: str) -> str:
    return "'" + sheet_name.replace("'", "''") + "'"


def a1_cell(column: str, row_index: int, sheet_name: Optional[str] = None) -> str:
    """A1 reference for one cell, prefixed with the quoted sheet name when given."""
    if sheet_name:
        return f"{quote_sheet_name(sheet_name)}!{column}{row_index}"
    return f"{column}{row_index}"


class SheetCellWriter:
    """Writes single cells through the Sheets API v4."""

    def __init__(self, settings: Settings, logger: Any, service: Any = None):
        self.settings = settings
        self.logger = logger
        self._service = service

    def get_service(self) -> Any:
        if self._service is None:
            credentials = load_credentials(self.settings, self.logger)
            self._service = build_google_service("sheets", "v4", credentials)
        return self._service

    def write(self, spreadsheet_id: str, cell_range: str, value: str) -> None:
        """
        Set one cell with USER_ENTERED semantics.

        Raises:
            WriteBackFailure: If credentials are missing or the API call fails
        """
        try:
            service = self.get_service()
            service.spreadsheets().values().update(
                spreadsheetId=spreadsheet_id,
                range=cell_range,
                valueInputOption="USER_ENTERED",
                body={"values": [[value]]},
            ).execute()
        except Exception as e:
            raise WriteBackFailure(f"Sheets API update of {cell_range} failed: {e}") from e
        self.logger.debug(f"Updated {cell_range} = {value!r}")


class RowSource(ABC):
    """
    Source of flagged work rows.

    Reading rows may raise RowSourceError. Writing back is best-effort:
    ``record_result`` and ``clear_marker`` report failures as
    ``WriteBackResult(updated=False)`` and never raise.
    """

    def __init__(self, settings: Settings, logger: Any, writer: Optional[SheetCellWriter] = None):
        self.settings = settings
        self.logger = logger
        self.writer = writer

    @abstractmethod
    def fetch_rows(self, source_id: str, sheet_name: Optional[str], sheet_range: Optional[str]) -> list[list[str]]:
        """Return every row of the sheet, header included, as lists of cell strings."""

    def get_execution_rows(
        self,
        source_id: str,
        sheet_name: Optional[str] = None,
        sheet_range: Optional[str] = None,
    ) -> list[WorkItem]:
        """
        Return the rows whose execution flag is set, in sheet order.

        Raises:
            RowSourceError: If the sheet cannot be read
        """
        self.logger.info(f"Reading rows from spreadsheet {source_id} (sheet: {sheet_name or 'first sheet'})")
        rows = self.fetch_rows(source_id, sheet_name, sheet_range)

        items = []
        for offset, cells in enumerate(rows[FIRST_DATA_ROW - 1:]):
            if not cells or not is_execution_flag(cells[0]):
                continue
            row_index = FIRST_DATA_ROW + offset
            item = parse_row(cells, row_index, default_duration=self.settings.default_duration_seconds)
            self.logger.debug(
                f"Row {row_index}: image={'yes' if item.image_url else 'no'}, "
                f"video={'yes' if item.video_url else 'no'}, audio={'yes' if item.audio_url else 'no'}, "
                f"output={item.output_file_name}"
            )
            items.append(item)

        self.logger.info(f"Found {len(items)} rows flagged for execution out of {max(len(rows) - 1, 0)}")
        return items

    def record_result(
        self, source_id: str, row_index: int, published_url: str, sheet_name: Optional[str] = None
    ) -> WriteBackResult:
        """Write the published URL into the result column of a row."""
        return self._write(source_id, a1_cell(RESULT_COLUMN, row_index, sheet_name), published_url)

    def clear_marker(self, source_id: str, row_index: int, sheet_name: Optional[str] = None) -> WriteBackResult:
        """Clear the execution flag of a row."""
        return self._write(source_id, a1_cell(MARKER_COLUMN, row_index, sheet_name), "")

    def _write(self, source_id: str, cell_range: str, value: str) -> WriteBackResult:
        if self.writer is None:
            message = f"Write-back unavailable (no credentials), {cell_range} left unchanged"
            self.logger.warning(message)
            return WriteBackResult(updated=False, message=message)
        try:
            self.writer.write(source_id, cell_range, value)
        except WriteBackFailure as e:
            self.logger.warning(f"Write-back failed: {e}")
            return WriteBackResult(updated=False, message=str(e))
        return WriteBackResult(updated=True, message=f"Updated {cell_range}")


class SheetsApiRowSource(RowSource):
    """Reads and writes rows through the authenticated Sheets API."""

    def __init__(self, settings: Settings, logger: Any, writer: Optional[SheetCellWriter] = None):
        super().__init__(settings, logger, writer or SheetCellWriter(settings, logger))

    def fetch_rows(self, source_id: str, sheet_name: Optional[str], sheet_range: Optional[str]) -> list[list[str]]:
        cell_range = sheet_range or self.settings.sheet_range
        if sheet_name:
            cell_range = f"{quote_sheet_name(sheet_name)}!{cell_range}"
        try:
            response = (
                self.writer.get_service()
                .spreadsheets()
                .values()
                .get(spreadsheetId=source_id, range=cell_range)
                .execute()
            )
        except Exception as e:
            raise RowSourceError(f"Failed to read {cell_range} from spreadsheet {source_id}: {e}") from e
        return [[str(value) for value in row] for row in response.get("values", [])]


class PublicCsvRowSource(RowSource):
    """
    Reads rows from the public CSV export (no authentication).

    The spreadsheet must be shared as "anyone with the link can view".
    Write-back needs a SheetCellWriter; without one every write reports
    ``updated=False``.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        writer: Optional[SheetCellWriter] = None,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(settings, logger, writer)
        self.session = session or requests.Session()

    @staticmethod
    def csv_url(spreadsheet_id: str, sheet_name: Optional[str] = None) -> str:
        if sheet_name:
            return PUBLIC_SHEET_CSV_URL.format(spreadsheet_id=spreadsheet_id, sheet=quote(sheet_name, safe=""))
        return PUBLIC_CSV_URL.format(spreadsheet_id=spreadsheet_id)

    def fetch_rows(self, source_id: str, sheet_name: Optional[str], sheet_range: Optional[str]) -> list[list[str]]:
        url = self.csv_url(source_id, sheet_name)
        self.logger.debug(f"CSV URL: {url}")
        try:
            response = self.session.get(
                url,
                timeout=CSV_TIMEOUT_SECONDS,
                headers={"User-Agent": self.settings.download_user_agent},
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RowSourceError(f"Failed to download CSV export of {source_id}: {e}") from e

        text = response.content.decode("utf-8-sig", errors="replace")
        rows = [[cell.strip() for cell in row] for row in csv.reader(io.StringIO(text))]
        self.logger.debug(f"CSV export: {len(text)} characters, {len(rows)} rows")
        return rows


def has_service_account(settings: Settings) -> bool:
    return bool(settings.google_config or settings.google_credentials_file)


def create_row_source(settings: Settings, logger: Any) -> RowSource:
    """
    Select the row source variant for ``row_source_mode``.

    Raises:
        ValueError: For an unknown mode
    """
    mode = settings.row_source_mode.lower()
    if mode == "public":
        writer = SheetCellWriter(settings, logger) if has_service_account(settings) else None
        if writer is None:
            logger.warning("No service account configured: sheet write-back is disabled")
        return PublicCsvRowSource(settings, logger, writer=writer)
    if mode in ("service_account", "oauth"):
        return SheetsApiRowSource(settings, logger)
    raise ValueError(f"Unknown ROW_SOURCE_MODE '{settings.row_source_mode}' (expected public, service_account or oauth)")
