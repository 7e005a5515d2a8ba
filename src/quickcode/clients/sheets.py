"""Google Sheets client for the ledger and lookup tabs."""

import logging
from pathlib import Path
from typing import Any, Protocol

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError

from ..exceptions import ConfigurationError, SheetsAPIError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Failures of the API call itself, as opposed to bad arguments
REQUEST_ERRORS = (HttpError, httplib2.HttpLib2Error, GoogleAuthError, OSError)


class LedgerStore(Protocol):
    """Positional table store used by the services."""

    def read_all_rows(self, title: str) -> list[list[Any]]: ...

    def update_row(self, title: str, position: int, values: list[Any]) -> None: ...

    def append_rows(self, title: str, rows: list[list[Any]]) -> None: ...


def column_letter(index: int) -> str:
    """Convert a 0-based column index to A1 letters (0 -> A, 26 -> AA)."""
    if index < 0:
        raise ValueError("index must be >= 0")

    letters = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def quote_title(title: str) -> str:
    """Quote a tab title for use in an A1 range."""
    return "'" + title.replace("'", "''") + "'"


class GoogleSheetsClient:
    """Client for the Google Sheets API v4, bound to one spreadsheet."""

    def __init__(
        self,
        spreadsheet_id: str,
        credentials_path: Path | None = None,
        read_range: str = "A1:Z10000",
        service: Any = None,
    ):
        """
        Initialize the Sheets client.

        Args:
            spreadsheet_id: The spreadsheet holding the ledger
            credentials_path: Service-account key file
            read_range: Range read by ``read_all_rows``, without the tab name
            service: Prebuilt Sheets service (skips credential loading)
        """
        self.spreadsheet_id = spreadsheet_id
        self.credentials_path = credentials_path
        self.read_range = read_range
        self._service = service

    @classmethod
    def from_settings(cls, settings) -> "GoogleSheetsClient":
        return cls(
            spreadsheet_id=settings.sheets_spreadsheet_id,
            credentials_path=settings.google_application_credentials,
            read_range=settings.sheets_read_range,
        )

    @property
    def service(self) -> Any:
        """Lazily built Sheets service."""
        if self._service is None:
            self._service = self._build_service()
        return self._service

    def _build_service(self) -> Any:
        from google.oauth2 import service_account
        from googleapiclient.discovery import build

        if self.credentials_path is None or not Path(self.credentials_path).exists():
            raise ConfigurationError(
                f"Service account file not found: {self.credentials_path}"
            )

        creds = service_account.Credentials.from_service_account_file(
            str(self.credentials_path), scopes=SCOPES
        )
        return build("sheets", "v4", credentials=creds, cache_discovery=False)

    def close(self):
        """Close the underlying HTTP transport."""
        if self._service is not None and hasattr(self._service, "close"):
            self._service.close()
        self._service = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _values(self) -> Any:
        return self.service.spreadsheets().values()

    def read_range_values(self, a1_range: str) -> list[list[Any]]:
        """
        Read a raw A1 range.

        Args:
            a1_range: Range including the tab name

        Returns:
            Rows of cell values (ragged, trailing blanks omitted by the API)
        """
        try:
            response = (
                self._values()
                .get(
                    spreadsheetId=self.spreadsheet_id,
                    range=a1_range,
                    majorDimension="ROWS",
                )
                .execute()
            )
        except REQUEST_ERRORS as e:
            logger.error(f"Sheets read failed for {a1_range}: {e}")
            raise SheetsAPIError(f"Failed to read {a1_range}: {e}") from e

        rows = response.get("values", [])
        return rows if isinstance(rows, list) else []

    def read_all_rows(self, title: str) -> list[list[Any]]:
        """Read a whole tab, header row first."""
        rows = self.read_range_values(f"{quote_title(title)}!{self.read_range}")
        logger.debug(f"Read {len(rows)} rows from '{title}'")
        return rows

    def update_row(self, title: str, position: int, values: list[Any]) -> None:
        """
        Overwrite one whole row.

        Args:
            title: Tab name
            position: Row position in the table returned by read_all_rows
                (header row is 0)
            values: Cell values, written as-is
        """
        sheet_row = position + 1
        last_col = column_letter(len(values) - 1) if values else "Z"
        a1_range = f"{quote_title(title)}!A{sheet_row}:{last_col}{sheet_row}"

        try:
            self._values().update(
                spreadsheetId=self.spreadsheet_id,
                range=a1_range,
                valueInputOption="RAW",
                body={"values": [values]},
            ).execute()
        except REQUEST_ERRORS as e:
            logger.error(f"Sheets update failed for {a1_range}: {e}")
            raise SheetsAPIError(f"Failed to update {a1_range}: {e}") from e

        logger.debug(f"Updated row {sheet_row} of '{title}'")

    def append_rows(self, title: str, rows: list[list[Any]]) -> None:
        """Append whole rows after the last row of a tab."""
        if not rows:
            raise ValueError("append_rows: rows is required")

        try:
            self._values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{quote_title(title)}!A1",
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            ).execute()
        except REQUEST_ERRORS as e:
            logger.error(f"Sheets append failed for '{title}': {e}")
            raise SheetsAPIError(f"Failed to append to '{title}': {e}") from e

        logger.debug(f"Appended {len(rows)} rows to '{title}'")
