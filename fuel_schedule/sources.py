import json
import logging
from typing import Optional, Protocol

import gspread
import requests
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from .config import GOOGLE_SCOPES, DashboardSettings
from .exceptions import SheetFetchError

logger = logging.getLogger(__name__)


class SheetSource(Protocol):
    name: str

    def fetch_csv(self) -> str:
        ...


class PublishedCsvSource:
    """Reads the sheet through its "publish to web" CSV link."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float,
        session: Optional[requests.Session] = None,
        name: str = "published-csv",
    ) -> None:
        self.url = url
        self.name = name
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def fetch_csv(self) -> str:
        try:
            response = self._session.get(self.url, timeout=self._timeout_seconds)
        except requests.exceptions.Timeout as error:
            raise SheetFetchError(
                f"{self.name}: timed out after {self._timeout_seconds}s"
            ) from error
        except requests.exceptions.RequestException as error:
            raise SheetFetchError(f"{self.name}: request failed: {error}") from error

        if not 200 <= response.status_code < 300:
            raise SheetFetchError(f"{self.name}: HTTP {response.status_code}")

        return response.content.decode("utf-8", errors="replace")


def _flatten_cell(cell) -> str:
    # Commas inside a cell would shift every later column of the row.
    return str(cell).replace(",", " ").replace("\n", " ")


class ServiceAccountSheetSource:
    """Reads one worksheet with a Google service account via gspread."""

    def __init__(
        self,
        sheet_url: str,
        worksheet_name: str,
        service_account_json: str,
        timeout_seconds: float,
        name: str = "service-account",
    ) -> None:
        self.sheet_url = sheet_url
        self.worksheet_name = worksheet_name
        self.name = name
        self._service_account_json = service_account_json
        self._timeout_seconds = timeout_seconds
        self._client: Optional[gspread.Client] = None

    def _get_client(self) -> gspread.Client:
        if self._client is None:
            credentials = Credentials.from_service_account_info(
                json.loads(self._service_account_json), scopes=GOOGLE_SCOPES
            )
            client = gspread.authorize(credentials)
            client.http_client.set_timeout(self._timeout_seconds)
            self._client = client
        return self._client

    def fetch_csv(self) -> str:
        try:
            client = self._get_client()
        except (GoogleAuthError, ValueError) as error:
            # Malformed JSON or private keys surface as ValueError.
            raise SheetFetchError(f"{self.name}: invalid service account: {error}") from error

        try:
            spreadsheet = client.open_by_url(self.sheet_url)
            worksheet = spreadsheet.worksheet(self.worksheet_name)
            values = worksheet.get_all_values()
        except gspread.exceptions.WorksheetNotFound as error:
            raise SheetFetchError(
                f"{self.name}: worksheet '{self.worksheet_name}' not found"
            ) from error
        except (
            gspread.exceptions.GSpreadException,
            GoogleAuthError,
            requests.exceptions.RequestException,
        ) as error:
            raise SheetFetchError(f"{self.name}: unable to read worksheet: {error}") from error

        return "\n".join(",".join(_flatten_cell(cell) for cell in row) for row in values)


class FallbackSource:
    def __init__(self, primary: SheetSource, fallback: SheetSource) -> None:
        self.primary = primary
        self.fallback = fallback
        self.name = f"{primary.name}+{fallback.name}"

    def fetch_csv(self) -> str:
        try:
            return self.primary.fetch_csv()
        except SheetFetchError as primary_error:
            logger.warning(
                "Primary source %s failed (%s), trying %s",
                self.primary.name,
                primary_error,
                self.fallback.name,
            )
            try:
                return self.fallback.fetch_csv()
            except SheetFetchError as fallback_error:
                raise SheetFetchError(
                    f"All sources failed: {primary_error}; {fallback_error}"
                ) from fallback_error


def build_source(settings: DashboardSettings, session: Optional[requests.Session] = None) -> SheetSource:
    primary = PublishedCsvSource(
        settings.sheet_csv_url, settings.fetch_timeout_seconds, session=session
    )
    if not settings.has_service_account:
        return primary

    fallback = ServiceAccountSheetSource(
        settings.sheet_url,
        settings.worksheet_name,
        settings.service_account_json,
        settings.fetch_timeout_seconds,
    )
    return FallbackSource(primary, fallback)
