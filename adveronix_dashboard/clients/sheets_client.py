from __future__ import annotations

import base64
import binascii
import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Sequence

import httplib2
from google.auth.credentials import Credentials
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials as UserCredentials
from google_auth_httplib2 import AuthorizedHttp
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError


class SheetsClient:
    """Thin wrapper for reading value ranges from the Adveronix spreadsheet."""

    SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
    HTTP_TIMEOUT_SEC = 30
    API_RETRIES = 3
    MAX_PARALLEL_RANGES = 4

    def __init__(
        self,
        spreadsheet_id: str,
        credentials_b64: str = "",
        credentials_path: str = "",
        token_path: str = ".google_sheets_token.json",
        http_timeout_sec: int = HTTP_TIMEOUT_SEC,
        api_retries: int = API_RETRIES,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id.strip()
        self.credentials_b64 = credentials_b64.strip()
        self.credentials_path = credentials_path.strip()
        self.token_path = token_path.strip() or ".google_sheets_token.json"
        self.http_timeout_sec = http_timeout_sec
        self.api_retries = api_retries
        self._credentials: Credentials | None = None
        self._service = None

    def _build_credentials(self) -> Credentials:
        if self.credentials_b64:
            try:
                payload = json.loads(base64.b64decode(self.credentials_b64).decode("utf-8"))
            except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise RuntimeError(
                    "GOOGLE_SHEETS_CREDENTIALS is not base64-encoded service account JSON."
                ) from exc
            return service_account.Credentials.from_service_account_info(
                payload,
                scopes=self.SCOPES,
            )

        if self.credentials_path:
            payload = self._load_json(self.credentials_path)
            if payload.get("type") == "service_account":
                return service_account.Credentials.from_service_account_file(
                    self.credentials_path,
                    scopes=self.SCOPES,
                )
            return self._oauth_credentials()

        raise RuntimeError(
            "Missing Google Sheets credentials. Set GOOGLE_SHEETS_CREDENTIALS "
            "(base64 service account JSON) or GOOGLE_SHEETS_CREDENTIALS_PATH."
        )

    def _oauth_credentials(self) -> UserCredentials:
        creds: UserCredentials | None = None
        token_file = Path(self.token_path)
        if token_file.exists():
            creds = UserCredentials.from_authorized_user_file(str(token_file), self.SCOPES)

        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())

        if not creds or not creds.valid:
            flow = InstalledAppFlow.from_client_secrets_file(self.credentials_path, self.SCOPES)
            creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")

        token_file.write_text(creds.to_json(), encoding="utf-8")
        return creds

    @staticmethod
    def _load_json(path_value: str) -> dict:
        path = Path(path_value)
        if not path.exists():
            raise RuntimeError(f"Google Sheets credentials file not found: {path_value}")
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"Invalid JSON in credentials file: {path_value}") from exc

    def _get_credentials(self) -> Credentials:
        if self._credentials is None:
            self._credentials = self._build_credentials()
        return self._credentials

    def _authorized_http(self) -> AuthorizedHttp:
        # httplib2 connections are not thread-safe; each request gets its own.
        return AuthorizedHttp(
            self._get_credentials(),
            http=httplib2.Http(timeout=self.http_timeout_sec),
        )

    def _build_service(self):
        if self._service is not None:
            return self._service
        if not self.spreadsheet_id:
            raise RuntimeError("Missing ADVERONIX_SHEET_ID.")
        self._service = build(
            "sheets",
            "v4",
            http=self._authorized_http(),
            cache_discovery=False,
        )
        return self._service

    def read_range(self, range_name: str) -> list[list[object]]:
        service = self._build_service()
        try:
            payload = (
                service.spreadsheets()
                .values()
                .get(
                    spreadsheetId=self.spreadsheet_id,
                    range=range_name,
                    majorDimension="ROWS",
                )
                .execute(http=self._authorized_http(), num_retries=self.api_retries)
            )
        except HttpError as exc:
            raise RuntimeError(f"Sheets API error for range '{range_name}': {exc}") from exc

        values = payload.get("values", []) if isinstance(payload, dict) else []
        return [row for row in values if isinstance(row, list)]

    def read_ranges(self, range_names: Sequence[str]) -> dict[str, list[list[object]]]:
        """Fetch several ranges concurrently; the first failure propagates."""
        unique = list(dict.fromkeys(range_names))
        if not unique:
            return {}
        self._build_service()
        workers = max(1, min(self.MAX_PARALLEL_RANGES, len(unique)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(self.read_range, unique))
        return dict(zip(unique, results))
