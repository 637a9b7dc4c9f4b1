"""
Client lookup by CNPJ against the client registry spreadsheet.

The spreadsheet (first tab, range A2:G by default) holds one client per row:

    cnpj | company name | address | city | zip | state | email

Layout
------
  ClientLookupCache    injectable TTL store (one per service, never module-global)
  find_client_row()    pure row matching, unit-testable without Google libs
  GoogleSheetsSource   the only code that talks to the Sheets API
  ClientLookupService  cache + source, used by the dashboard and CLI
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from models.client import ClientRecord

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60
DEFAULT_RANGE = "A2:G"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets.readonly"


class ClientLookupError(Exception):
    """The registry could not be queried."""


class ClientLookupNotConfigured(ClientLookupError):
    """Credentials or sheet id are missing."""


# ---------------------------------------------------------------------------
# CNPJ helpers
# ---------------------------------------------------------------------------

def normalize_cnpj(cnpj: str | None) -> str:
    """'91.338.558/0001-37' -> '91338558000137'"""
    return re.sub(r"\D", "", cnpj or "")


def format_cnpj(cnpj: str) -> str:
    """'91338558000137' -> '91.338.558/0001-37'; anything not 14 digits is returned as given."""
    digits = normalize_cnpj(cnpj)
    if len(digits) != 14:
        return cnpj
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"


def is_valid_cnpj(cnpj: str | None) -> bool:
    return len(normalize_cnpj(cnpj)) == 14


def find_client_row(rows: list[list[str]], cnpj: str) -> Optional[ClientRecord]:
    """Return the first row whose CNPJ column matches *cnpj* (punctuation ignored)."""
    needle = normalize_cnpj(cnpj)
    if not needle:
        return None
    for row in rows:
        if not row or normalize_cnpj(row[0]) != needle:
            continue
        cells = list(row) + [""] * (7 - len(row))
        return ClientRecord(
            cnpj=format_cnpj(needle),
            name=cells[1] or "",
            address=cells[2] or "",
            city=cells[3] or "",
            zip=cells[4] or "",
            state=cells[5] or "",
            email=cells[6] or None,
        )
    return None


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

@dataclass
class _CacheEntry:
    record: ClientRecord
    expires_at: float


class ClientLookupCache:
    """
    Time-boxed in-memory map  {normalized cnpj: ClientRecord}.

    Expired entries are evicted lazily on read.  The clock is injectable so
    tests can advance time without sleeping.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, cnpj: str) -> Optional[ClientRecord]:
        key = normalize_cnpj(cnpj)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.record

    def put(self, cnpj: str, record: ClientRecord) -> None:
        with self._lock:
            self._entries[normalize_cnpj(cnpj)] = _CacheEntry(
                record=record,
                expires_at=self._clock() + self.ttl_seconds,
            )

    def invalidate(self, cnpj: str) -> None:
        with self._lock:
            self._entries.pop(normalize_cnpj(cnpj), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> dict:
        now = self._clock()
        with self._lock:
            total = len(self._entries)
            valid = sum(1 for e in self._entries.values() if e.expires_at > now)
        return {"total_entries": total, "valid_entries": valid, "expired_entries": total - valid}


# ---------------------------------------------------------------------------
# Google Sheets source
# ---------------------------------------------------------------------------

class RowSource(Protocol):
    def fetch_rows(self) -> list[list[str]]: ...


def parse_service_account(raw: str | None) -> dict:
    """
    Decode service-account credentials given as plain JSON or base64 JSON.

    Raises ClientLookupNotConfigured if *raw* is empty or unusable.
    """
    text = (raw or "").strip()
    if not text:
        raise ClientLookupNotConfigured("GOOGLE_SHEETS_CREDENTIALS is not set")
    try:
        info = json.loads(text)
    except json.JSONDecodeError:
        try:
            info = json.loads(base64.b64decode(text, validate=True).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ClientLookupNotConfigured(
                "GOOGLE_SHEETS_CREDENTIALS must be JSON or base64-encoded JSON"
            ) from exc
    if not isinstance(info, dict) or not info.get("client_email") or not info.get("private_key"):
        raise ClientLookupNotConfigured("Service account is missing client_email or private_key")
    return info


class GoogleSheetsSource:
    """Reads the client registry rows through the Sheets v4 API."""

    def __init__(self, *, credentials_info: dict, sheet_id: str, a1_range: str = DEFAULT_RANGE) -> None:
        self._credentials_info = credentials_info
        self._sheet_id = sheet_id
        self._range = a1_range

    @classmethod
    def from_config(cls, config: Any) -> "GoogleSheetsSource":
        if not config.google_sheets_sheet_id:
            raise ClientLookupNotConfigured("GOOGLE_SHEETS_SHEET_ID is not set")
        return cls(
            credentials_info=parse_service_account(config.google_sheets_credentials),
            sheet_id=config.google_sheets_sheet_id,
            a1_range=config.google_sheets_range,
        )

    def _build_service(self) -> Any:
        # Imported lazily: the pure helpers above are usable without Google libs.
        from google.oauth2 import service_account
        from googleapiclient.discovery import build

        creds = service_account.Credentials.from_service_account_info(
            self._credentials_info, scopes=[SHEETS_SCOPE],
        )
        return build("sheets", "v4", credentials=creds, cache_discovery=False)

    def fetch_rows(self) -> list[list[str]]:
        resp = (
            self._build_service()
            .spreadsheets()
            .values()
            .get(spreadsheetId=self._sheet_id, range=self._range)
            .execute(num_retries=2)
        )
        rows = resp.get("values", [])
        return rows if isinstance(rows, list) else []


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ClientLookupService:
    """Cached CNPJ lookup.  A missing source means the integration is disabled."""

    def __init__(self, source: Optional[RowSource], cache: Optional[ClientLookupCache] = None) -> None:
        self.source = source
        self.cache = cache or ClientLookupCache()

    @classmethod
    def from_config(cls, config: Any) -> "ClientLookupService":
        source: Optional[RowSource] = None
        try:
            source = GoogleSheetsSource.from_config(config)
        except ClientLookupNotConfigured as exc:
            logger.warning("Client lookup disabled: %s", exc)
        return cls(source, ClientLookupCache(ttl_seconds=config.client_lookup_ttl_seconds))

    @property
    def configured(self) -> bool:
        return self.source is not None

    def find_by_cnpj(self, cnpj: str) -> Optional[ClientRecord]:
        """
        Return the registry record for *cnpj*, or None if no row matches.

        Raises:
            ClientLookupNotConfigured: no source is configured.
            ClientLookupError: the spreadsheet could not be read.
        """
        if self.source is None:
            raise ClientLookupNotConfigured("Client lookup is not configured")

        cached = self.cache.get(cnpj)
        if cached is not None:
            logger.debug("Client cache hit: %s", format_cnpj(cnpj))
            return cached

        logger.debug("Client cache miss: %s", format_cnpj(cnpj))
        try:
            rows = self.source.fetch_rows()
        except ClientLookupError:
            raise
        except Exception as exc:
            logger.error("Client registry query failed: %s", exc)
            raise ClientLookupError("Failed to query the client registry") from exc

        record = find_client_row(rows, cnpj)
        if record is None:
            logger.info("Client not found in registry: %s", format_cnpj(cnpj))
            return None

        self.cache.put(cnpj, record)
        return record
