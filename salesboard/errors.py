"""Error taxonomy shared by the sheet readers, credential manager and sync engine.

Every error carries a stable machine-readable ``code`` so callers can pick a
remediation (reconnect the account, fix sharing settings, retry later) without
parsing messages.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    AUTH_REQUIRED = "AUTH_REQUIRED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    ACCESS_DENIED = "ACCESS_DENIED"
    NOT_FOUND = "NOT_FOUND"
    INVALID_LOCATOR = "INVALID_LOCATOR"
    EMPTY_SOURCE = "EMPTY_SOURCE"
    EMPTY_SHEET = "EMPTY_SOURCE"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    NETWORK_ERROR = "NETWORK_ERROR"
    MAPPING_SUGGESTION_UNAVAILABLE = "MAPPING_SUGGESTION_UNAVAILABLE"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    REFRESH_FAILED = "REFRESH_FAILED"
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    SYNC_IN_PROGRESS = "SYNC_IN_PROGRESS"
    INVALID_MAPPING = "INVALID_MAPPING"
    INVALID_ROW = "INVALID_ROW"


REMEDIATIONS: dict[ErrorCode, str] = {
    ErrorCode.AUTH_REQUIRED: "Please sign in to access your Google Sheets data.",
    ErrorCode.SESSION_EXPIRED: "Your session has expired. Please sign in again.",
    ErrorCode.ACCESS_DENIED: (
        'Make sure the sheet is set to "Anyone with the link can view" '
        "or reconnect your Google account in Settings."
    ),
    ErrorCode.NOT_FOUND: "The Google Sheet could not be found. It may have been deleted or moved.",
    ErrorCode.INVALID_LOCATOR: "The Google Sheet URL appears to be invalid. Check the connection settings.",
    ErrorCode.EMPTY_SOURCE: "The sheet is empty. Add a header row and at least one data row.",
    ErrorCode.MALFORMED_RESPONSE: (
        "Google returned a sign-in page instead of data. Make the sheet link-viewable "
        "or connect your Google account."
    ),
    ErrorCode.NETWORK_ERROR: "Google Sheets could not be reached. Please try again shortly.",
    ErrorCode.MAPPING_SUGGESTION_UNAVAILABLE: "Automatic column mapping is unavailable. Map the columns manually.",
    ErrorCode.PERSISTENCE_ERROR: "Saving synced records failed. Please try again.",
    ErrorCode.REFRESH_FAILED: "Google access expired. Please reconnect your account.",
    ErrorCode.CONFIG_NOT_FOUND: "This sheet connection is no longer active. Please reconnect your sheet.",
    ErrorCode.SYNC_IN_PROGRESS: "A sync for this sheet is already running.",
    ErrorCode.INVALID_MAPPING: "The column mapping is invalid. Review it before syncing.",
    ErrorCode.INVALID_ROW: "Fix the listed rows in the sheet; the rest were imported.",
}

RETRYABLE_CODES = frozenset({ErrorCode.NETWORK_ERROR})


class SalesboardError(Exception):
    """Base exception carrying a stable error code."""

    code: ErrorCode = ErrorCode.MALFORMED_RESPONSE

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        status_code: int | None = None,
        details: str | None = None,
        entity_type: str | None = None,
        row: int | None = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.status_code = status_code
        self.details = details[:500] if details else None
        self.entity_type = entity_type
        self.row = row
        super().__init__(self.message)

    @property
    def remediation(self) -> str:
        return REMEDIATIONS.get(self.code, "")

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES

    def to_dict(self) -> dict:
        data = {
            "error": self.message,
            "code": self.code.value,
            "remediation": self.remediation,
        }
        if self.entity_type:
            data["entity_type"] = self.entity_type
        if self.row is not None:
            data["row"] = self.row
        if self.details:
            data["details"] = self.details
        return data


class SheetsError(SalesboardError):
    """Failure fetching tabular data from a spreadsheet."""

    code = ErrorCode.MALFORMED_RESPONSE


class SheetAccessError(SheetsError):
    code = ErrorCode.ACCESS_DENIED


class SheetNotFoundError(SheetsError):
    code = ErrorCode.NOT_FOUND


class InvalidLocatorError(SheetsError):
    code = ErrorCode.INVALID_LOCATOR


class EmptySheetError(SheetsError):
    code = ErrorCode.EMPTY_SOURCE


class MalformedResponseError(SheetsError):
    code = ErrorCode.MALFORMED_RESPONSE


class SheetsNetworkError(SheetsError):
    code = ErrorCode.NETWORK_ERROR


class MappingSuggestionUnavailable(SalesboardError):
    code = ErrorCode.MAPPING_SUGGESTION_UNAVAILABLE


class PersistenceError(SalesboardError):
    code = ErrorCode.PERSISTENCE_ERROR


class ConnectionNotFoundError(SalesboardError):
    code = ErrorCode.CONFIG_NOT_FOUND


class SyncInProgressError(SalesboardError):
    code = ErrorCode.SYNC_IN_PROGRESS


class InvalidMappingError(SalesboardError):
    code = ErrorCode.INVALID_MAPPING


class RefreshFailedError(SalesboardError):
    code = ErrorCode.REFRESH_FAILED
