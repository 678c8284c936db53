"""Sheet sync result schemas."""

from __future__ import annotations

from pydantic import BaseModel


class RowError(BaseModel):
    row: int | None = None
    reason: str
    code: str | None = None
    field: str | None = None


class ConnectionSyncSummary(BaseModel):
    connection_id: str
    sheet_type: str
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    deals_derived: int = 0
    errors: list[RowError] = []
    error_code: str | None = None
    error: str | None = None
    remediation: str | None = None
    state: str = "idle"

    @property
    def ok(self) -> bool:
        return self.error_code is None


class BatchSyncResult(BaseModel):
    connections: list[ConnectionSyncSummary] = []
    aborted: bool = False
    request_id: str | None = None

    @property
    def imported(self) -> int:
        return sum(c.imported for c in self.connections)

    @property
    def failed(self) -> int:
        return sum(c.failed for c in self.connections)


class LiveReadResult(BaseModel):
    connection_id: str
    sheet_type: str
    records: list[dict] = []
    skipped: int = 0
    failed: int = 0
    errors: list[RowError] = []
    source: str = "csv"
