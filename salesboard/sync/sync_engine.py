"""Sync orchestrator - sheet connections into the relational store.

Per connection: resolve token -> fetch rows -> map rows -> reconcile rows.
Connections sync independently; a batch runs them on a bounded pool and only
a persistence failure stops it from starting more.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..errors import (
    ConnectionNotFoundError,
    ErrorCode,
    InvalidLocatorError,
    MappingSuggestionUnavailable,
    PersistenceError,
    SalesboardError,
    SyncInProgressError,
)
from ..models import SheetConnection, SyncOperation
from ..oauth.manager import CredentialManager
from ..schemas.canonical import Skip
from ..schemas.mapping import AnalyzeResponse, TabAnalysis
from ..schemas.sync import BatchSyncResult, ConnectionSyncSummary, LiveReadResult, RowError
from ..sheets.locator import SheetLocator, parse_sheet_url
from ..sheets.reader import FallbackSheetReader, SheetData
from .deriver import derive_deal
from .field_mapper import coerce_mappings, map_rows
from .identity import IdentityResolver
from .retry import RetryPolicy
from .suggestion import HeuristicMappingSuggester, MappingSuggester, reconcile_suggestion
from .upsert import INSERTED, PROTECTED, UPDATED, UpsertStore, entity_values

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    TOKEN_RESOLVING = "token_resolving"
    FETCHING = "fetching"
    TRANSFORMING = "transforming"
    RECONCILING = "reconciling"
    DONE = "done"
    FAILED = "failed"


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def _locator_for(connection: SheetConnection) -> SheetLocator:
    if not connection.spreadsheet_id:
        raise InvalidLocatorError("Connection has no spreadsheet id")
    return SheetLocator(
        spreadsheet_id=connection.spreadsheet_id,
        gid=connection.gid,
        tab_name=connection.sheet_name,
    )


class SyncEngine:
    """Drives sheet -> store reconciliation.

    Usage:
        engine = SyncEngine(async_session_factory, CredentialManager(async_session_factory))
        summary = await engine.sync_connection(connection_id)
        batch = await engine.sync_all(user_id="u1")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        credentials: CredentialManager,
        reader: FallbackSheetReader | None = None,
        suggester: MappingSuggester | None = None,
        identity: IdentityResolver | None = None,
        store: UpsertStore | None = None,
        retry: RetryPolicy | None = None,
        max_concurrency: int | None = None,
    ):
        self.session_factory = session_factory
        self.credentials = credentials
        self.reader = reader or FallbackSheetReader()
        self.suggester = suggester or HeuristicMappingSuggester()
        self.identity = identity or IdentityResolver()
        self.store = store or UpsertStore()
        self.retry = retry or RetryPolicy()
        self.max_concurrency = max_concurrency or settings.sync_max_concurrency
        self._in_progress: set[uuid.UUID] = set()
        self._stop = asyncio.Event()

    def request_stop(self) -> None:
        """Stop starting new connection syncs; running ones finish."""
        self._stop.set()

    def is_running(self, connection_id: uuid.UUID) -> bool:
        return connection_id in self._in_progress

    # -- single connection -------------------------------------------------

    async def _load_connection(
        self, db: AsyncSession, connection_id: uuid.UUID, user_id: str | None,
    ) -> SheetConnection:
        stmt = select(SheetConnection).where(
            SheetConnection.id == connection_id,
            SheetConnection.is_active.is_(True),
        )
        if user_id is not None:
            stmt = stmt.where(SheetConnection.user_id == user_id)
        connection = (await db.execute(stmt)).scalar_one_or_none()
        if connection is None:
            raise ConnectionNotFoundError(f"Sheet connection {connection_id} not found or inactive")
        return connection

    async def _fetch(self, locator: SheetLocator, token: str | None, max_rows: int | None = None) -> SheetData:
        return await self.retry.run(
            lambda: self.reader.fetch_rows(locator, token, max_rows),
            label=f"fetch {locator.spreadsheet_id}",
        )

    async def sync_connection(
        self,
        connection_id: uuid.UUID,
        user_id: str | None = None,
        request_id: str | None = None,
    ) -> ConnectionSyncSummary:
        """Sync one connection into the store.

        Fetch-level failures come back as a FAILED summary.

        Raises:
            ConnectionNotFoundError: Unknown, inactive, or another user's connection
            SyncInProgressError: The connection is already syncing
            PersistenceError: The store failed; remaining work must stop
        """
        if connection_id in self._in_progress:
            raise SyncInProgressError(f"Sheet connection {connection_id} is already syncing")
        self._in_progress.add(connection_id)
        rid = request_id or new_request_id()
        try:
            async with self.session_factory() as db:
                return await self._sync(db, connection_id, user_id, rid)
        finally:
            self._in_progress.discard(connection_id)

    async def _sync(
        self, db: AsyncSession, connection_id: uuid.UUID, user_id: str | None, rid: str,
    ) -> ConnectionSyncSummary:
        connection = await self._load_connection(db, connection_id, user_id)
        # Plain copies: a row rollback expires ORM instances in this session.
        owner = connection.user_id
        sheet_type = connection.sheet_type
        mappings = coerce_mappings(connection.mappings)
        summary = ConnectionSyncSummary(connection_id=str(connection_id), sheet_type=sheet_type)
        started_at = datetime.now(timezone.utc)

        state = SyncState.TOKEN_RESOLVING
        logger.info("[%s] Sync %s (%s) started", rid, connection_id, sheet_type)
        try:
            locator = _locator_for(connection)
            token = await self.credentials.get_valid_token(owner)

            state = SyncState.FETCHING
            data = await self._fetch(locator, token)
            logger.info("[%s] Fetched %d rows via %s", rid, data.row_count, data.source)
        except SalesboardError as e:
            logger.warning("[%s] Sync %s failed while %s: %s", rid, connection_id, state.value, e.message)
            summary.state = SyncState.FAILED.value
            summary.error_code = e.code.value
            summary.error = e.message
            summary.remediation = e.remediation
            await self._record_operation(db, owner, connection_id, summary, started_at)
            return summary

        state = SyncState.TRANSFORMING
        results = map_rows(sheet_type, data.rows, mappings)

        state = SyncState.RECONCILING
        for result in results:
            if isinstance(result, Skip):
                if result.deliberate:
                    summary.skipped += 1
                else:
                    summary.failed += 1
                    summary.errors.append(RowError(
                        row=result.row_number, reason=result.reason,
                        code=ErrorCode.INVALID_ROW.value, field=result.field,
                    ))
                continue
            await self._reconcile_row(db, sheet_type, connection_id, result, summary, rid)

        now = datetime.now(timezone.utc)
        await db.execute(
            update(SheetConnection).where(SheetConnection.id == connection_id).values(last_synced_at=now)
        )
        summary.state = SyncState.DONE.value
        await self._record_operation(db, owner, connection_id, summary, started_at)
        logger.info(
            "[%s] Sync %s done: %d imported, %d skipped, %d failed",
            rid, connection_id, summary.imported, summary.skipped, summary.failed,
        )
        return summary

    async def _reconcile_row(
        self, db: AsyncSession, sheet_type: str, connection_id: uuid.UUID, record,
        summary: ConnectionSyncSummary, rid: str,
    ) -> None:
        row = record.source_row_number
        try:
            setter_id = closer_id = lead_id = None
            if sheet_type != "team":
                setter_id = await self.identity.resolve(db, record.setter_name, "setter")
                closer_id = await self.identity.resolve(db, record.closer_name, "closer")
            if sheet_type in ("appointments", "calls", "deals"):
                lead_id = await self.identity.resolve_lead(
                    db, record.name, record.email, getattr(record, "phone", None),
                    create=sheet_type == "appointments",
                )

            values = entity_values(record, lead_id=lead_id, setter_id=setter_id, closer_id=closer_id)
            outcome = await self.store.upsert(db, sheet_type, connection_id, row, values)
            if outcome.action == PROTECTED:
                summary.skipped += 1
                return
            summary.imported += 1
            if outcome.action == UPDATED:
                summary.updated += 1

            if sheet_type == "appointments":
                derived = await derive_deal(db, outcome.entity, record)
                if derived in ("created", "updated"):
                    summary.deals_derived += 1
        except IntegrityError as e:
            await db.rollback()
            logger.warning("[%s] Row %d conflicts with an existing record: %s", rid, row, e.orig)
            summary.failed += 1
            summary.errors.append(RowError(
                row=row, reason="conflicts with an existing record",
                code=ErrorCode.PERSISTENCE_ERROR.value,
            ))
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("[%s] Store failure on row %d", rid, row)
            raise PersistenceError(
                f"Saving row {row} failed", entity_type=sheet_type, row=row, details=str(e),
            ) from e

    async def _record_operation(
        self, db: AsyncSession, user_id: str, connection_id: uuid.UUID,
        summary: ConnectionSyncSummary, started_at: datetime, operation_type: str = "pull",
    ) -> None:
        db.add(SyncOperation(
            user_id=user_id,
            sheet_connection_id=connection_id,
            operation_type=operation_type,
            records_affected=summary.imported,
            records_failed=summary.failed,
            errors=[e.model_dump() for e in summary.errors] or None,
            status="failed" if summary.error_code else "completed",
            error_code=summary.error_code,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        ))
        await db.commit()

    # -- live read ---------------------------------------------------------

    async def live_read(self, connection_id: uuid.UUID, user_id: str | None = None) -> LiveReadResult:
        """Fetch and map without persisting records; advances the watermark."""
        async with self.session_factory() as db:
            connection = await self._load_connection(db, connection_id, user_id)
            sheet_type = connection.sheet_type
            token = await self.credentials.get_valid_token(connection.user_id)
            data = await self._fetch(_locator_for(connection), token)

            result = LiveReadResult(connection_id=str(connection_id), sheet_type=sheet_type, source=data.source)
            for item in map_rows(sheet_type, data.rows, connection.mappings):
                if isinstance(item, Skip):
                    if item.deliberate:
                        result.skipped += 1
                    else:
                        result.failed += 1
                        result.errors.append(RowError(
                            row=item.row_number, reason=item.reason,
                            code=ErrorCode.INVALID_ROW.value, field=item.field,
                        ))
                    continue
                result.records.append(item.model_dump(mode="json"))

            connection.last_synced_at = datetime.now(timezone.utc)
            await db.commit()
            return result

    # -- batch -------------------------------------------------------------

    async def sync_all(self, user_id: str | None = None, request_id: str | None = None) -> BatchSyncResult:
        """Sync every active connection (of ``user_id``, or system-wide)."""
        rid = request_id or new_request_id()
        self._stop.clear()

        async with self.session_factory() as db:
            stmt = select(SheetConnection.id, SheetConnection.sheet_type).where(SheetConnection.is_active.is_(True))
            if user_id is not None:
                stmt = stmt.where(SheetConnection.user_id == user_id)
            connections = (await db.execute(stmt.order_by(SheetConnection.created_at))).all()

        result = BatchSyncResult(request_id=rid)
        logger.info("[%s] Batch sync of %d connections", rid, len(connections))
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_one(connection_id: uuid.UUID, sheet_type: str) -> ConnectionSyncSummary:
            async with semaphore:
                if self._stop.is_set() or result.aborted:
                    return ConnectionSyncSummary(
                        connection_id=str(connection_id), sheet_type=sheet_type,
                        state=SyncState.IDLE.value, error="not started",
                    )
                try:
                    return await self.sync_connection(connection_id, request_id=rid)
                except PersistenceError as e:
                    result.aborted = True
                    logger.error("[%s] Aborting batch: %s", rid, e.message)
                    return self._failed_summary(connection_id, sheet_type, e)
                except SalesboardError as e:
                    return self._failed_summary(connection_id, sheet_type, e)
                except Exception as e:
                    logger.exception("[%s] Sync %s crashed", rid, connection_id)
                    return ConnectionSyncSummary(
                        connection_id=str(connection_id), sheet_type=sheet_type,
                        state=SyncState.FAILED.value, error=str(e),
                    )

        result.connections = list(await asyncio.gather(*(run_one(cid, st) for cid, st in connections)))
        logger.info(
            "[%s] Batch done: %d imported, %d failed%s",
            rid, result.imported, result.failed, " (aborted)" if result.aborted else "",
        )
        return result

    @staticmethod
    def _failed_summary(connection_id: uuid.UUID, sheet_type: str, error: SalesboardError) -> ConnectionSyncSummary:
        return ConnectionSyncSummary(
            connection_id=str(connection_id), sheet_type=sheet_type, state=SyncState.FAILED.value,
            error_code=error.code.value, error=error.message, remediation=error.remediation,
        )

    # -- analysis ----------------------------------------------------------

    async def analyze(
        self,
        sheet_url: str,
        tab_names: list[str] | None = None,
        entity_type_hint: str | None = None,
        user_id: str | None = None,
        on_slow: Callable[[str | None], None] | None = None,
    ) -> AnalyzeResponse:
        """Preview a sheet and propose a mapping for each requested tab.

        With no ``tab_names`` the URL's own tab is analyzed and its errors are
        raised; in multi-tab mode each tab reports its own error.
        """
        locator = parse_sheet_url(sheet_url)
        token = await self.credentials.get_valid_token(user_id) if user_id else None
        response = AnalyzeResponse(spreadsheet_id=locator.spreadsheet_id)

        if not tab_names:
            response.tabs.append(await self._watch_slow(
                self._analyze_tab(locator, token, entity_type_hint), locator.tab_name, on_slow,
            ))
            return response

        tabs = {tab.title.lower(): tab for tab in await self.reader.list_tabs(locator, token)}
        for name in tab_names:
            tab = tabs.get(name.strip().lower())
            if tab is None:
                response.tabs.append(TabAnalysis(
                    tab_name=name, entity_type=entity_type_hint or "leads",
                    error_code=ErrorCode.NOT_FOUND.value, error=f"Tab {name!r} not found",
                ))
                continue
            try:
                response.tabs.append(await self._watch_slow(
                    self._analyze_tab(locator.with_tab(tab.title, tab.gid), token, entity_type_hint),
                    tab.title, on_slow,
                ))
            except SalesboardError as e:
                response.tabs.append(TabAnalysis(
                    tab_name=tab.title, gid=tab.gid, entity_type=entity_type_hint or "leads",
                    error_code=e.code.value, error=e.message,
                ))
        return response

    async def _watch_slow(self, coro, tab_name: str | None, on_slow) -> TabAnalysis:
        """Await ``coro``; flag and signal if it outlives the slow threshold."""
        task = asyncio.ensure_future(coro)
        done, _ = await asyncio.wait({task}, timeout=settings.slow_warning_seconds)
        slow = not done
        if slow:
            logger.info("Analysis of tab %r is taking longer than expected", tab_name)
            if on_slow is not None:
                on_slow(tab_name)
        analysis = await task
        analysis.slow = slow
        return analysis

    async def _analyze_tab(
        self, locator: SheetLocator, token: str | None, entity_type_hint: str | None,
    ) -> TabAnalysis:
        data = await self._fetch(locator, token, max_rows=settings.preview_max_rows)
        sample = data.sample(settings.analysis_sample_rows)

        try:
            suggestion = await self.suggester.suggest_mapping(entity_type_hint, data.headers, sample)
            warnings: list[str] = []
        except MappingSuggestionUnavailable as e:
            logger.warning("Mapping suggestion unavailable, using header rules: %s", e.message)
            suggestion = await HeuristicMappingSuggester().suggest_mapping(entity_type_hint, data.headers, sample)
            warnings = [f"Automatic mapping unavailable ({e.message}); mapped by header names."]

        suggestion = reconcile_suggestion(suggestion, data.headers, entity_type_hint)
        return TabAnalysis(
            tab_name=data.tab_name,
            gid=data.gid,
            headers=data.headers,
            row_count=data.row_count,
            entity_type=suggestion.entity_type,
            confidence=suggestion.confidence,
            mappings=suggestion.mappings,
            warnings=warnings + suggestion.warnings,
            suggested_defaults=suggestion.suggested_defaults,
            sample_rows=sample,
        )
