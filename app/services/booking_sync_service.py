# app/services/booking_sync_service.py
"""
Booking sync orchestrator.

Pulls reservations from a connected platform and merges them into the villa's
canonical calendar:

1. Check there is a connected integration for (villa, platform).
2. Take the (villa, platform) lock or fail fast with AlreadySyncingError.
3. Resolve credentials from the vault.
4. Fetch bookings for [today - grace, today + horizon] with timeout and
   retry/backoff for transient failures.
5. Classify each incoming booking against the freshly re-read Confirmed set.
6. Upsert accepted bookings by (villa, source, external id); record flagged
   ones in the conflict inbox.
7. Write exactly one sync log entry, whatever happened.

Everything a run accumulates lives on its ``SyncContext`` so concurrent runs
share nothing but the database.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings, get_settings
from app.core.enums import (
    BookingStatus,
    ConflictResolution,
    ConflictStatus,
    IntegrationStatus,
    PlatformName,
    SyncRunStatus,
    SyncTrigger,
)
from app.core.exceptions import (
    AlreadySyncingError,
    CredentialNotFoundError,
    NotConnectedError,
    SyncError,
    VillaNotFoundError,
)
from app.core.utils import utcnow
from app.database import async_session
from app.integrations.base import PlatformAdapter
from app.integrations.registry import ADAPTERS, get_adapter
from app.integrations.results import AdapterErrorKind, AdapterResult, Err
from app.models.booking import Booking
from app.models.booking_conflict import BookingConflict
from app.models.platform_integration import PlatformIntegration
from app.models.villa import Villa
from app.schemas.booking import CanonicalBooking
from app.schemas.credentials import CredentialSetData
from app.schemas.sync import (
    ConflictDetail,
    PlatformSyncSummary,
    SyncAllResult,
    SyncErrorDetail,
    SyncResult,
    SyncWindow,
)
from app.services.conflict_resolver import Classification, Decision, classify
from app.services.credential_vault import CredentialVault
from app.services.sync_lock import SyncLockRegistry
from app.services.sync_log_service import SyncLogService

logger = logging.getLogger(__name__)

# Integration states a single-platform sync may run from; 'error' stays syncable
# so a fixed credential can be verified without reconnecting
SYNCABLE_STATUSES = (IntegrationStatus.ACTIVE.value, IntegrationStatus.ERROR.value)

PERSISTENCE_ERROR = "persistence_error"
INTERNAL_ERROR = "internal_error"

# Set by sync when a flagged booking is cancelled upstream; never an owner choice
WITHDRAWN_RESOLUTION = "withdrawn"


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 30.0) -> float:
    """
    Seconds to wait before retry number ``attempt`` (1-based).

    Doubles each time: base, 2*base, 4*base ... capped at ``max_delay``.
    """
    if attempt < 1:
        return 0.0
    return min(max_delay, base * (2 ** (attempt - 1)))


def build_sync_window(today: date, settings: Settings) -> SyncWindow:
    """[today - grace, today + horizon]: grace catches late cancellations, horizon bounds cost."""
    return SyncWindow(
        start_date=today - timedelta(days=settings.SYNC_GRACE_DAYS),
        end_date=today + timedelta(days=settings.SYNC_HORIZON_DAYS),
    )


@dataclass
class SyncContext:
    """Mutable state of one sync run or import."""
    run_id: str
    villa_id: int
    platform: str
    trigger: str
    started_at: datetime
    lock_token: str
    owner_id: Optional[str] = None
    credentials: Optional[CredentialSetData] = None
    new_bookings: int = 0
    updated_bookings: int = 0
    unchanged_bookings: int = 0
    flagged: int = 0
    rejected: int = 0
    failed: int = 0
    retries: int = 0
    fetch_failed: bool = False
    conflicts: List[ConflictDetail] = field(default_factory=list)
    errors: List[SyncErrorDetail] = field(default_factory=list)
    accepted: List[CanonicalBooking] = field(default_factory=list)

    def redact(self, text: str) -> str:
        return CredentialVault.redact(text, self.credentials)

    def add_error(self, kind: str, message: str, external_id: Optional[str] = None) -> None:
        self.errors.append(SyncErrorDetail(kind=kind, message=self.redact(message), external_id=external_id))

    def status(self) -> SyncRunStatus:
        if self.fetch_failed:
            return SyncRunStatus.FAILED
        if self.flagged or self.rejected or self.failed:
            return SyncRunStatus.PARTIAL
        return SyncRunStatus.SUCCESS


def _conflict_party(booking) -> Dict[str, Any]:
    return {
        "booking_id": getattr(booking, "id", None),
        "source": booking.source,
        "external_id": booking.external_id,
        "guest_name": booking.guest_name,
        "start_date": booking.start_date.isoformat(),
        "end_date": booking.end_date.isoformat(),
    }


def _same_amount(a, b) -> bool:
    return Decimal(str(a or 0)).quantize(Decimal("0.01")) == Decimal(str(b or 0)).quantize(Decimal("0.01"))


def _booking_changed(stored: Booking, incoming: CanonicalBooking) -> bool:
    return (
        stored.guest_name != incoming.guest_name
        or stored.start_date != incoming.start_date
        or stored.end_date != incoming.end_date
        or stored.currency != incoming.currency
        or stored.status != incoming.status.value
        or not _same_amount(stored.total_fare, incoming.total_fare)
    )


class BookingSyncService:
    """
    Orchestrates booking syncs. One instance is shared by the API and the
    scheduler so they see the same lock registry.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker = async_session,
        settings: Optional[Settings] = None,
        adapters: Optional[Dict[PlatformName, PlatformAdapter]] = None,
        locks: Optional[SyncLockRegistry] = None,
        sync_log: Optional[SyncLogService] = None,
        vault: Optional[CredentialVault] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.adapters = ADAPTERS if adapters is None else adapters
        self.locks = locks or SyncLockRegistry(ttl_seconds=self.settings.SYNC_LOCK_TTL_SECONDS)
        self.sync_log = sync_log or SyncLogService(session_factory)
        self.vault = vault or CredentialVault(session_factory)
        self._sleep = sleep
        self._clock = clock

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def sync_platform(self, villa_id: int, platform: Union[PlatformName, str],
                            trigger: Union[SyncTrigger, str] = SyncTrigger.MANUAL,
                            run_id: Optional[str] = None) -> SyncResult:
        """
        Sync one villa with one platform.

        Raises:
            NotConnectedError: no active integration for the pair
            AlreadySyncingError: a run for the pair is already in flight
        """
        platform = PlatformName(platform)
        integration = await self._get_integration(villa_id, platform)
        adapter = get_adapter(platform, self.adapters)

        ctx = self._start(villa_id, platform.value, SyncTrigger(trigger).value, run_id, integration.owner_id)
        logger.info(f"Starting {ctx.trigger} sync of villa {villa_id} with {platform.display_name} (run {ctx.run_id})")

        try:
            await self._run_platform(ctx, adapter, integration)
        except asyncio.CancelledError:
            logger.warning(f"Sync of villa {villa_id} with {platform.value} cancelled (run {ctx.run_id})")
            await asyncio.shield(self._finish(ctx, SyncRunStatus.CANCELLED))
            raise
        except Exception as e:
            self._record_abort(ctx, e)
        finally:
            self.locks.release(villa_id, ctx.platform, ctx.lock_token)

        return await self._finish(ctx, ctx.status(), integration_id=integration.id)

    async def sync_all(self, owner_id: str, trigger: Union[SyncTrigger, str] = SyncTrigger.MANUAL,
                       max_concurrent: Optional[int] = None) -> SyncAllResult:
        """Sync every active integration of the owner's villas; one failure never aborts the rest."""
        run_id = str(uuid.uuid4())
        async with self.session_factory() as session:
            stmt = (
                select(PlatformIntegration.villa_id, PlatformIntegration.platform)
                .join(Villa, Villa.id == PlatformIntegration.villa_id)
                .where(
                    Villa.owner_id == owner_id,
                    PlatformIntegration.status == IntegrationStatus.ACTIVE.value,
                )
                .order_by(PlatformIntegration.villa_id, PlatformIntegration.platform)
            )
            pairs = (await session.execute(stmt)).all()

        logger.info(f"Sync-all for owner {owner_id}: {len(pairs)} integrations (run {run_id})")
        semaphore = asyncio.Semaphore(max_concurrent or self.settings.SYNC_ALL_MAX_CONCURRENT)

        async def run_one(villa_id: int, platform: str) -> SyncResult:
            async with semaphore:
                return await self.sync_platform(villa_id, platform, trigger=trigger, run_id=run_id)

        outcomes = await asyncio.gather(*(run_one(v, p) for v, p in pairs), return_exceptions=True)
        return self._aggregate(run_id, owner_id, pairs, outcomes)

    async def import_bookings(self, villa_id: int, source: str, bookings: Sequence[CanonicalBooking],
                              trigger: Union[SyncTrigger, str] = SyncTrigger.ICAL_IMPORT) -> SyncResult:
        """
        Merge an externally obtained batch (an iCal feed) exactly like fetched
        bookings: same lock, same classification, same upsert, same log entry.
        """
        async with self.session_factory() as session:
            villa = await session.get(Villa, villa_id)
            if villa is None:
                raise VillaNotFoundError(f"Villa {villa_id} not found")
            owner_id = villa.owner_id

        ctx = self._start(villa_id, source, SyncTrigger(trigger).value, None, owner_id)
        logger.info(f"Importing {len(bookings)} bookings from '{source}' into villa {villa_id} (run {ctx.run_id})")

        try:
            await self._apply_bookings(ctx, bookings)
        except asyncio.CancelledError:
            await asyncio.shield(self._finish(ctx, SyncRunStatus.CANCELLED))
            raise
        except Exception as e:
            self._record_abort(ctx, e)
        finally:
            self.locks.release(villa_id, ctx.platform, ctx.lock_token)

        return await self._finish(ctx, ctx.status())

    def sync_window(self) -> SyncWindow:
        return build_sync_window(self._clock().date(), self.settings)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def _start(self, villa_id: int, platform: str, trigger: str, run_id: Optional[str],
               owner_id: Optional[str]) -> SyncContext:
        token = str(uuid.uuid4())
        if not self.locks.acquire(villa_id, platform, token):
            raise AlreadySyncingError(f"A sync for villa {villa_id} with {platform} is already running")
        return SyncContext(
            run_id=run_id or str(uuid.uuid4()),
            villa_id=villa_id,
            platform=platform,
            trigger=trigger,
            started_at=self._clock(),
            lock_token=token,
            owner_id=owner_id,
        )

    def _record_abort(self, ctx: SyncContext, error: Exception) -> None:
        """Anything unexpected ends the run as failed; the log entry is still written."""
        ctx.fetch_failed = True
        message = ctx.redact(f"Sync aborted: {type(error).__name__}: {error}")
        ctx.add_error(INTERNAL_ERROR, message)
        logger.error(f"Sync of villa {ctx.villa_id} with {ctx.platform} aborted (run {ctx.run_id}): {message}")

    async def _get_integration(self, villa_id: int, platform: PlatformName) -> PlatformIntegration:
        async with self.session_factory() as session:
            stmt = select(PlatformIntegration).where(
                PlatformIntegration.villa_id == villa_id,
                PlatformIntegration.platform == platform.value,
            )
            integration = (await session.execute(stmt)).scalar_one_or_none()
        if integration is None or integration.status not in SYNCABLE_STATUSES:
            raise NotConnectedError(f"Villa {villa_id} is not connected to {platform.display_name}")
        return integration

    async def _run_platform(self, ctx: SyncContext, adapter: PlatformAdapter,
                            integration: PlatformIntegration) -> None:
        try:
            ctx.credentials = await self.vault.get(integration.credential_id)
        except CredentialNotFoundError as e:
            ctx.fetch_failed = True
            ctx.add_error(AdapterErrorKind.AUTH_FAILURE.value, str(e))
            await self._mark_integration_error(integration.id, str(e))
            return

        result = await self._fetch_with_retry(ctx, adapter, integration.listing_id, self.sync_window())
        if not result.ok:
            ctx.fetch_failed = True
            message = ctx.redact(result.message)
            ctx.add_error(result.kind.value, message)
            logger.error(f"Fetching {ctx.platform} bookings for villa {ctx.villa_id} failed: "
                         f"{result.kind.value}: {message}")
            if result.kind is AdapterErrorKind.AUTH_FAILURE:
                await self._mark_integration_error(integration.id, message)
            return

        await self._apply_bookings(ctx, result.value)

    async def _finish(self, ctx: SyncContext, status: SyncRunStatus,
                      integration_id: Optional[int] = None) -> SyncResult:
        finished_at = self._clock()
        result = SyncResult(
            run_id=ctx.run_id,
            villa_id=ctx.villa_id,
            platform=ctx.platform,
            status=status.value,
            new_bookings=ctx.new_bookings,
            updated_bookings=ctx.updated_bookings,
            unchanged_bookings=ctx.unchanged_bookings,
            conflicts=ctx.conflicts,
            errors=ctx.errors,
            retries=ctx.retries,
            started_at=ctx.started_at,
            finished_at=finished_at,
        )
        await self.sync_log.record({
            "run_id": ctx.run_id,
            "owner_id": ctx.owner_id,
            "villa_id": ctx.villa_id,
            "platform": ctx.platform,
            "trigger": ctx.trigger,
            "status": status.value,
            "started_at": ctx.started_at,
            "finished_at": finished_at,
            "duration_ms": max(0, int((finished_at - ctx.started_at).total_seconds() * 1000)),
            "new_bookings": ctx.new_bookings,
            "updated_bookings": ctx.updated_bookings,
            "unchanged_bookings": ctx.unchanged_bookings,
            "conflicted_bookings": ctx.flagged,
            "rejected_bookings": ctx.rejected,
            "failed_bookings": ctx.failed,
            "conflicts": [c.model_dump(mode="json") for c in ctx.conflicts],
            "errors": [e.model_dump(mode="json") for e in ctx.errors],
        })
        if integration_id is not None and status is not SyncRunStatus.CANCELLED:
            await self._update_integration(integration_id, ctx, result)

        logger.info(
            f"Sync of villa {ctx.villa_id} with {ctx.platform} finished: {status.value} "
            f"(new={ctx.new_bookings}, updated={ctx.updated_bookings}, unchanged={ctx.unchanged_bookings}, "
            f"flagged={ctx.flagged}, rejected={ctx.rejected}, errors={len(ctx.errors)})"
        )
        return result

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _fetch_with_retry(self, ctx: SyncContext, adapter: PlatformAdapter, listing_id: Optional[str],
                                window: SyncWindow) -> AdapterResult[List[CanonicalBooking]]:
        attempt = 0
        while True:
            result = await self._call_adapter(ctx, adapter, listing_id, window)
            if result.ok or not result.kind.transient or attempt >= self.settings.SYNC_MAX_RETRIES:
                return result
            attempt += 1
            delay = backoff_delay(attempt, self.settings.SYNC_BACKOFF_BASE_SECONDS,
                                  self.settings.SYNC_BACKOFF_MAX_SECONDS)
            ctx.retries = attempt
            logger.warning(
                f"{ctx.platform} fetch for villa {ctx.villa_id} returned {result.kind.value}; "
                f"retry {attempt}/{self.settings.SYNC_MAX_RETRIES} in {delay:.1f}s"
            )
            await self._sleep(delay)

    async def _call_adapter(self, ctx: SyncContext, adapter: PlatformAdapter, listing_id: Optional[str],
                            window: SyncWindow) -> AdapterResult[List[CanonicalBooking]]:
        timeout = self.settings.ADAPTER_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(adapter.fetch_bookings(ctx.credentials, listing_id, window), timeout)
        except asyncio.TimeoutError:
            return Err(AdapterErrorKind.UNREACHABLE, f"No response within {timeout:.0f}s")
        except Exception as e:
            # Adapters should return Err; anything raised is a bug in translation
            logger.exception(f"{ctx.platform} adapter raised for villa {ctx.villa_id}: {ctx.redact(str(e))}")
            return Err(AdapterErrorKind.MALFORMED_RESPONSE, f"Adapter error: {e}")

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    async def _apply_bookings(self, ctx: SyncContext, bookings: Sequence[CanonicalBooking]) -> None:
        # sorted() is stable, so same-day arrivals keep the platform's order
        for incoming in sorted(bookings, key=lambda b: b.start_date):
            try:
                await self._apply_one(ctx, incoming)
            except IntegrityError:
                # Another run inserted the same key between our read and write; apply as an update
                try:
                    await self._apply_one(ctx, incoming)
                except SQLAlchemyError as e:
                    self._record_failure(ctx, incoming, e)
            except SQLAlchemyError as e:
                self._record_failure(ctx, incoming, e)

    def _record_failure(self, ctx: SyncContext, incoming: CanonicalBooking, error: Exception) -> None:
        ctx.failed += 1
        ctx.add_error(PERSISTENCE_ERROR, f"Could not store booking: {error}", incoming.external_id)
        logger.error(f"Could not store {incoming.source} booking {incoming.external_id} "
                     f"for villa {ctx.villa_id}: {error}")

    async def _apply_one(self, ctx: SyncContext, incoming: CanonicalBooking) -> None:
        async with self.session_factory() as session:
            existing = await self._current_bookings(session, ctx.villa_id, incoming)
            classification = classify(existing, incoming, ctx.accepted)

            if classification.decision is Decision.ACCEPT:
                outcome = await self._upsert(session, ctx, incoming, classification.matches)
                await self._clear_open_conflict(session, ctx.villa_id, incoming)
                await session.commit()
                if outcome == "new":
                    ctx.new_bookings += 1
                elif outcome == "updated":
                    ctx.updated_bookings += 1
                else:
                    ctx.unchanged_bookings += 1
                if incoming.status is BookingStatus.CONFIRMED:
                    ctx.accepted.append(incoming)
                return

            detail = ConflictDetail(
                external_id=incoming.external_id,
                source=incoming.source,
                start_date=incoming.start_date,
                end_date=incoming.end_date,
                guest_name=incoming.guest_name,
                reason=classification.reason.value,
                decision=classification.decision.value,
                conflicts_with=_conflict_party(classification.conflicts_with[0]),
            )
            ctx.conflicts.append(detail)

            if classification.decision is Decision.FLAG:
                ctx.flagged += 1
                await self._store_conflict(session, ctx.villa_id, incoming, classification)
                await session.commit()
                logger.warning(
                    f"Double booking on villa {ctx.villa_id}: {incoming.source} {incoming.external_id} "
                    f"{incoming.start_date}->{incoming.end_date} overlaps "
                    f"{detail.conflicts_with['source']} {detail.conflicts_with['external_id']}"
                )
            else:
                ctx.rejected += 1
                logger.warning(
                    f"Rejected {incoming.source} booking {incoming.external_id} for villa {ctx.villa_id}: "
                    f"overlaps {detail.conflicts_with['external_id']} from the same source"
                )

    async def _current_bookings(self, session: AsyncSession, villa_id: int,
                                incoming: CanonicalBooking) -> List[Booking]:
        """Confirmed bookings of the villa plus the stored copy of ``incoming``, whatever its status."""
        conditions = [Booking.status == BookingStatus.CONFIRMED.value]
        if incoming.external_id is not None:
            conditions.append(and_(Booking.source == incoming.source, Booking.external_id == incoming.external_id))
        stmt = select(Booking).where(Booking.villa_id == villa_id, or_(*conditions))
        return list((await session.execute(stmt)).scalars().all())

    async def _upsert(self, session: AsyncSession, ctx: SyncContext, incoming: CanonicalBooking,
                      stored: Optional[Booking]) -> str:
        now = self._clock()
        if stored is None:
            if incoming.status is BookingStatus.CANCELLED:
                # Nothing of ours to cancel
                return "unchanged"
            session.add(Booking(
                villa_id=ctx.villa_id,
                guest_name=incoming.guest_name,
                start_date=incoming.start_date,
                end_date=incoming.end_date,
                total_fare=incoming.total_fare,
                currency=incoming.currency,
                status=incoming.status.value,
                source=incoming.source,
                external_id=incoming.external_id,
                last_synced_at=now,
            ))
            await session.flush()
            return "new"

        if not _booking_changed(stored, incoming):
            return "unchanged"

        stored.guest_name = incoming.guest_name
        stored.start_date = incoming.start_date
        stored.end_date = incoming.end_date
        stored.total_fare = incoming.total_fare
        stored.currency = incoming.currency
        stored.status = incoming.status.value
        stored.last_synced_at = now
        return "updated"

    async def _store_conflict(self, session: AsyncSession, villa_id: int, incoming: CanonicalBooking,
                              classification: Classification) -> None:
        now = self._clock()
        stmt = select(BookingConflict).where(
            BookingConflict.villa_id == villa_id,
            BookingConflict.source == incoming.source,
            BookingConflict.external_id == incoming.external_id,
        )
        conflict = (await session.execute(stmt)).scalar_one_or_none()
        other_id = getattr(classification.conflicts_with[0], "id", None)
        snapshot = incoming.model_dump(mode="json")
        if conflict is None:
            session.add(BookingConflict(
                villa_id=villa_id,
                source=incoming.source,
                external_id=incoming.external_id or "",
                reason=classification.reason.value,
                incoming=snapshot,
                conflicting_booking_id=other_id,
                status=ConflictStatus.OPEN.value,
                detected_at=now,
                last_seen_at=now,
            ))
        else:
            # An owner's earlier decision stands; only the snapshot is refreshed
            conflict.incoming = snapshot
            conflict.reason = classification.reason.value
            conflict.conflicting_booking_id = other_id
            conflict.last_seen_at = now

    async def _clear_open_conflict(self, session: AsyncSession, villa_id: int, incoming: CanonicalBooking) -> None:
        if incoming.external_id is None:
            return
        stmt = select(BookingConflict).where(
            BookingConflict.villa_id == villa_id,
            BookingConflict.source == incoming.source,
            BookingConflict.external_id == incoming.external_id,
            BookingConflict.status == ConflictStatus.OPEN.value,
        )
        conflict = (await session.execute(stmt)).scalar_one_or_none()
        if conflict is not None:
            conflict.status = ConflictStatus.RESOLVED.value
            if incoming.status is BookingStatus.CANCELLED:
                conflict.resolution = WITHDRAWN_RESOLUTION
                conflict.resolution_note = "Cancelled on the platform; nothing left to decide"
            else:
                conflict.resolution = ConflictResolution.ACCEPT_INCOMING.value
                conflict.resolution_note = "No longer overlaps; accepted by sync"
            conflict.resolved_at = self._clock()

    # ------------------------------------------------------------------
    # Integration bookkeeping
    # ------------------------------------------------------------------

    async def _mark_integration_error(self, integration_id: int, message: str) -> None:
        try:
            async with self.session_factory() as session:
                integration = await session.get(PlatformIntegration, integration_id)
                if integration is not None:
                    integration.status = IntegrationStatus.ERROR.value
                    integration.error_message = message
                    await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Could not mark integration {integration_id} as errored: {e}")

    async def _update_integration(self, integration_id: int, ctx: SyncContext, result: SyncResult) -> None:
        summary = {
            "run_id": result.run_id,
            "status": result.status,
            "new_bookings": result.new_bookings,
            "updated_bookings": result.updated_bookings,
            "conflicts": len(result.conflicts),
            "errors": len(result.errors),
        }
        try:
            async with self.session_factory() as session:
                integration = await session.get(PlatformIntegration, integration_id)
                if integration is None:
                    return
                integration.last_sync_result = summary
                if result.status == SyncRunStatus.FAILED.value:
                    integration.error_message = result.errors[0].message if result.errors else None
                else:
                    integration.status = IntegrationStatus.ACTIVE.value
                    integration.error_message = None
                    integration.last_sync = result.finished_at
                    integration.total_bookings_synced = (integration.total_bookings_synced or 0) + result.new_bookings
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Could not update integration {integration_id} after sync: {e}")

    # ------------------------------------------------------------------
    # Sync-all aggregation
    # ------------------------------------------------------------------

    def _aggregate(self, run_id: str, owner_id: str, pairs, outcomes) -> SyncAllResult:
        details: List[PlatformSyncSummary] = []
        counts = {"success": 0, "partial": 0, "failed": 0, "skipped": 0}
        total_new = total_updated = total_conflicts = 0

        for (villa_id, platform), outcome in zip(pairs, outcomes):
            if isinstance(outcome, SyncResult):
                if outcome.status == SyncRunStatus.SUCCESS.value:
                    counts["success"] += 1
                elif outcome.status == SyncRunStatus.PARTIAL.value:
                    counts["partial"] += 1
                else:
                    counts["failed"] += 1
                total_new += outcome.new_bookings
                total_updated += outcome.updated_bookings
                total_conflicts += len(outcome.conflicts)
                details.append(PlatformSyncSummary(villa_id=villa_id, platform=platform,
                                                   status=outcome.status, result=outcome))
            elif isinstance(outcome, SyncError):
                counts["skipped"] += 1
                details.append(PlatformSyncSummary(villa_id=villa_id, platform=platform,
                                                   status="skipped", message=str(outcome)))
            else:
                counts["failed"] += 1
                message = "Sync cancelled" if isinstance(outcome, asyncio.CancelledError) else str(outcome)
                logger.error(f"Sync of villa {villa_id} with {platform} raised: {outcome!r}")
                details.append(PlatformSyncSummary(villa_id=villa_id, platform=platform,
                                                   status=SyncRunStatus.FAILED.value, message=message))

        if counts["failed"] and not (counts["success"] or counts["partial"]):
            status = SyncRunStatus.FAILED.value
        elif counts["failed"] or counts["partial"] or counts["skipped"]:
            status = SyncRunStatus.PARTIAL.value
        else:
            status = SyncRunStatus.SUCCESS.value

        return SyncAllResult(
            run_id=run_id,
            owner_id=owner_id,
            status=status,
            total_platforms=len(pairs),
            successful=counts["success"],
            partial=counts["partial"],
            failed=counts["failed"],
            skipped=counts["skipped"],
            total_new_bookings=total_new,
            total_updated_bookings=total_updated,
            total_conflicts=total_conflicts,
            details=details,
        )
