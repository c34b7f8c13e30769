# app/services/conflict_service.py
"""
Conflict inbox.

Flagged cross-platform double bookings wait here until the owner decides.
``keep_existing`` leaves the calendar as it is; ``accept_incoming`` cancels
whatever Confirmed bookings overlap the incoming one and stores it, so the
villa never ends up with two Confirmed stays on the same night.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.enums import BookingStatus, ConflictResolution, ConflictStatus
from app.core.exceptions import ConflictNotFoundError, ValidationError
from app.core.utils import utcnow
from app.database import async_session
from app.models.booking import Booking
from app.models.booking_conflict import BookingConflict
from app.models.villa import Villa
from app.schemas.booking import CanonicalBooking

logger = logging.getLogger(__name__)


class ConflictService:
    def __init__(self, session_factory: async_sessionmaker = async_session):
        self.session_factory = session_factory

    async def list_conflicts(self, owner_id: Optional[str] = None, villa_id: Optional[int] = None,
                             status: Optional[str] = ConflictStatus.OPEN.value) -> List[BookingConflict]:
        stmt = select(BookingConflict).join(Villa, Villa.id == BookingConflict.villa_id)
        if owner_id is not None:
            stmt = stmt.where(Villa.owner_id == owner_id)
        if villa_id is not None:
            stmt = stmt.where(BookingConflict.villa_id == villa_id)
        if status:
            stmt = stmt.where(BookingConflict.status == status)
        stmt = stmt.order_by(BookingConflict.detected_at.desc(), BookingConflict.id.desc())
        async with self.session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def resolve(self, conflict_id: int, resolution: str, note: Optional[str] = None,
                      owner_id: Optional[str] = None) -> BookingConflict:
        try:
            resolution = ConflictResolution(resolution)
        except ValueError:
            raise ValidationError(
                f"Unknown resolution '{resolution}'; use one of {[r.value for r in ConflictResolution]}"
            )

        async with self.session_factory() as session:
            conflict = await session.get(BookingConflict, conflict_id)
            if conflict is None:
                raise ConflictNotFoundError(f"Conflict {conflict_id} not found")
            if owner_id is not None:
                villa = await session.get(Villa, conflict.villa_id)
                if villa is None or villa.owner_id != owner_id:
                    raise ConflictNotFoundError(f"Conflict {conflict_id} not found")
            if conflict.status == ConflictStatus.RESOLVED.value:
                raise ValidationError(f"Conflict {conflict_id} is already resolved")

            if resolution is ConflictResolution.ACCEPT_INCOMING:
                await self._accept_incoming(session, conflict)

            conflict.status = ConflictStatus.RESOLVED.value
            conflict.resolution = resolution.value
            conflict.resolution_note = note
            conflict.resolved_at = utcnow()
            await session.commit()

        logger.info(f"Conflict {conflict_id} on villa {conflict.villa_id} resolved: {resolution.value}")
        return conflict

    async def _accept_incoming(self, session, conflict: BookingConflict) -> None:
        incoming = CanonicalBooking.model_validate(conflict.incoming)
        now = utcnow()

        stmt = select(Booking).where(
            Booking.villa_id == conflict.villa_id,
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.start_date < incoming.end_date,
            Booking.end_date > incoming.start_date,
        )
        for booking in (await session.execute(stmt)).scalars().all():
            if booking.source == incoming.source and booking.external_id == incoming.external_id:
                continue
            booking.status = BookingStatus.CANCELLED.value
            logger.info(f"Cancelling booking {booking.id} ({booking.source}) in favour of "
                        f"{incoming.source} {incoming.external_id}")

        stmt = select(Booking).where(
            Booking.villa_id == conflict.villa_id,
            Booking.source == incoming.source,
            Booking.external_id == incoming.external_id,
        )
        stored = (await session.execute(stmt)).scalar_one_or_none()
        if stored is None:
            stored = Booking(villa_id=conflict.villa_id, source=incoming.source, external_id=incoming.external_id)
            session.add(stored)
        stored.guest_name = incoming.guest_name
        stored.start_date = incoming.start_date
        stored.end_date = incoming.end_date
        stored.total_fare = incoming.total_fare
        stored.currency = incoming.currency
        stored.status = BookingStatus.CONFIRMED.value
        stored.last_synced_at = now
        await session.flush()
