# app/services/booking_service.py
"""
Manual bookings entered by an owner.

They obey the same rule as synced ones: a Confirmed manual booking is refused
when it would overlap any other Confirmed booking of the villa.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.enums import MANUAL_SOURCE, BookingStatus
from app.core.exceptions import BookingConflictError, BookingNotFoundError, VillaNotFoundError
from app.core.utils import utcnow
from app.database import async_session
from app.models.booking import Booking
from app.models.villa import Villa
from app.schemas.booking import BookingCreate, CanonicalBooking
from app.services.conflict_resolver import Decision, classify

logger = logging.getLogger(__name__)


class BookingService:
    def __init__(self, session_factory: async_sessionmaker = async_session):
        self.session_factory = session_factory

    async def _get_villa(self, session, villa_id: int, owner_id: Optional[str]) -> Villa:
        villa = await session.get(Villa, villa_id)
        if villa is None or (owner_id is not None and villa.owner_id != owner_id):
            raise VillaNotFoundError(f"Villa {villa_id} not found")
        return villa

    async def create_manual_booking(self, data: BookingCreate, owner_id: Optional[str] = None) -> Booking:
        """
        Raises:
            VillaNotFoundError: unknown villa or not the owner's
            BookingConflictError: the dates are already taken by a Confirmed booking
        """
        async with self.session_factory() as session:
            await self._get_villa(session, data.villa_id, owner_id)

            candidate = CanonicalBooking(
                guest_name=data.guest_name,
                start_date=data.start_date,
                end_date=data.end_date,
                total_fare=data.total_fare,
                currency=data.currency,
                status=data.status,
                source=MANUAL_SOURCE,
            )
            stmt = select(Booking).where(
                Booking.villa_id == data.villa_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
            existing = (await session.execute(stmt)).scalars().all()
            classification = classify(existing, candidate)
            if classification.decision is not Decision.ACCEPT:
                other = classification.conflicts_with[0]
                raise BookingConflictError(
                    f"Villa {data.villa_id} is already booked {other.start_date} to {other.end_date} "
                    f"({other.source})",
                    conflicting_booking_id=getattr(other, "id", None),
                    reason=classification.reason.value,
                )

            booking = Booking(
                villa_id=data.villa_id,
                guest_name=data.guest_name,
                start_date=data.start_date,
                end_date=data.end_date,
                total_fare=data.total_fare,
                currency=data.currency,
                status=data.status.value,
                source=MANUAL_SOURCE,
                external_id=None,
                notes=data.notes,
            )
            session.add(booking)
            await session.commit()
            await session.refresh(booking)

        logger.info(f"Created manual booking {booking.id} for villa {data.villa_id} "
                    f"{data.start_date}->{data.end_date}")
        return booking

    async def cancel_booking(self, booking_id: int, owner_id: Optional[str] = None) -> Booking:
        async with self.session_factory() as session:
            booking = await session.get(Booking, booking_id)
            if booking is None:
                raise BookingNotFoundError(f"Booking {booking_id} not found")
            await self._get_villa(session, booking.villa_id, owner_id)

            if booking.status != BookingStatus.CANCELLED.value:
                booking.status = BookingStatus.CANCELLED.value
                booking.updated_at = utcnow()
                await session.commit()
                await session.refresh(booking)
                logger.info(f"Cancelled booking {booking_id} ({booking.source}) on villa {booking.villa_id}")
            return booking

    async def list_villa_bookings(self, villa_id: int, owner_id: Optional[str] = None,
                                  status: Optional[str] = None, date_from: Optional[date] = None,
                                  date_to: Optional[date] = None) -> List[Booking]:
        async with self.session_factory() as session:
            await self._get_villa(session, villa_id, owner_id)
            stmt = select(Booking).where(Booking.villa_id == villa_id)
            if status:
                stmt = stmt.where(Booking.status == status)
            if date_from is not None:
                stmt = stmt.where(Booking.end_date > date_from)
            if date_to is not None:
                stmt = stmt.where(Booking.start_date < date_to)
            stmt = stmt.order_by(Booking.start_date, Booking.id)
            return list((await session.execute(stmt)).scalars().all())
