# ridesharex/db/crud_bookings.py

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ridesharex.core.config import get_settings
from ridesharex.core.errors import (
    BookingConflictError,
    DomainValidationError,
    ListingUnavailableError,
    NotFoundError,
)
from ridesharex.db.models import Booking, Listing
from ridesharex.workflow.states import BLOCKING_BOOKING_STATUSES, BookingStatus, PaymentStatus

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class BookingQuote:
    total_days: int
    price_per_day: Decimal
    subtotal: Decimal
    service_fee: Decimal
    insurance_fee: Decimal
    total_amount: Decimal


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def quote_booking(price_per_day, start_date: date, end_date: date) -> BookingQuote:
    """
    Price a rental of [start_date, end_date). One day minimum.
    """
    total_days = (end_date - start_date).days
    if total_days < 1:
        raise DomainValidationError("End date must be after start date")

    settings = get_settings()
    price = _money(price_per_day)
    subtotal = _money(price * total_days)
    service_fee = _money(subtotal * Decimal(str(settings.SERVICE_FEE_RATE)))
    insurance_fee = _money(subtotal * Decimal(str(settings.INSURANCE_FEE_RATE)))
    return BookingQuote(
        total_days=total_days,
        price_per_day=price,
        subtotal=subtotal,
        service_fee=service_fee,
        insurance_fee=insurance_fee,
        total_amount=subtotal + service_fee + insurance_fee,
    )


def cancellation_fee(total_amount, start_date: date, today: Optional[date] = None) -> Decimal:
    """
    Fee charged when a booking is cancelled, by notice given:
    under 1 day 50%, under 3 days 25%, under 7 days 10%, otherwise free.
    """
    today = today or date.today()
    days_until_start = (start_date - today).days
    if days_until_start < 1:
        rate = Decimal("0.50")
    elif days_until_start < 3:
        rate = Decimal("0.25")
    elif days_until_start < 7:
        rate = Decimal("0.10")
    else:
        rate = Decimal("0")
    return _money(_money(total_amount or 0) * rate)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    # half-open intervals: a return on day X and a pickup on day X do not clash
    return a_start < b_end and b_start < a_end


async def lock_listing(db: AsyncSession, listing_id: int) -> Optional[Listing]:
    """
    SELECT ... FOR UPDATE on the listing so overlap checks and inserts for
    the same vehicle serialize. SQLite ignores the lock clause.
    """
    res = await db.execute(select(Listing).where(Listing.id == listing_id).with_for_update())
    return res.scalar_one_or_none()


async def find_conflicting_booking(
    db: AsyncSession,
    *,
    listing_id: int,
    start_date: date,
    end_date: date,
    exclude_booking_id: Optional[int] = None,
) -> Optional[Booking]:
    stmt = select(Booking).where(
        Booking.listing_id == listing_id,
        Booking.status.in_(BLOCKING_BOOKING_STATUSES),
        Booking.start_date < end_date,
        Booking.end_date > start_date,
    )
    if exclude_booking_id is not None:
        stmt = stmt.where(Booking.id != exclude_booking_id)
    res = await db.execute(stmt.limit(1))
    return res.scalars().first()


async def ensure_no_conflict(
    db: AsyncSession,
    *,
    listing_id: int,
    start_date: date,
    end_date: date,
    exclude_booking_id: Optional[int] = None,
) -> None:
    conflict = await find_conflicting_booking(
        db,
        listing_id=listing_id,
        start_date=start_date,
        end_date=end_date,
        exclude_booking_id=exclude_booking_id,
    )
    if conflict is not None:
        logger.info(
            "Listing %s dates %s..%s clash with booking %s",
            listing_id,
            start_date,
            end_date,
            conflict.id,
        )
        raise BookingConflictError("The selected dates are not available for this vehicle")


async def create_booking(
    db: AsyncSession,
    *,
    renter_id: int,
    listing_id: int,
    start_date: date,
    end_date: date,
    special_requests: Optional[str] = None,
    today: Optional[date] = None,
) -> Booking:
    today = today or date.today()
    if start_date < today:
        raise DomainValidationError("Start date cannot be in the past")
    if end_date <= start_date:
        raise DomainValidationError("End date must be after start date")

    listing = await lock_listing(db, listing_id)
    if listing is None:
        raise NotFoundError("Listing not found")
    if not listing.is_bookable:
        raise ListingUnavailableError("This vehicle is not available for booking")
    if listing.host_id == renter_id:
        raise DomainValidationError("Hosts cannot book their own vehicle")

    await ensure_no_conflict(db, listing_id=listing_id, start_date=start_date, end_date=end_date)

    quote = quote_booking(listing.price_per_day, start_date, end_date)
    booking = Booking(
        renter_id=renter_id,
        listing_id=listing_id,
        start_date=start_date,
        end_date=end_date,
        total_days=quote.total_days,
        price_per_day=quote.price_per_day,
        subtotal=quote.subtotal,
        service_fee=quote.service_fee,
        insurance_fee=quote.insurance_fee,
        total_amount=quote.total_amount,
        status=BookingStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        special_requests=special_requests,
    )
    db.add(booking)
    await db.commit()
    await db.refresh(booking)
    logger.info("Booking %s created for listing %s by user %s", booking.id, listing_id, renter_id)
    return booking


async def get_booking(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    res = await db.execute(
        select(Booking).options(selectinload(Booking.listing)).where(Booking.id == booking_id)
    )
    return res.scalar_one_or_none()


async def list_bookings_for_user(db: AsyncSession, user_id: int) -> List[Booking]:
    stmt = (
        select(Booking)
        .where(Booking.renter_id == user_id)
        .order_by(Booking.id.desc())
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_bookings_for_host(db: AsyncSession, host_id: int) -> List[Booking]:
    """
    All bookings for listings owned by host_id
    """
    stmt = (
        select(Booking)
        .join(Listing, Booking.listing_id == Listing.id)
        .where(Listing.host_id == host_id)
        .order_by(Booking.id.desc())
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_all_bookings(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> List[Booking]:
    stmt = select(Booking)
    if status:
        stmt = stmt.where(Booking.status == status)
    if payment_status:
        stmt = stmt.where(Booking.payment_status == payment_status)
    res = await db.execute(stmt.order_by(Booking.id.desc()))
    return list(res.scalars().all())
