from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.api.dependencies import get_current_user, get_request_context
from ridesharex.api.transitions import run_transition
from ridesharex.db.session import get_db
from ridesharex.db import crud_bookings
from ridesharex.schemas.booking import BookingCreate, BookingOut
from ridesharex.schemas.workflow import CancelRequest
from ridesharex.workflow import permissions
from ridesharex.workflow.context import RequestContext
from ridesharex.workflow.executor import TransitionRequest
from ridesharex.workflow.states import BookingStatus, EntityType, Role

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """
    Request a vehicle. The listing must be approved and the dates free;
    the booking starts as 'pending' until the host or an admin responds.
    """
    booking = await crud_bookings.create_booking(
        db,
        renter_id=current_user.id,
        listing_id=body.listing_id,
        start_date=body.start_date,
        end_date=body.end_date,
        special_requests=body.special_requests,
    )
    return {"success": True, "data": BookingOut.model_validate(booking)}


@router.get("")
async def list_bookings(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    bookings = await crud_bookings.list_bookings_for_user(db, current_user.id)
    return {"items": [BookingOut.model_validate(b) for b in bookings]}


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    booking = await crud_bookings.get_booking(db, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    is_party = booking.renter_id == current_user.id or booking.listing.host_id == current_user.id
    if not is_party and current_user.role != Role.ADMIN.value:
        raise HTTPException(status_code=403, detail="Not allowed")
    return {"success": True, "data": BookingOut.model_validate(booking)}


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    body: CancelRequest | None = None,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
    context: RequestContext = Depends(get_request_context),
):
    """
    Renter, the listing's host, or an admin may cancel.
    Late cancellations carry a fee (see crud_bookings.cancellation_fee).
    """
    result = await run_transition(
        db,
        current_user,
        TransitionRequest(
            entity_type=EntityType.BOOKING.value,
            entity_id=booking_id,
            new_status=BookingStatus.CANCELLED.value,
            reason=body.reason if body else None,
            action=permissions.BOOKING_CANCEL,
        ),
        context=context,
        request=request,
        background_tasks=background_tasks,
    )
    booking = result.entity
    return {
        "message": "Booking cancelled successfully",
        "cancellation_fee": float(booking.cancellation_fee or 0),
        "data": BookingOut.model_validate(booking),
    }
