from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.api.dependencies import get_request_context, require_role
from ridesharex.api.transitions import run_transition
from ridesharex.db.session import get_db
from ridesharex.db import crud_bookings, crud_listings
from ridesharex.schemas.booking import BookingOut
from ridesharex.schemas.listing import ListingBase, ListingCreate, ListingUpdate
from ridesharex.schemas.workflow import StatusUpdate
from ridesharex.workflow import permissions
from ridesharex.workflow.context import RequestContext
from ridesharex.workflow.executor import TransitionRequest
from ridesharex.workflow.states import EntityType, ListingStatus, Role

router = APIRouter()


async def _owned_listing(db: AsyncSession, listing_id: int, user):
    listing = await crud_listings.get_listing(db, listing_id)
    if not listing:
        raise HTTPException(status_code=404, detail="Not found")
    if listing.host_id != user.id and user.role != Role.ADMIN.value:
        raise HTTPException(status_code=403, detail="Not allowed")
    return listing


@router.get("/listings")
async def host_listings(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("host")),
):
    """
    All listings of the current host, with status so they can see
    draft/pending/approved/rejected/inactive.
    """
    items = await crud_listings.list_listings_for_host(db, host_id=current_user.id)
    return {"data": {"items": [ListingBase.model_validate(i) for i in items]}}


@router.post("/listings", status_code=status.HTTP_201_CREATED)
async def create_listing(
    body: ListingCreate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("host")),
):
    """
    Create a vehicle listing. It is submitted for review ('pending') unless
    submit=false, which keeps it as a draft.
    """
    data = body.model_dump(mode="json", exclude={"submit"})
    listing = await crud_listings.create_listing(
        db,
        host_id=current_user.id,
        submit=body.submit,
        **data,
    )
    message = (
        "Listing created and pending admin approval."
        if listing.status == ListingStatus.PENDING.value
        else "Listing saved as draft."
    )
    return {"message": message, "data": ListingBase.model_validate(listing)}


@router.put("/listings/{listing_id}")
async def update_listing(
    listing_id: int,
    body: ListingUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("host")),
):
    """
    Edit listing details. Status is not touched here; use submit/deactivate.
    """
    listing = await _owned_listing(db, listing_id, current_user)
    listing = await crud_listings.update_listing(db, listing, body.model_dump(mode="json", exclude_unset=True))
    return {"message": "updated", "data": ListingBase.model_validate(listing)}


async def _host_listing_transition(
    listing_id: int,
    new_status: str,
    action: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession,
    current_user,
    context: RequestContext,
):
    result = await run_transition(
        db,
        current_user,
        TransitionRequest(
            entity_type=EntityType.LISTING.value,
            entity_id=listing_id,
            new_status=new_status,
            action=action,
        ),
        context=context,
        request=request,
        background_tasks=background_tasks,
    )
    return {"message": f"Listing {result.new_status}", "data": ListingBase.model_validate(result.entity)}


@router.post("/listings/{listing_id}/submit")
async def submit_listing(
    listing_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("host")),
    context: RequestContext = Depends(get_request_context),
):
    """
    Send a draft, rejected or inactive listing (back) to admin review.
    """
    return await _host_listing_transition(
        listing_id,
        ListingStatus.PENDING.value,
        permissions.LISTING_SUBMIT,
        request,
        background_tasks,
        db,
        current_user,
        context,
    )


@router.post("/listings/{listing_id}/withdraw")
async def withdraw_listing(
    listing_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("host")),
    context: RequestContext = Depends(get_request_context),
):
    return await _host_listing_transition(
        listing_id,
        ListingStatus.DRAFT.value,
        permissions.LISTING_WITHDRAW,
        request,
        background_tasks,
        db,
        current_user,
        context,
    )


@router.post("/listings/{listing_id}/deactivate")
async def deactivate_listing(
    listing_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("host")),
    context: RequestContext = Depends(get_request_context),
):
    """
    Take an approved listing off the market. Listings are never deleted.
    """
    return await _host_listing_transition(
        listing_id,
        ListingStatus.INACTIVE.value,
        permissions.LISTING_DEACTIVATE,
        request,
        background_tasks,
        db,
        current_user,
        context,
    )


@router.get("/bookings")
async def host_bookings(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("host")),
):
    """
    All bookings for listings owned by the current host.
    """
    bookings = await crud_bookings.list_bookings_for_host(db, host_id=current_user.id)
    return {"items": [BookingOut.model_validate(b) for b in bookings]}


@router.patch("/bookings/{booking_id}/respond")
async def respond_to_booking(
    booking_id: int,
    body: StatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("host")),
    context: RequestContext = Depends(get_request_context),
):
    """
    Host approves or declines a booking request on their vehicle.
    body: { status: "approved" | "declined", reason? }
    """
    result = await run_transition(
        db,
        current_user,
        TransitionRequest(
            entity_type=EntityType.BOOKING.value,
            entity_id=booking_id,
            new_status=body.status,
            reason=body.reason,
            action=permissions.BOOKING_RESPOND,
        ),
        context=context,
        request=request,
        background_tasks=background_tasks,
    )
    return {"message": f"Booking {result.new_status}", "data": BookingOut.model_validate(result.entity)}
