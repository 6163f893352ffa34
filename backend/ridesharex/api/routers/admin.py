from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select

from ridesharex.api.dependencies import get_request_context, require_role
from ridesharex.api.transitions import run_transition
from ridesharex.db.session import get_db
from ridesharex.db.models import Booking, Document, Listing, User
from ridesharex.db import crud_admin_logs, crud_bookings, crud_listings, crud_users
from ridesharex.schemas.booking import BookingOut
from ridesharex.schemas.listing import ListingDetail
from ridesharex.schemas.user import UserAdminOut, UserRoleUpdate
from ridesharex.schemas.workflow import AdminLogOut, StatusUpdate
from ridesharex.workflow.context import RequestContext
from ridesharex.workflow.executor import TransitionRequest
from ridesharex.workflow.states import EntityType


router = APIRouter()


async def _count(db: AsyncSession, column, *where) -> int:
    stmt = select(func.count(column))
    if where:
        stmt = stmt.where(*where)
    return (await db.execute(stmt)).scalar_one()


@router.get("/stats")
async def admin_stats(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
):
    pending_users = await _count(db, User.id, User.approval_status == "pending")
    pending_listings = await _count(db, Listing.id, Listing.status == "pending")
    pending_bookings = await _count(db, Booking.id, Booking.status == "pending")
    pending_documents = await _count(db, Document.id, Document.status == "pending")
    return {
        "total_users": await _count(db, User.id),
        "total_listings": await _count(db, Listing.id),
        "total_bookings": await _count(db, Booking.id),
        "pending_approvals": {
            "users": pending_users,
            "listings": pending_listings,
            "bookings": pending_bookings,
            "documents": pending_documents,
            "total": pending_users + pending_listings + pending_bookings + pending_documents,
        },
    }


# ---------------------------
# Users
# ---------------------------

@router.get("/users")
async def admin_users(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    role: Optional[str] = None,
    approval_status: Optional[str] = None,
):
    users = await crud_users.list_users(db, role=role, approval_status=approval_status)
    return {"data": [UserAdminOut.model_validate(u) for u in users]}


@router.patch("/users/{user_id}/approve")
async def admin_review_user(
    user_id: int,
    body: StatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    context: RequestContext = Depends(get_request_context),
):
    """
    Approve / reject a user's profile. body: { status, reason? }
    """
    result = await run_transition(
        db,
        current_user,
        TransitionRequest(
            entity_type=EntityType.USER.value,
            entity_id=user_id,
            field="approval_status",
            new_status=body.status,
            reason=body.reason,
        ),
        context=context,
        request=request,
        background_tasks=background_tasks,
    )
    return {"message": f"User {result.new_status}", "data": UserAdminOut.model_validate(result.entity)}


@router.put("/users/{user_id}/role")
async def set_role(
    user_id: int,
    body: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    context: RequestContext = Depends(get_request_context),
):
    user = await crud_users.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    old_role = user.role
    await crud_admin_logs.record_admin_action(
        db,
        actor=current_user,
        action="user.role.changed",
        entity_type=EntityType.USER.value,
        entity_id=user.id,
        target_user_id=user.id,
        details={"from": old_role, "to": body.role},
        context=context,
    )
    # update_user_role commits the audit row with the change
    user = await crud_users.update_user_role(db, user_id, body.role)
    return UserAdminOut.model_validate(user)


# ---------------------------
# Vehicles (listings)
# ---------------------------

@router.get("/vehicles")
async def admin_vehicles(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    status: Optional[str] = None,
):
    """
    Full listing catalogue for admin (any status).
    """
    items = await crud_listings.list_all_listings_with_host(db, status=status)
    return {"data": {"items": [ListingDetail.model_validate(i) for i in items]}}


@router.get("/vehicles/pending")
async def admin_pending_vehicles(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
):
    """
    Review queue: only pending listings, oldest first.
    """
    items = await crud_listings.list_pending_listings_with_host(db)
    return {"data": {"items": [ListingDetail.model_validate(i) for i in items]}}


@router.patch("/vehicles/{listing_id}/approve")
async def admin_review_vehicle(
    listing_id: int,
    body: StatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    context: RequestContext = Depends(get_request_context),
):
    """
    Approve listing so it becomes bookable, or reject / deactivate it.
    """
    result = await run_transition(
        db,
        current_user,
        TransitionRequest(
            entity_type=EntityType.LISTING.value,
            entity_id=listing_id,
            new_status=body.status,
            reason=body.reason,
        ),
        context=context,
        request=request,
        background_tasks=background_tasks,
    )
    listing = await crud_listings.get_listing_with_host(db, result.entity.id)
    return {"message": f"Vehicle {result.new_status}", "data": ListingDetail.model_validate(listing)}


# ---------------------------
# Bookings
# ---------------------------

@router.get("/bookings")
async def admin_bookings(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
):
    bookings = await crud_bookings.list_all_bookings(db, status=status, payment_status=payment_status)
    return {"items": [BookingOut.model_validate(b) for b in bookings]}


@router.patch("/bookings/{booking_id}/approve")
async def admin_review_booking(
    booking_id: int,
    body: StatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    context: RequestContext = Depends(get_request_context),
):
    """
    Admin override of a booking's status (approve, cancel, resolve dispute...).
    """
    result = await run_transition(
        db,
        current_user,
        TransitionRequest(
            entity_type=EntityType.BOOKING.value,
            entity_id=booking_id,
            new_status=body.status,
            reason=body.reason,
        ),
        context=context,
        request=request,
        background_tasks=background_tasks,
    )
    return {"message": f"Booking {result.new_status}", "data": BookingOut.model_validate(result.entity)}


@router.patch("/bookings/{booking_id}/payment-status")
async def admin_update_payment_status(
    booking_id: int,
    body: StatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    context: RequestContext = Depends(get_request_context),
):
    result = await run_transition(
        db,
        current_user,
        TransitionRequest(
            entity_type=EntityType.BOOKING.value,
            entity_id=booking_id,
            field="payment_status",
            new_status=body.status,
            reason=body.reason,
        ),
        context=context,
        request=request,
        background_tasks=background_tasks,
    )
    return {"message": f"Payment {result.new_status}", "data": BookingOut.model_validate(result.entity)}


# ---------------------------
# Audit trail
# ---------------------------

@router.get("/logs")
async def admin_logs(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role("admin")),
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    logs = await crud_admin_logs.list_admin_logs(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        limit=limit,
        offset=offset,
    )
    return {"items": [AdminLogOut.model_validate(log) for log in logs]}
