"""
Transition executor.

Applies one status change to a user, listing, booking or document:

    guard -> lock row -> validate against the transition table -> write
    -> audit row + notification row + outbox event -> commit

Everything from the write onwards happens in a single transaction, so a
status change is never persisted without its audit trail and pending
notification (and vice versa). Delivering the notification is the outbox
dispatcher's job.
"""
import logging
from dataclasses import dataclass, field as dc_field
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ridesharex.core.errors import BookingConflictError, DomainValidationError, NotFoundError
from ridesharex.db import crud_admin_logs, crud_bookings, crud_documents, crud_notifications
from ridesharex.db.models import Booking, Document, Listing, Notification, OutboxEvent, User, utcnow
from ridesharex.workflow import outbox, permissions
from ridesharex.workflow.context import RequestContext
from ridesharex.workflow.states import (
    BookingStatus,
    DocumentStatus,
    EntityType,
    ListingApprovalStatus,
    ListingStatus,
    NotificationPriority,
    UserApprovalStatus,
)
from ridesharex.workflow.transitions import validate_transition

logger = logging.getLogger(__name__)

MODELS = {
    EntityType.USER.value: User,
    EntityType.LISTING.value: Listing,
    EntityType.BOOKING.value: Booking,
    EntityType.DOCUMENT.value: Document,
}

REVIEW_ACTIONS = {
    (EntityType.USER.value, "approval_status"): permissions.USER_REVIEW,
    (EntityType.LISTING.value, "status"): permissions.LISTING_REVIEW,
    (EntityType.BOOKING.value, "status"): permissions.BOOKING_REVIEW,
    (EntityType.BOOKING.value, "payment_status"): permissions.BOOKING_PAYMENT,
    (EntityType.DOCUMENT.value, "status"): permissions.DOCUMENT_REVIEW,
}

# Where a reason goes for each target status
REASON_COLUMNS = {
    (EntityType.USER.value, UserApprovalStatus.REJECTED.value): "rejection_reason",
    (EntityType.LISTING.value, ListingStatus.REJECTED.value): "rejection_reason",
    (EntityType.DOCUMENT.value, DocumentStatus.REJECTED.value): "rejection_reason",
    (EntityType.BOOKING.value, BookingStatus.CANCELLED.value): "cancellation_reason",
    (EntityType.BOOKING.value, BookingStatus.DECLINED.value): "decline_reason",
    (EntityType.BOOKING.value, BookingStatus.DISPUTED.value): "dispute_reason",
}

NOTIFICATION_TITLES = {
    "user_approved": "Profile approved",
    "user_rejected": "Profile rejected",
    "user_pending": "Profile back under review",
    "listing_approved": "Vehicle approved",
    "listing_rejected": "Vehicle rejected",
    "listing_pending": "Vehicle submitted for review",
    "listing_draft": "Vehicle moved back to draft",
    "listing_inactive": "Vehicle deactivated",
    "booking_confirmed": "Booking confirmed",
    "booking_approved": "Booking approved",
    "booking_declined": "Booking declined",
    "booking_cancelled": "Booking cancelled",
    "booking_completed": "Booking completed",
    "booking_disputed": "Booking disputed",
    "document_approved": "Document approved",
    "document_rejected": "Document rejected",
}

HIGH_PRIORITY = {"rejected", "declined", "cancelled", "disputed", "failed"}


@dataclass
class TransitionRequest:
    entity_type: str
    entity_id: int
    new_status: str
    field: str = "status"
    reason: Optional[str] = None
    # Defaults to the admin review action for (entity_type, field)
    action: Optional[str] = None


@dataclass
class TransitionResult:
    entity: Any
    old_status: str
    new_status: str
    notification: Notification
    event: OutboxEvent
    extra: Dict[str, Any] = dc_field(default_factory=dict)


async def _load_for_update(db: AsyncSession, entity_type: str, entity_id: int):
    model = MODELS.get(entity_type)
    if model is None:
        raise DomainValidationError(f"Unknown entity type '{entity_type}'")

    # locked rows are re-read so checks run against the committed values
    stmt = (
        select(model)
        .where(model.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if model is Booking:
        stmt = stmt.options(selectinload(Booking.listing))
    res = await db.execute(stmt)
    entity = res.scalar_one_or_none()
    if entity is None:
        raise NotFoundError(f"{entity_type.capitalize()} not found")
    return entity


def _recipient_id(entity_type: str, entity, actor: User) -> int:
    if entity_type == EntityType.USER.value:
        return entity.id
    if entity_type == EntityType.LISTING.value:
        return entity.host_id
    if entity_type == EntityType.DOCUMENT.value:
        return entity.user_id
    # Booking: tell the other party. A renter cancelling informs the host.
    if actor.id == entity.renter_id and entity.listing is not None:
        return entity.listing.host_id
    return entity.renter_id


def _notification_type(entity_type: str, field: str, new_status: str) -> str:
    if field == "payment_status":
        return f"payment_{new_status}"
    return f"{entity_type}_{new_status}"


def _notification_text(entity_type: str, field: str, entity, new_status: str, reason: Optional[str]):
    ntype = _notification_type(entity_type, field, new_status)
    title = NOTIFICATION_TITLES.get(ntype) or f"{entity_type.capitalize()} {new_status.replace('_', ' ')}"

    if entity_type == EntityType.LISTING.value:
        subject = f"Your vehicle '{entity.title}'"
    elif entity_type == EntityType.BOOKING.value:
        subject = f"Booking #{entity.id} ({entity.start_date} to {entity.end_date})"
        if field == "payment_status":
            subject = f"Payment for booking #{entity.id}"
    elif entity_type == EntityType.DOCUMENT.value:
        subject = f"Your {entity.document_type} document"
    else:
        subject = "Your profile"

    message = f"{subject} is now {new_status.replace('_', ' ')}."
    if reason:
        message = f"{message} Reason: {reason}"
    return ntype, title, message


def _apply_user(entity: User, new_status: str, reason: Optional[str], actor: User) -> None:
    if new_status == UserApprovalStatus.APPROVED.value:
        entity.approved_at = utcnow()
        entity.rejection_reason = None
    elif new_status == UserApprovalStatus.PENDING.value:
        entity.approved_at = None


def _apply_listing(entity: Listing, new_status: str, reason: Optional[str], actor: User) -> None:
    if new_status == ListingStatus.APPROVED.value:
        entity.approval_status = ListingApprovalStatus.APPROVED.value
        entity.approved_at = utcnow()
        entity.approved_by_admin_id = actor.id
        entity.rejection_reason = None
    elif new_status == ListingStatus.REJECTED.value:
        entity.approval_status = ListingApprovalStatus.REJECTED.value
        entity.approved_at = None
        # approver kept for history
        entity.approved_by_admin_id = actor.id
    elif new_status in (ListingStatus.PENDING.value, ListingStatus.DRAFT.value):
        entity.approval_status = ListingApprovalStatus.PENDING.value
        entity.approved_at = None
    # INACTIVE keeps its approval; reactivation does not need a new review


async def _apply_booking(
    db: AsyncSession,
    entity: Booking,
    field: str,
    new_status: str,
    reason: Optional[str],
    extra: Dict[str, Any],
) -> None:
    if field != "status":
        if reason:
            entity.admin_notes = reason
        return

    if new_status in (BookingStatus.CONFIRMED.value, BookingStatus.APPROVED.value):
        await crud_bookings.lock_listing(db, entity.listing_id)
        await crud_bookings.ensure_no_conflict(
            db,
            listing_id=entity.listing_id,
            start_date=entity.start_date,
            end_date=entity.end_date,
            exclude_booking_id=entity.id,
        )
    elif new_status == BookingStatus.CANCELLED.value:
        fee = crud_bookings.cancellation_fee(entity.total_amount, entity.start_date)
        entity.cancellation_fee = fee
        extra["cancellation_fee"] = str(fee)

    # free-text reasons for non-terminal moves go to admin notes
    if reason and (EntityType.BOOKING.value, new_status) not in REASON_COLUMNS:
        entity.admin_notes = reason


def _apply_document(entity: Document, new_status: str, reason: Optional[str], actor: User) -> None:
    entity.reviewed_at = utcnow()
    entity.reviewed_by_id = actor.id


async def apply_transition(
    db: AsyncSession,
    actor: User,
    request: TransitionRequest,
    context: Optional[RequestContext] = None,
) -> TransitionResult:
    """
    Apply a single status change and commit it.

    Raises NotFoundError, AuthorizationError, DomainValidationError,
    InvalidTransitionError or BookingConflictError; on any of them nothing is
    written.
    """
    entity_type, field, new_status = request.entity_type, request.field, request.new_status
    action = request.action or REVIEW_ACTIONS.get((entity_type, field))
    if action is None:
        raise DomainValidationError(f"{entity_type}.{field} is not a workflow field")

    entity = await _load_for_update(db, entity_type, request.entity_id)

    try:
        permissions.require_capability(actor, action, entity)
        permissions.check_action_target(action, new_status)

        old_status = getattr(entity, field)
        validate_transition(entity_type, field, old_status, new_status)

        setattr(entity, field, new_status)
        reason_column = REASON_COLUMNS.get((entity_type, new_status))
        if reason_column and request.reason is not None:
            setattr(entity, reason_column, request.reason)

        extra: Dict[str, Any] = {}
        if entity_type == EntityType.USER.value:
            _apply_user(entity, new_status, request.reason, actor)
        elif entity_type == EntityType.LISTING.value:
            _apply_listing(entity, new_status, request.reason, actor)
        elif entity_type == EntityType.BOOKING.value:
            await _apply_booking(db, entity, field, new_status, request.reason, extra)
        elif entity_type == EntityType.DOCUMENT.value:
            _apply_document(entity, new_status, request.reason, actor)
            await db.flush()
            extra["user_document_status"] = await crud_documents.refresh_user_document_status(
                db, entity.user_id
            )

        recipient_id = _recipient_id(entity_type, entity, actor)
        ntype, title, message = _notification_text(
            entity_type, field, entity, new_status, request.reason
        )
        payload = {
            "entity_type": entity_type,
            "entity_id": entity.id,
            "field": field,
            "old_status": old_status,
            "new_status": new_status,
            "reason": request.reason,
            **extra,
        }

        await crud_admin_logs.record_admin_action(
            db,
            actor=actor,
            action=f"{entity_type}.{field}.{new_status}",
            entity_type=entity_type,
            entity_id=entity.id,
            target_user_id=recipient_id,
            details={**payload, "actor_role": actor.role, "via": action},
            context=context,
        )

        notification = await crud_notifications.create_notification(
            db,
            user_id=recipient_id,
            type=ntype,
            title=title,
            message=message,
            data=payload,
            priority=(
                NotificationPriority.HIGH.value
                if new_status in HIGH_PRIORITY
                else NotificationPriority.MEDIUM.value
            ),
        )
        event = await outbox.enqueue_event(
            db,
            event_type=ntype,
            entity_type=entity_type,
            entity_id=entity.id,
            user_id=recipient_id,
            payload={
                **payload,
                "notification_id": notification.id,
                "title": title,
                "message": message,
            },
            notification=notification,
        )

        await db.commit()
    except IntegrityError:
        await db.rollback()
        if entity_type == EntityType.BOOKING.value:
            raise BookingConflictError("Another booking already holds these exact dates")
        raise
    except Exception:
        await db.rollback()
        raise

    await db.refresh(entity)
    logger.info(
        "%s #%s %s: %s -> %s by user %s (%s)",
        entity_type,
        entity.id,
        field,
        old_status,
        new_status,
        actor.id,
        action,
    )
    return TransitionResult(
        entity=entity,
        old_status=old_status,
        new_status=new_status,
        notification=notification,
        event=event,
        extra=extra,
    )
