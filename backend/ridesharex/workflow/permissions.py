# ridesharex/workflow/permissions.py
"""
One capability check for every workflow action.

Admins may do everything. Owners get a small, explicit set of actions on
their own rows; everyone else is denied.
"""
import logging
from typing import Any, Callable, Dict, FrozenSet, Optional

from ridesharex.core.errors import AuthorizationError, DomainValidationError
from ridesharex.db.models import Booking, Document, Listing, User
from ridesharex.workflow.states import BookingStatus, ListingStatus, Role

logger = logging.getLogger(__name__)

# Admin review actions
USER_REVIEW = "user:review"
LISTING_REVIEW = "listing:review"
BOOKING_REVIEW = "booking:review"
BOOKING_PAYMENT = "booking:payment"
DOCUMENT_REVIEW = "document:review"

# Owner actions
LISTING_SUBMIT = "listing:submit"
LISTING_WITHDRAW = "listing:withdraw"
LISTING_DEACTIVATE = "listing:deactivate"
BOOKING_RESPOND = "booking:respond"
BOOKING_CANCEL = "booking:cancel"
DOCUMENT_UPLOAD = "document:upload"


def _is_admin(actor: User) -> bool:
    return actor.role == Role.ADMIN.value


def _owns_listing(actor: User, listing: Listing) -> bool:
    return listing.host_id == actor.id


def _booking_party(actor: User, booking: Booking) -> bool:
    return booking.renter_id == actor.id or _listing_host_id(booking) == actor.id


def _listing_host_id(booking: Booking) -> Optional[int]:
    listing = booking.listing
    return listing.host_id if listing is not None else None


_OWNER_RULES: Dict[str, Callable[[User, Any], bool]] = {
    LISTING_SUBMIT: lambda actor, e: isinstance(e, Listing) and _owns_listing(actor, e),
    LISTING_WITHDRAW: lambda actor, e: isinstance(e, Listing) and _owns_listing(actor, e),
    LISTING_DEACTIVATE: lambda actor, e: isinstance(e, Listing) and _owns_listing(actor, e),
    BOOKING_RESPOND: lambda actor, e: (
        isinstance(e, Booking)
        and _listing_host_id(e) == actor.id
        and e.status == BookingStatus.PENDING.value
    ),
    BOOKING_CANCEL: lambda actor, e: isinstance(e, Booking) and _booking_party(actor, e),
    DOCUMENT_UPLOAD: lambda actor, e: e is None or (isinstance(e, Document) and e.user_id == actor.id),
}

# Targets an action may write; actions not listed may write any legal value
ACTION_TARGETS: Dict[str, FrozenSet[str]] = {
    LISTING_SUBMIT: frozenset({ListingStatus.PENDING.value}),
    LISTING_WITHDRAW: frozenset({ListingStatus.DRAFT.value}),
    LISTING_DEACTIVATE: frozenset({ListingStatus.INACTIVE.value}),
    BOOKING_RESPOND: frozenset({BookingStatus.APPROVED.value, BookingStatus.DECLINED.value}),
    BOOKING_CANCEL: frozenset({BookingStatus.CANCELLED.value}),
}


def has_capability(actor: Optional[User], action: str, entity: Any = None) -> bool:
    if actor is None:
        return False
    if _is_admin(actor):
        return True
    rule = _OWNER_RULES.get(action)
    return bool(rule and rule(actor, entity))


def require_capability(actor: Optional[User], action: str, entity: Any = None) -> None:
    if not has_capability(actor, action, entity):
        logger.warning(
            "Denied %s for user=%s role=%s",
            action,
            getattr(actor, "id", None),
            getattr(actor, "role", None),
        )
        raise AuthorizationError("Insufficient permissions")


def check_action_target(action: str, new_status: str) -> None:
    allowed = ACTION_TARGETS.get(action)
    if allowed is not None and new_status not in allowed:
        raise DomainValidationError(
            f"{action} can only set status to: {', '.join(sorted(allowed))}"
        )
