"""
Status transition table.

Every status field that goes through the approval workflow has an explicit
map of ``current -> allowed targets``. Writing a value that is not in the map
(including re-writing the current value) is rejected.
"""
from typing import Dict, Set, Tuple

from ridesharex.core.errors import DomainValidationError, InvalidTransitionError
from ridesharex.workflow.states import (
    BookingStatus,
    DocumentStatus,
    EntityType,
    ListingStatus,
    PaymentStatus,
    UserApprovalStatus,
)

TransitionMap = Dict[str, Set[str]]


def _table(mapping) -> TransitionMap:
    return {src.value: {dst.value for dst in targets} for src, targets in mapping.items()}


USER_APPROVAL_TRANSITIONS: TransitionMap = _table({
    UserApprovalStatus.PENDING: {UserApprovalStatus.APPROVED, UserApprovalStatus.REJECTED},
    UserApprovalStatus.APPROVED: {UserApprovalStatus.REJECTED},
    UserApprovalStatus.REJECTED: {UserApprovalStatus.PENDING, UserApprovalStatus.APPROVED},
})

LISTING_TRANSITIONS: TransitionMap = _table({
    ListingStatus.DRAFT: {ListingStatus.PENDING},
    ListingStatus.PENDING: {ListingStatus.APPROVED, ListingStatus.REJECTED, ListingStatus.DRAFT},
    ListingStatus.APPROVED: {ListingStatus.INACTIVE, ListingStatus.REJECTED},
    ListingStatus.REJECTED: {ListingStatus.PENDING},
    ListingStatus.INACTIVE: {ListingStatus.PENDING, ListingStatus.APPROVED},
})

BOOKING_TRANSITIONS: TransitionMap = _table({
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.APPROVED,
        BookingStatus.DECLINED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.APPROVED,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
        BookingStatus.DISPUTED,
    },
    BookingStatus.APPROVED: {
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
        BookingStatus.DISPUTED,
    },
    BookingStatus.COMPLETED: {BookingStatus.DISPUTED},
    BookingStatus.DISPUTED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.DECLINED: set(),  # Terminal state
    BookingStatus.CANCELLED: set(),  # Terminal state
})

PAYMENT_TRANSITIONS: TransitionMap = _table({
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING, PaymentStatus.PAID},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED},
    PaymentStatus.PARTIALLY_REFUNDED: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal state
})

DOCUMENT_TRANSITIONS: TransitionMap = _table({
    DocumentStatus.PENDING: {DocumentStatus.APPROVED, DocumentStatus.REJECTED},
    DocumentStatus.APPROVED: {DocumentStatus.REJECTED},
    DocumentStatus.REJECTED: set(),  # Terminal state; re-upload creates a new document
})

TRANSITIONS: Dict[Tuple[str, str], TransitionMap] = {
    (EntityType.USER.value, "approval_status"): USER_APPROVAL_TRANSITIONS,
    (EntityType.LISTING.value, "status"): LISTING_TRANSITIONS,
    (EntityType.BOOKING.value, "status"): BOOKING_TRANSITIONS,
    (EntityType.BOOKING.value, "payment_status"): PAYMENT_TRANSITIONS,
    (EntityType.DOCUMENT.value, "status"): DOCUMENT_TRANSITIONS,
}


def transition_map(entity_type: str, field: str) -> TransitionMap:
    try:
        return TRANSITIONS[(entity_type, field)]
    except KeyError:
        raise DomainValidationError(f"{entity_type}.{field} is not a workflow field")


def legal_values(entity_type: str, field: str) -> Set[str]:
    return set(transition_map(entity_type, field))


def can_transition(entity_type: str, field: str, from_status: str, to_status: str) -> bool:
    """Check if a status transition is valid."""
    return to_status in transition_map(entity_type, field).get(from_status, set())


def validate_transition(entity_type: str, field: str, from_status: str, to_status: str) -> None:
    """Validate a transition or raise.

    An unknown target value is a validation error (400); a known value that
    is not reachable from the current one is an invalid transition (409).
    """
    if to_status not in legal_values(entity_type, field):
        raise DomainValidationError(f"'{to_status}' is not a valid {entity_type} {field}")
    if not can_transition(entity_type, field, from_status, to_status):
        raise InvalidTransitionError(
            f"Invalid {entity_type} {field} transition: {from_status} -> {to_status}"
        )
