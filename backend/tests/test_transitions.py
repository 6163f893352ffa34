"""
Transition table and capability checks.
"""
import pytest

from ridesharex.core.errors import AuthorizationError, DomainValidationError, InvalidTransitionError
from ridesharex.db.models import Booking, Document, Listing, User
from ridesharex.workflow import permissions
from ridesharex.workflow.transitions import (
    TRANSITIONS,
    can_transition,
    legal_values,
    validate_transition,
)


class TestTransitionTable:

    def test_every_target_is_a_known_state(self):
        for key, table in TRANSITIONS.items():
            for src, targets in table.items():
                assert targets <= set(table), f"{key}: {src} points outside the table"

    def test_no_self_transitions(self):
        for table in TRANSITIONS.values():
            for src, targets in table.items():
                assert src not in targets

    @pytest.mark.parametrize(
        "entity,field,src,dst",
        [
            ("user", "approval_status", "pending", "approved"),
            ("user", "approval_status", "rejected", "pending"),
            ("listing", "status", "draft", "pending"),
            ("listing", "status", "pending", "approved"),
            ("listing", "status", "approved", "inactive"),
            ("listing", "status", "inactive", "approved"),
            ("booking", "status", "pending", "approved"),
            ("booking", "status", "approved", "cancelled"),
            ("booking", "status", "confirmed", "completed"),
            ("booking", "status", "completed", "disputed"),
            ("booking", "payment_status", "pending", "paid"),
            ("booking", "payment_status", "paid", "partially_refunded"),
            ("document", "status", "pending", "rejected"),
        ],
    )
    def test_allowed(self, entity, field, src, dst):
        assert can_transition(entity, field, src, dst)
        validate_transition(entity, field, src, dst)

    @pytest.mark.parametrize(
        "entity,field,src,dst",
        [
            ("listing", "status", "draft", "approved"),
            ("listing", "status", "approved", "approved"),
            ("booking", "status", "cancelled", "approved"),
            ("booking", "status", "declined", "pending"),
            ("booking", "payment_status", "refunded", "paid"),
            ("document", "status", "rejected", "approved"),
            ("user", "approval_status", "approved", "approved"),
        ],
    )
    def test_rejected_with_conflict(self, entity, field, src, dst):
        assert not can_transition(entity, field, src, dst)
        with pytest.raises(InvalidTransitionError):
            validate_transition(entity, field, src, dst)

    def test_unknown_value_is_a_validation_error(self):
        with pytest.raises(DomainValidationError):
            validate_transition("booking", "status", "pending", "teleported")

    def test_unknown_field(self):
        with pytest.raises(DomainValidationError):
            legal_values("listing", "colour")

    def test_terminal_booking_states(self):
        table = TRANSITIONS[("booking", "status")]
        assert table["cancelled"] == set()
        assert table["declined"] == set()


class TestCapabilities:

    def setup_method(self):
        self.admin = User(id=1, role="admin")
        self.host = User(id=2, role="host")
        self.renter = User(id=3, role="renter")
        self.stranger = User(id=4, role="renter")
        self.listing = Listing(id=10, host_id=self.host.id)
        self.booking = Booking(id=20, renter_id=self.renter.id, listing_id=10, status="pending")
        self.booking.listing = self.listing
        self.document = Document(id=30, user_id=self.renter.id)

    def test_admin_can_do_everything(self):
        for action in (
            permissions.USER_REVIEW,
            permissions.LISTING_REVIEW,
            permissions.BOOKING_REVIEW,
            permissions.BOOKING_PAYMENT,
            permissions.DOCUMENT_REVIEW,
            permissions.BOOKING_CANCEL,
        ):
            assert permissions.has_capability(self.admin, action, self.booking)

    def test_review_actions_are_admin_only(self):
        assert not permissions.has_capability(self.host, permissions.LISTING_REVIEW, self.listing)
        assert not permissions.has_capability(self.renter, permissions.BOOKING_REVIEW, self.booking)
        assert not permissions.has_capability(self.renter, permissions.DOCUMENT_REVIEW, self.document)
        assert not permissions.has_capability(self.renter, permissions.USER_REVIEW, self.renter)

    def test_owner_actions(self):
        assert permissions.has_capability(self.host, permissions.LISTING_SUBMIT, self.listing)
        assert not permissions.has_capability(self.renter, permissions.LISTING_SUBMIT, self.listing)
        assert permissions.has_capability(self.host, permissions.BOOKING_RESPOND, self.booking)
        assert not permissions.has_capability(self.renter, permissions.BOOKING_RESPOND, self.booking)

    @pytest.mark.parametrize("status", ["confirmed", "approved", "completed", "cancelled"])
    def test_host_responds_only_to_pending_requests(self, status):
        self.booking.status = status
        assert not permissions.has_capability(self.host, permissions.BOOKING_RESPOND, self.booking)
        # admins review from any state the table allows
        assert permissions.has_capability(self.admin, permissions.BOOKING_REVIEW, self.booking)

    def test_document_upload(self):
        assert permissions.has_capability(self.renter, permissions.DOCUMENT_UPLOAD)
        assert permissions.has_capability(self.host, permissions.DOCUMENT_UPLOAD)
        assert permissions.has_capability(self.renter, permissions.DOCUMENT_UPLOAD, self.document)
        assert not permissions.has_capability(self.stranger, permissions.DOCUMENT_UPLOAD, self.document)
        assert not permissions.has_capability(None, permissions.DOCUMENT_UPLOAD)

    def test_both_parties_can_cancel(self):
        assert permissions.has_capability(self.renter, permissions.BOOKING_CANCEL, self.booking)
        assert permissions.has_capability(self.host, permissions.BOOKING_CANCEL, self.booking)
        assert not permissions.has_capability(self.stranger, permissions.BOOKING_CANCEL, self.booking)

    def test_anonymous_is_denied(self):
        assert not permissions.has_capability(None, permissions.BOOKING_CANCEL, self.booking)

    def test_require_capability_raises(self):
        with pytest.raises(AuthorizationError):
            permissions.require_capability(self.stranger, permissions.LISTING_REVIEW, self.listing)

    def test_action_targets(self):
        permissions.check_action_target(permissions.BOOKING_RESPOND, "declined")
        with pytest.raises(DomainValidationError):
            permissions.check_action_target(permissions.BOOKING_RESPOND, "completed")
        # review actions are not narrowed
        permissions.check_action_target(permissions.BOOKING_REVIEW, "completed")
