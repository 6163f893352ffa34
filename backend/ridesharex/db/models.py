# ridesharex/db/models.py

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Text,
    ForeignKey,
    Numeric,
    Boolean,
    JSON,
    Index,
    text,
)
from sqlalchemy.orm import relationship

from ridesharex.db.base import Base

# Booking statuses that hold the vehicle; kept in step with workflow.states
BLOCKING_STATUS_CLAUSE = "status IN ('confirmed', 'approved', 'completed')"


def utcnow() -> datetime:
    # naive UTC; SQLite drops tzinfo anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)

    # DB column name: password_hash
    # Python attribute: hashed_password
    hashed_password = Column("password_hash", String(255), nullable=False)

    # "renter" | "host" | "admin"
    role = Column(String(20), nullable=False, default="renter")

    # "pending" | "approved" | "rejected"
    approval_status = Column(String(20), nullable=False, default="pending", index=True)
    # "not_uploaded" | "pending" | "approved" | "rejected"; derived from documents
    document_status = Column(String(20), nullable=False, default="not_uploaded")
    rejection_reason = Column(Text, nullable=True)
    approved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    listings = relationship(
        "Listing",
        back_populates="host",
        foreign_keys="Listing.host_id",
    )

    bookings = relationship(
        "Booking",
        back_populates="renter",
        passive_deletes=True,
    )

    documents = relationship(
        "Document",
        back_populates="user",
        foreign_keys="Document.user_id",
        passive_deletes=True,
    )

    refresh_tokens = relationship(
        "UserRefreshToken",
        back_populates="user",
        cascade="all,delete-orphan",
        passive_deletes=True,
    )


class Listing(Base):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)

    host_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    vehicle_type = Column(String(20), nullable=False, default="car")
    transmission = Column(String(20), nullable=False, default="manual")
    fuel_type = Column(String(20), nullable=False, default="petrol")
    seats = Column(Integer, nullable=False, default=5)
    features = Column(JSON, nullable=False, default=list)

    # ZAR per day
    price_per_day = Column(Numeric(10, 2), nullable=False)
    location = Column(String(255), nullable=False, index=True)

    # list[str] as JSON in DB
    images = Column(JSON, nullable=False, default=list)

    # "draft" | "pending" | "approved" | "rejected" | "inactive"
    status = Column(String(20), nullable=False, default="pending", index=True)
    # "pending" | "approved" | "rejected"
    approval_status = Column(String(20), nullable=False, default="pending", index=True)
    rejection_reason = Column(Text, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by_admin_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    host = relationship(
        "User",
        back_populates="listings",
        foreign_keys=[host_id],
    )

    approved_by_admin = relationship(
        "User",
        foreign_keys=[approved_by_admin_id],
    )

    bookings = relationship(
        "Booking",
        back_populates="listing",
        passive_deletes=True,
    )

    @property
    def is_bookable(self) -> bool:
        return self.status == "approved" and self.approval_status == "approved"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # Exact-duplicate backstop for bookings holding the vehicle; range
        # overlap is checked in crud_bookings
        Index(
            "unique_booking_dates",
            "listing_id",
            "start_date",
            "end_date",
            unique=True,
            postgresql_where=text(BLOCKING_STATUS_CLAUSE),
            sqlite_where=text(BLOCKING_STATUS_CLAUSE),
        ),
        Index("ix_bookings_listing_status", "listing_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)

    renter_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    listing_id = Column(
        Integer,
        ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # half-open range: the vehicle is back on end_date
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Integer, nullable=False)

    price_per_day = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    service_fee = Column(Numeric(10, 2), nullable=False, default=0)
    insurance_fee = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="pending", index=True)

    special_requests = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancellation_fee = Column(Numeric(10, 2), nullable=True)
    decline_reason = Column(Text, nullable=True)
    dispute_reason = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    renter = relationship("User", back_populates="bookings")
    listing = relationship("Listing", back_populates="bookings")


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # license | id | insurance | registration | roadworthy | other
    document_type = Column(String(30), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(512), nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True)
    rejection_reason = Column(Text, nullable=True)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    expiry_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="documents", foreign_keys=[user_id])


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=False, default=dict)

    is_read = Column(Boolean, nullable=False, default=False)
    is_sent = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime, nullable=True)
    read_at = Column(DateTime, nullable=True)
    priority = Column(String(10), nullable=False, default="medium")

    created_at = Column(DateTime, default=utcnow, nullable=False)


class AdminLog(Base):
    """
    Append-only audit trail of status changes.
    Rows are never updated or deleted.
    """

    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, index=True)

    # actor
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Integer, nullable=True)
    target_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    details = Column(JSON, nullable=False, default=dict)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (Index("ix_admin_logs_entity", "entity_type", "entity_id"),)


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, index=True)

    event_type = Column(String(50), nullable=False)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Integer, nullable=False)
    # recipient
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    notification_id = Column(
        Integer,
        ForeignKey("notifications.id", ondelete="SET NULL"),
        nullable=True,
    )
    payload = Column(JSON, nullable=False, default=dict)

    # "pending" | "dispatched" | "failed"
    status = Column(String(20), nullable=False, default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    dispatched_at = Column(DateTime, nullable=True)


class UserRefreshToken(Base):
    __tablename__ = "user_refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="refresh_tokens")
